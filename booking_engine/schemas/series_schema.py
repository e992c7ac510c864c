"""Recurring series records and the admin request that produces them."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from booking_engine.schemas.booking_schema import PaymentMethod, ServiceType


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class SeriesStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"


class DaySchedule(BaseModel):
    """Per-weekday visit configuration, used only for weekly recurrence.

    ``day_of_week`` follows the stored-record convention: 0 = Sunday … 6 = Saturday.
    """

    day_of_week: int = Field(ge=0, le=6)
    enabled: bool = True
    number_of_visits: int = Field(default=1, ge=1, le=2)
    visit_times: list[str] = Field(default_factory=list)


class RecurringSeries(BaseModel):
    """The template that produced a batch of bookings."""

    id: str
    client_id: str
    service_type: ServiceType
    frequency: Frequency
    start_date: datetime
    number_of_visits: int
    base_price: float
    total_price: float
    preferred_time: str
    preferred_days: list[int] = Field(default_factory=list)
    day_schedules: Optional[list[DaySchedule]] = None
    visits_per_day: int = 1
    duration_minutes: int = 60
    pets: list[str] = Field(default_factory=list)
    special_instructions: str = ""
    payment_method: PaymentMethod
    status: SeriesStatus = SeriesStatus.PENDING
    assigned_sitter_id: Optional[str] = None
    preferred_sitter_id: Optional[str] = None
    completed_visits: int = 0
    canceled_visits: int = 0
    upcoming_visits: int = 0
    time_zone_identifier: str = "UTC"

    created_by: Optional[str] = None
    created_by_role: str = "admin"
    created_via: str = "web-admin"
    last_modified_by: Optional[str] = None
    modification_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class AdminRecurringBookingCreate(BaseModel):
    """Validated request to create a recurring series.

    Visit-count and schedule consistency are checked by the recurrence
    rule builder so that they surface as InvalidRule rather than as
    field validation errors.
    """

    client_id: str
    sitter_id: Optional[str] = None
    service_type: ServiceType
    number_of_visits: int
    frequency: Frequency
    start_date: datetime
    preferred_time: str
    preferred_days: list[int] = Field(default_factory=list)
    day_schedules: Optional[list[DaySchedule]] = None
    visits_per_day: int = 1
    duration_minutes: int = Field(default=60, gt=0)
    base_price: float = Field(ge=0)
    pets: list[str] = Field(default_factory=list)
    special_instructions: Optional[str] = None
    payment_method: PaymentMethod
    admin_notes: Optional[str] = None
    time_zone_identifier: Optional[str] = None
