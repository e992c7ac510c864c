"""Booking records, lifecycle enums and admin booking requests."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class BookingStatus(str, Enum):
    """Lifecycle status of a single booking."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    SQUARE = "square"
    APPLE_PAY = "apple_pay"
    CASH = "cash"
    CHECK = "check"
    INVOICE = "invoice"
    COMP = "comp"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    FAILED = "failed"
    CANCELLED = "cancelled"
    WAIVED = "waived"


class ServiceType(str, Enum):
    DOG_WALKING = "dog-walking"
    PET_SITTING = "pet-sitting"
    OVERNIGHT_CARE = "overnight-care"
    DROP_IN_VISIT = "drop-in-visit"
    TRANSPORT = "transport"


class Booking(BaseModel):
    """One scheduled service visit as stored in the record store."""

    id: str
    client_id: str
    client_name: Optional[str] = None
    sitter_id: Optional[str] = None
    sitter_name: Optional[str] = None
    service_type: ServiceType
    status: BookingStatus
    approved_at: Optional[datetime] = None

    scheduled_date_time: datetime
    scheduled_time: str = ""
    time_zone_identifier: str = "UTC"
    duration_minutes: int = 60
    pets: list[str] = Field(default_factory=list)
    special_instructions: Optional[str] = None

    price: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_collected_by: Optional[str] = None
    skip_payment_validation: bool = False

    recurring_series_id: Optional[str] = None
    visit_number: Optional[int] = None

    created_by: Optional[str] = None
    created_by_role: str = "admin"
    created_via: str = "web-admin"
    last_modified_by: Optional[str] = None
    modification_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _approved_requires_sitter(self) -> "Booking":
        if self.status == BookingStatus.APPROVED and not self.sitter_id:
            raise ValueError(f"Booking {self.id} cannot be approved without a sitter")
        return self

    @property
    def has_sitter(self) -> bool:
        return bool(self.sitter_id)

    @property
    def is_recurring(self) -> bool:
        return self.recurring_series_id is not None


class AdminBookingCreate(BaseModel):
    """Validated request to create a single booking on a client's behalf."""

    client_id: str
    client_name: Optional[str] = None
    sitter_id: Optional[str] = None
    service_type: ServiceType
    scheduled_date_time: datetime
    duration_minutes: int = Field(default=60, gt=0)
    pets: list[str] = Field(default_factory=list)
    special_instructions: Optional[str] = None
    price: float = Field(ge=0)
    payment_method: PaymentMethod
    payment_status: Optional[PaymentStatus] = None
    admin_notes: Optional[str] = None
    time_zone_identifier: Optional[str] = None


class SitterAssignment(BaseModel):
    """One (booking, sitter) pair for per-booking series assignment."""

    booking_id: str
    sitter_id: Optional[str] = None
