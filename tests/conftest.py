"""Shared test fixtures and helpers."""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

import pytest

from booking_engine.errors import DependencyUnavailable
from booking_engine.lifecycle.series_coordinator import WritePacing
from booking_engine.lifecycle.state_machine import BookingStatusStateMachine
from booking_engine.orchestration.admin_booking import AdminBookingOrchestrator
from booking_engine.schemas.booking_schema import (
    Booking,
    BookingStatus,
    PaymentMethod,
    ServiceType,
)
from booking_engine.schemas.series_schema import Frequency, RecurringSeries
from booking_engine.schemas.sitter_schema import (
    Confidence,
    RemoteScore,
    ScoringFeatures,
    SitterCandidate,
)
from booking_engine.scoring.recommender import SitterRecommendationScorer
from booking_engine.tools.record_store import InMemoryRecordStore, RecordWrite
from booking_engine.tools.role_verifier import InMemoryRoleVerifier, UserRole
from booking_engine.tools.sitter_directory import InMemorySitterDirectory

ADMIN_ID = "admin-1"
CLIENT_ID = "client-1"
SITTER_USER_ID = "sitter-user-1"

MONDAY_0900 = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def make_booking(
    booking_id: str = "BK-1",
    status: BookingStatus = BookingStatus.PENDING,
    sitter_id: Optional[str] = None,
    series_id: Optional[str] = None,
    visit_number: Optional[int] = None,
    payment_method: PaymentMethod = PaymentMethod.SQUARE,
    scheduled: datetime = MONDAY_0900,
    pets: Optional[list[str]] = None,
    approved_at: Optional[datetime] = None,
) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    return Booking(
        id=booking_id,
        client_id=CLIENT_ID,
        client_name="Jordan Client",
        sitter_id=sitter_id,
        sitter_name=f"Name of {sitter_id}" if sitter_id else None,
        service_type=ServiceType.DOG_WALKING,
        status=status,
        approved_at=approved_at,
        scheduled_date_time=scheduled,
        scheduled_time="9:00 AM",
        pets=pets if pets is not None else ["dog"],
        price=25.0,
        payment_method=payment_method,
        recurring_series_id=series_id,
        visit_number=visit_number,
    )


def make_series_bookings(
    series_id: str,
    statuses: Iterable[BookingStatus],
    sitter_id: Optional[str] = None,
) -> list[Booking]:
    """One booking per status, a week apart, numbered from 1."""
    bookings = []
    for index, status in enumerate(statuses):
        has_sitter = sitter_id is not None or status == BookingStatus.APPROVED
        bookings.append(make_booking(
            booking_id=f"{series_id}-BK-{index + 1}",
            status=status,
            sitter_id=(sitter_id or "sitter-existing") if has_sitter else None,
            series_id=series_id,
            visit_number=index + 1,
            scheduled=MONDAY_0900.replace(day=10 + 7 * (index % 3), month=3 + index // 3),
        ))
    return bookings


def make_series(series_id: str = "RS-1", number_of_visits: int = 5) -> RecurringSeries:
    """Helper to create a RecurringSeries record."""
    return RecurringSeries(
        id=series_id,
        client_id=CLIENT_ID,
        service_type=ServiceType.DOG_WALKING,
        frequency=Frequency.WEEKLY,
        start_date=MONDAY_0900,
        number_of_visits=number_of_visits,
        base_price=25.0,
        total_price=25.0 * number_of_visits,
        preferred_time="09:00",
        payment_method=PaymentMethod.SQUARE,
        upcoming_visits=number_of_visits,
    )


def make_candidate(
    sitter_id: str = "sitter-1",
    name: str = "",
    rating: float = 4.0,
    total_bookings: int = 10,
    is_active: bool = True,
    has_location_data: bool = False,
    pet_types: Optional[set[str]] = None,
) -> SitterCandidate:
    """Helper to create a SitterCandidate."""
    return SitterCandidate(
        id=sitter_id,
        name=name or f"Sitter {sitter_id}",
        rating=rating,
        total_bookings=total_bookings,
        is_active=is_active,
        has_location_data=has_location_data,
        pet_types=pet_types if pet_types is not None else {"dog"},
    )


def make_series_request(**overrides: Any) -> dict[str, Any]:
    """Raw recurring-series request with sensible defaults."""
    request = {
        "client_id": CLIENT_ID,
        "service_type": "dog-walking",
        "number_of_visits": 4,
        "frequency": "weekly",
        "start_date": datetime(2025, 3, 5, tzinfo=timezone.utc),
        "preferred_time": "09:00",
        "day_schedules": [
            {"day_of_week": 1, "number_of_visits": 2, "visit_times": ["09:00", "15:00"]},
        ],
        "base_price": 25.0,
        "pets": ["dog"],
        "payment_method": "square",
    }
    request.update(overrides)
    return request


def make_writes(count: int, series_id: str = "RS-BATCH") -> list[RecordWrite]:
    """Valid booking writes for batch tests."""
    return [
        RecordWrite(
            "bookings",
            f"{series_id}-{i}",
            make_booking(booking_id=f"{series_id}-{i}", series_id=series_id,
                         visit_number=i + 1).model_dump(),
        )
        for i in range(count)
    ]


class StubRemoteScorer:
    """RemoteScorer returning canned scores, failing for selected sitters."""

    def __init__(
        self,
        scores: Optional[dict[str, float]] = None,
        failing: Iterable[str] = (),
        confidence: Confidence = Confidence.HIGH,
    ) -> None:
        self.scores = scores or {}
        self.failing = set(failing)
        self.confidence = confidence
        self.calls: list[ScoringFeatures] = []

    async def score(self, features: ScoringFeatures) -> RemoteScore:
        self.calls.append(features)
        if features.sitter_id in self.failing:
            raise DependencyUnavailable("remote scorer")
        return RemoteScore(
            score=self.scores.get(features.sitter_id, 50.0),
            reasons=["Remote match"],
            confidence=self.confidence,
        )


class FailingBatchStore(InMemoryRecordStore):
    """Record store whose Nth batch commit (0-based) raises."""

    def __init__(self, fail_on_call: int, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.fail_on_call = fail_on_call
        self.batch_calls = 0

    async def commit_batch(self, writes):
        call = self.batch_calls
        self.batch_calls += 1
        if call == self.fail_on_call:
            raise ConnectionError("store unavailable")
        await super().commit_batch(writes)


@pytest.fixture
def state_machine():
    return BookingStatusStateMachine()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def role_verifier():
    roles = InMemoryRoleVerifier()
    roles.add_user(ADMIN_ID, UserRole.ADMIN, name="Admin One")
    roles.add_user(CLIENT_ID, UserRole.PET_OWNER, name="Jordan Client")
    roles.add_user(SITTER_USER_ID, UserRole.PET_SITTER, name="Sam Sitter")
    return roles


@pytest.fixture
def sitter_directory():
    return InMemorySitterDirectory([
        make_candidate("sitter-top", rating=5.0, total_bookings=100,
                       has_location_data=True, pet_types={"dog", "cat"}),
        make_candidate("sitter-mid", rating=4.0, total_bookings=20),
        make_candidate("sitter-low", rating=2.0, total_bookings=0, pet_types=set()),
        make_candidate("sitter-off", rating=5.0, total_bookings=200, is_active=False),
    ])


@pytest.fixture
def no_pacing():
    return WritePacing(delay_sec=0.0)


@pytest.fixture
def scorer():
    return SitterRecommendationScorer()


@pytest.fixture
def orchestrator(record_store, role_verifier, sitter_directory, no_pacing):
    return AdminBookingOrchestrator(
        record_store, role_verifier, sitter_directory, pacing=no_pacing
    )
