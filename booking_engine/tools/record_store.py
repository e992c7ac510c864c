"""
Record store for bookings and recurring series.

The engine talks to the store only through the RecordStore protocol. The
in-memory implementation stands in for the hosted document database in
tests and in the console demo: documents are kept as plain dicts and
re-validated through the schemas on every read and write.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Sequence

from pydantic import ValidationError

from booking_engine.config import STORE_MAX_BATCH_OPERATIONS
from booking_engine.errors import Conflict, InvalidRequest, NotFound
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.schemas.series_schema import RecurringSeries

logger = logging.getLogger(__name__)

BOOKINGS = "bookings"
SERIES = "recurringSeries"


@dataclass
class RecordWrite:
    """One create-or-replace write inside a batch."""

    collection: str
    record_id: str
    payload: dict[str, Any] = field(default_factory=dict)


class RecordStore(Protocol):
    """Persistence operations the engine depends on."""

    max_batch_size: int

    async def get_booking(self, booking_id: str) -> Booking: ...

    async def create_booking(self, booking: Booking) -> None: ...

    async def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
    ) -> Booking: ...

    async def query_bookings(
        self, series_id: str, statuses: Optional[Sequence[BookingStatus]] = None
    ) -> list[Booking]: ...

    async def count_bookings(self, series_id: str) -> int: ...

    async def get_series(self, series_id: str) -> RecurringSeries: ...

    async def create_series(self, series: RecurringSeries) -> None: ...

    async def update_series(self, series_id: str, changes: dict[str, Any]) -> RecurringSeries: ...

    async def commit_batch(self, writes: Sequence[RecordWrite]) -> None: ...


class InMemoryRecordStore:
    """Dict-backed RecordStore. Each call is atomic with respect to the event loop."""

    def __init__(self, max_batch_size: int = STORE_MAX_BATCH_OPERATIONS) -> None:
        self.max_batch_size = max_batch_size
        self._bookings: dict[str, dict[str, Any]] = {}
        self._series: dict[str, dict[str, Any]] = {}
        self.committed_batches: list[int] = []

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    async def get_booking(self, booking_id: str) -> Booking:
        doc = self._bookings.get(booking_id)
        if doc is None:
            raise NotFound("booking", booking_id)
        return Booking.model_validate(doc)

    async def create_booking(self, booking: Booking) -> None:
        if booking.id in self._bookings:
            raise Conflict(f"Booking {booking.id} already exists", booking.id)
        self._bookings[booking.id] = booking.model_dump()
        logger.debug("Booking stored: %s", booking.id)

    async def update_booking(
        self,
        booking_id: str,
        changes: dict[str, Any],
        expected: Optional[dict[str, Any]] = None,
    ) -> Booking:
        """
        Apply field changes to a booking.

        Args:
            booking_id: Booking to update.
            changes: Fields to overwrite.
            expected: Field values the stored record must still hold; any
                mismatch means another writer got there first.

        Raises:
            NotFound: If the booking does not exist.
            Conflict: If ``expected`` no longer matches, carrying the current record.
            InvalidRequest: If the merged record fails validation.
        """
        current = self._bookings.get(booking_id)
        if current is None:
            raise NotFound("booking", booking_id)

        for key, value in (expected or {}).items():
            if current.get(key) != value:
                raise Conflict(
                    f"Booking {booking_id} changed: {key} is {current.get(key)!r}, "
                    f"expected {value!r}",
                    booking_id,
                    current=Booking.model_validate(current),
                )

        merged = {**current, **changes, "updated_at": datetime.now(timezone.utc)}
        try:
            updated = Booking.model_validate(merged)
        except ValidationError as exc:
            raise InvalidRequest(
                f"Update rejected for booking {booking_id}: {exc.errors()[0]['msg']}",
                ids=[booking_id],
            ) from exc

        self._bookings[booking_id] = updated.model_dump()
        return updated

    async def query_bookings(
        self, series_id: str, statuses: Optional[Sequence[BookingStatus]] = None
    ) -> list[Booking]:
        """Bookings of a series, ordered by scheduled time."""
        wanted = set(statuses) if statuses else None
        matches = [
            Booking.model_validate(doc)
            for doc in self._bookings.values()
            if doc.get("recurring_series_id") == series_id
            and (wanted is None or doc.get("status") in wanted)
        ]
        return sorted(matches, key=lambda b: b.scheduled_date_time)

    async def count_bookings(self, series_id: str) -> int:
        return sum(
            1 for doc in self._bookings.values()
            if doc.get("recurring_series_id") == series_id
        )

    # ------------------------------------------------------------------ #
    # Series
    # ------------------------------------------------------------------ #

    async def get_series(self, series_id: str) -> RecurringSeries:
        doc = self._series.get(series_id)
        if doc is None:
            raise NotFound("series", series_id)
        return RecurringSeries.model_validate(doc)

    async def create_series(self, series: RecurringSeries) -> None:
        self._series[series.id] = series.model_dump()
        logger.debug("Series stored: %s", series.id)

    async def update_series(self, series_id: str, changes: dict[str, Any]) -> RecurringSeries:
        current = self._series.get(series_id)
        if current is None:
            raise NotFound("series", series_id)
        updated = RecurringSeries.model_validate({**current, **changes})
        self._series[series_id] = updated.model_dump()
        return updated

    # ------------------------------------------------------------------ #
    # Batches
    # ------------------------------------------------------------------ #

    async def commit_batch(self, writes: Sequence[RecordWrite]) -> None:
        """Apply all writes or none of them."""
        if len(writes) > self.max_batch_size:
            raise InvalidRequest(
                f"Batch of {len(writes)} exceeds the store limit of {self.max_batch_size}",
                counts={"size": len(writes), "limit": self.max_batch_size},
            )

        staged: list[tuple[dict[str, dict[str, Any]], str, dict[str, Any]]] = []
        for write in writes:
            if write.collection == BOOKINGS:
                target, model = self._bookings, Booking
            elif write.collection == SERIES:
                target, model = self._series, RecurringSeries
            else:
                raise InvalidRequest(f"Unknown collection: {write.collection}")
            try:
                doc = model.model_validate({**write.payload, "id": write.record_id}).model_dump()
            except ValidationError as exc:
                raise InvalidRequest(
                    f"Invalid {write.collection} record {write.record_id}",
                    ids=[write.record_id],
                ) from exc
            staged.append((target, write.record_id, doc))

        for target, record_id, doc in staged:
            target[record_id] = doc
        self.committed_batches.append(len(writes))

    # ------------------------------------------------------------------ #
    # Test support
    # ------------------------------------------------------------------ #

    def seed_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking.model_dump()

    def seed_series(self, series: RecurringSeries) -> None:
        self._series[series.id] = series.model_dump()

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        self._bookings.clear()
        self._series.clear()
        self.committed_batches.clear()
