"""
Admin booking use cases.

Composes the recurrence generator, status state machine, series
coordinator, recommendation scorer and batch writer into the operations
an administrator performs on bookings. Every mutating operation verifies
the admin role first and runs under a fresh request correlation id, so the
store round trips it makes can be traced together in the logs.

Usage:
    orchestrator = AdminBookingOrchestrator(store, roles, directory)
    series_id = await orchestrator.create_recurring_series("admin-1", request)
    result = await orchestrator.update_booking_status(
        "admin-1", booking_id, BookingStatus.APPROVED,
        policy=AutoAssignmentPolicy(enabled=True),
    )
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_engine.config import settings
from booking_engine.errors import (
    BookingEngineError,
    Conflict,
    InvalidRequest,
    PartialBatchFailure,
)
from booking_engine.lifecycle.series_coordinator import (
    PROPAGATING_STATUSES,
    AutoAssignmentPolicy,
    PropagationReport,
    SeriesConsistencyCoordinator,
    SiblingFailure,
    WritePacing,
)
from booking_engine.lifecycle.state_machine import (
    BookingStatusStateMachine,
    initial_payment_status,
    payment_auto_approves,
)
from booking_engine.logging_context import get_request_logger, new_request_id
from booking_engine.orchestration.batch_writer import BatchWriteCoordinator
from booking_engine.scheduling.recurrence import (
    build_recurrence_rule,
    calculate_series_total,
    generate_visit_datetimes,
)
from booking_engine.schemas.booking_schema import (
    AdminBookingCreate,
    Booking,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    ServiceType,
    SitterAssignment,
)
from booking_engine.schemas.series_schema import (
    AdminRecurringBookingCreate,
    RecurringSeries,
    SeriesStatus,
)
from booking_engine.scoring.recommender import SitterRecommendationScorer
from booking_engine.tools.record_store import BOOKINGS, RecordStore, RecordWrite
from booking_engine.tools.role_verifier import ClientInfo, RoleVerifier
from booking_engine.tools.sitter_directory import SitterDirectory
from booking_engine.utils import format_display_time

logger = get_request_logger(__name__)

DEFAULT_SERIES_REASON = "Admin-initiated recurring booking"
DEFAULT_RESCHEDULE_REASON = "Admin rescheduled booking"
ASSIGNABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.SCHEDULED)


@dataclass
class StatusUpdateResult:
    booking: Booking
    propagation: Optional[PropagationReport] = None
    auto_assigned_sitter_id: Optional[str] = None


@dataclass
class BulkAssignmentReport:
    """Outcome of assigning sitters across the bookings of a series."""

    series_id: Optional[str] = None
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[SiblingFailure] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


def _resolve_time_zone(identifier: Optional[str]) -> str:
    zone = identifier or settings.scheduling.default_time_zone
    try:
        ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidRequest(f"Unknown time zone: {zone!r}") from None
    return zone


class AdminBookingOrchestrator:
    """Top-level admin operations on bookings and recurring series."""

    def __init__(
        self,
        store: RecordStore,
        roles: RoleVerifier,
        directory: SitterDirectory,
        scorer: Optional[SitterRecommendationScorer] = None,
        batch_writer: Optional[BatchWriteCoordinator] = None,
        pacing: Optional[WritePacing] = None,
        machine: Optional[BookingStatusStateMachine] = None,
    ) -> None:
        self.store = store
        self.roles = roles
        self.directory = directory
        self.scorer = scorer or SitterRecommendationScorer()
        self.batch_writer = batch_writer or BatchWriteCoordinator(store)
        self.pacing = pacing or WritePacing()
        self.machine = machine or BookingStatusStateMachine()
        self.coordinator = SeriesConsistencyCoordinator(
            store, directory, self.scorer, pacing=self.pacing, machine=self.machine
        )

    async def _begin(self, actor_id: str, operation: str) -> str:
        request_id = new_request_id()
        await self.roles.verify_admin_role(actor_id)
        logger.debug("%s started by %s", operation, actor_id)
        return request_id

    async def _sitter_name(self, sitter_id: Optional[str]) -> Optional[str]:
        if not sitter_id:
            return None
        sitter = await self.directory.get_sitter(sitter_id)
        return sitter.name or None

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #

    def _build_booking(
        self,
        *,
        booking_id: str,
        actor_id: str,
        client: ClientInfo,
        client_name: Optional[str],
        sitter_id: Optional[str],
        sitter_name: Optional[str],
        service_type: ServiceType,
        scheduled_date_time: datetime,
        time_zone_identifier: str,
        duration_minutes: int,
        pets: list[str],
        special_instructions: Optional[str],
        price: float,
        payment_method: PaymentMethod,
        payment_status: Optional[PaymentStatus] = None,
        recurring_series_id: Optional[str] = None,
        visit_number: Optional[int] = None,
        modification_reason: Optional[str] = None,
    ) -> Booking:
        now = datetime.now(timezone.utc)
        status = self.machine.initial_status(bool(sitter_id), payment_method)
        return Booking(
            id=booking_id,
            client_id=client.client_id,
            client_name=client.name or client_name,
            sitter_id=sitter_id,
            sitter_name=sitter_name,
            service_type=service_type,
            status=status,
            approved_at=now if status == BookingStatus.APPROVED else None,
            scheduled_date_time=scheduled_date_time,
            scheduled_time=format_display_time(scheduled_date_time),
            time_zone_identifier=time_zone_identifier,
            duration_minutes=duration_minutes,
            pets=list(pets),
            special_instructions=special_instructions,
            price=price,
            payment_method=payment_method,
            payment_status=payment_status or initial_payment_status(payment_method),
            payment_collected_by=actor_id if payment_method == PaymentMethod.CASH else None,
            skip_payment_validation=payment_auto_approves(payment_method),
            recurring_series_id=recurring_series_id,
            visit_number=visit_number,
            created_by=actor_id,
            last_modified_by=actor_id,
            modification_reason=modification_reason,
            created_at=now,
            updated_at=now,
        )

    async def create_booking(
        self, actor_id: str, request: Union[AdminBookingCreate, dict[str, Any]]
    ) -> str:
        """
        Create one booking on a client's behalf.

        Returns:
            The new booking id.

        Raises:
            PermissionDenied: If the actor is not an admin.
            NotFound: If the client or sitter does not exist.
            InvalidRequest: If the client is not a pet owner or the time zone is unknown.
        """
        await self._begin(actor_id, "create_booking")
        request = AdminBookingCreate.model_validate(request)
        client = await self.roles.verify_client(request.client_id)
        time_zone = _resolve_time_zone(request.time_zone_identifier)

        booking = self._build_booking(
            booking_id=_new_id("BK"),
            actor_id=actor_id,
            client=client,
            client_name=request.client_name,
            sitter_id=request.sitter_id,
            sitter_name=await self._sitter_name(request.sitter_id),
            service_type=request.service_type,
            scheduled_date_time=request.scheduled_date_time,
            time_zone_identifier=time_zone,
            duration_minutes=request.duration_minutes,
            pets=request.pets,
            special_instructions=request.special_instructions,
            price=request.price,
            payment_method=request.payment_method,
            payment_status=request.payment_status,
            modification_reason=request.admin_notes,
        )
        await self.store.create_booking(booking)
        logger.info(
            "Booking %s created for client %s (%s)", booking.id, client.client_id,
            booking.status.value,
        )
        return booking.id

    async def create_recurring_series(
        self, actor_id: str, request: Union[AdminRecurringBookingCreate, dict[str, Any]]
    ) -> str:
        """
        Create a recurring series and all of its bookings.

        The visit dates are generated and validated before anything is
        written. Bookings are committed in chunks; if a chunk fails the
        series is marked failed and the partial failure is raised.

        Returns:
            The new series id.

        Raises:
            InvalidRule: If the recurrence cannot produce the requested visits.
            PartialBatchFailure: If a chunk of bookings failed to commit.
        """
        await self._begin(actor_id, "create_recurring_series")
        request = AdminRecurringBookingCreate.model_validate(request)
        client = await self.roles.verify_client(request.client_id)
        time_zone = _resolve_time_zone(request.time_zone_identifier)

        start_date = request.start_date
        if start_date.tzinfo is None:
            start_date = start_date.replace(tzinfo=ZoneInfo(time_zone))

        rule = build_recurrence_rule(
            frequency=request.frequency,
            start_date=start_date,
            preferred_time=request.preferred_time,
            number_of_visits=request.number_of_visits,
            preferred_days=request.preferred_days,
            day_schedules=request.day_schedules,
            visits_per_day=request.visits_per_day,
        )
        visit_times = generate_visit_datetimes(rule)
        sitter_name = await self._sitter_name(request.sitter_id)

        series_id = _new_id("RS")
        now = datetime.now(timezone.utc)
        series = RecurringSeries(
            id=series_id,
            client_id=client.client_id,
            service_type=request.service_type,
            frequency=request.frequency,
            start_date=start_date,
            number_of_visits=request.number_of_visits,
            base_price=request.base_price,
            total_price=calculate_series_total(
                request.base_price, request.number_of_visits, request.frequency
            ),
            preferred_time=request.preferred_time,
            preferred_days=list(request.preferred_days),
            day_schedules=request.day_schedules,
            visits_per_day=request.visits_per_day,
            duration_minutes=request.duration_minutes,
            pets=list(request.pets),
            special_instructions=request.special_instructions or "",
            payment_method=request.payment_method,
            status=SeriesStatus.PENDING,
            assigned_sitter_id=request.sitter_id,
            preferred_sitter_id=request.sitter_id,
            upcoming_visits=request.number_of_visits,
            time_zone_identifier=time_zone,
            created_by=actor_id,
            last_modified_by=actor_id,
            modification_reason=request.admin_notes,
            created_at=now,
        )
        await self.store.create_series(series)

        writes = []
        for visit_number, scheduled in enumerate(visit_times, start=1):
            booking = self._build_booking(
                booking_id=_new_id("BK"),
                actor_id=actor_id,
                client=client,
                client_name=None,
                sitter_id=request.sitter_id,
                sitter_name=sitter_name,
                service_type=request.service_type,
                scheduled_date_time=scheduled,
                time_zone_identifier=time_zone,
                duration_minutes=request.duration_minutes,
                pets=request.pets,
                special_instructions=request.special_instructions,
                price=request.base_price,
                payment_method=request.payment_method,
                recurring_series_id=series_id,
                visit_number=visit_number,
                modification_reason=request.admin_notes or DEFAULT_SERIES_REASON,
            )
            writes.append(RecordWrite(BOOKINGS, booking.id, booking.model_dump()))

        try:
            await self.batch_writer.commit_or_raise(writes, correlation_id=series_id)
        except PartialBatchFailure:
            await self._mark_series_failed(series_id, actor_id)
            raise

        await self.batch_writer.verify(series_id, expected=len(writes))
        await self.store.update_series(series_id, {"status": SeriesStatus.ACTIVE})
        logger.info(
            "Series %s created: %d %s visits for client %s",
            series_id, len(writes), request.frequency.value, client.client_id,
        )
        return series_id

    async def _mark_series_failed(self, series_id: str, actor_id: str) -> None:
        try:
            await self.store.update_series(
                series_id,
                {"status": SeriesStatus.FAILED, "last_modified_by": actor_id},
            )
        except BookingEngineError:
            logger.exception("Could not mark series %s as failed", series_id)

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #

    async def update_booking_status(
        self,
        actor_id: str,
        booking_id: str,
        requested_status: Union[BookingStatus, str],
        policy: Optional[AutoAssignmentPolicy] = None,
        reason: Optional[str] = None,
    ) -> StatusUpdateResult:
        """
        Move a booking to a new status and keep its series consistent.

        Asking for ``approved`` on a booking with no sitter either
        auto-assigns one (when the policy allows) or yields ``scheduled``.

        Raises:
            InvalidTransitionError: If the status is not reachable.
            Conflict: If another actor changed the booking first.
        """
        await self._begin(actor_id, "update_booking_status")
        policy = policy or AutoAssignmentPolicy()
        requested_status = BookingStatus(requested_status)
        booking = await self.store.get_booking(booking_id)

        changes: dict[str, Any] = {}
        auto_assigned: Optional[str] = None
        if policy.enabled and requested_status == BookingStatus.APPROVED and not booking.has_sitter:
            candidates = await self.directory.list_active_sitters()
            preferred = await self.coordinator.preferred_sitter_for(booking.recurring_series_id)
            chosen = policy.choose(await self.scorer.recommend(booking, candidates, preferred))
            if chosen is not None:
                auto_assigned = chosen.sitter_id
                changes["sitter_id"] = chosen.sitter_id
                changes["sitter_name"] = chosen.sitter_name or None
                logger.info(
                    "Auto-assigned sitter %s to booking %s (score %d, %s)",
                    chosen.sitter_id, booking_id, chosen.score, chosen.confidence.value,
                )

        decision = self.machine.next_status(
            booking.status,
            has_sitter=booking.has_sitter or auto_assigned is not None,
            payment_auto_approves=payment_auto_approves(booking.payment_method),
            requested_status=requested_status,
            approved_at_set=booking.approved_at is not None,
        )
        changes["status"] = decision.status
        changes["last_modified_by"] = actor_id
        if reason:
            changes["modification_reason"] = reason
        if decision.set_approved_at:
            changes["approved_at"] = datetime.now(timezone.utc)

        updated = await self.store.update_booking(
            booking_id,
            changes,
            expected={"status": booking.status, "sitter_id": booking.sitter_id},
        )
        logger.info(
            "Booking %s status %s -> %s", booking_id, booking.status.value, updated.status.value
        )

        propagation = None
        if updated.is_recurring and updated.status in PROPAGATING_STATUSES:
            propagation = await self.coordinator.propagate(updated, actor_id, policy)
        if updated.is_recurring and self.machine.is_terminal(updated.status):
            await self._refresh_series_counters(updated.recurring_series_id)

        return StatusUpdateResult(
            booking=updated,
            propagation=propagation,
            auto_assigned_sitter_id=auto_assigned,
        )

    async def _refresh_series_counters(self, series_id: str) -> RecurringSeries:
        bookings = await self.store.query_bookings(series_id)
        completed = sum(1 for b in bookings if b.status == BookingStatus.COMPLETED)
        canceled = sum(1 for b in bookings if b.status == BookingStatus.CANCELLED)
        return await self.store.update_series(
            series_id,
            {
                "completed_visits": completed,
                "canceled_visits": canceled,
                "upcoming_visits": len(bookings) - completed - canceled,
            },
        )

    # ------------------------------------------------------------------ #
    # Sitter assignment
    # ------------------------------------------------------------------ #

    async def _apply_sitter(
        self,
        booking: Booking,
        sitter_id: Optional[str],
        sitter_name: Optional[str],
        actor_id: str,
    ) -> Booking:
        """Attach or clear a sitter with the matching status change, conditionally."""
        changes: dict[str, Any] = {
            "sitter_id": sitter_id,
            "sitter_name": sitter_name,
            "last_modified_by": actor_id,
        }
        if sitter_id and booking.status in ASSIGNABLE_STATUSES:
            decision = self.machine.next_status(
                booking.status,
                has_sitter=True,
                payment_auto_approves=payment_auto_approves(booking.payment_method),
                requested_status=BookingStatus.APPROVED,
                approved_at_set=booking.approved_at is not None,
            )
            changes["status"] = decision.status
            if decision.set_approved_at:
                changes["approved_at"] = datetime.now(timezone.utc)
        elif not sitter_id:
            changes["status"] = self.machine.status_after_sitter_removed(booking.status)

        try:
            return await self.store.update_booking(
                booking.id,
                changes,
                expected={"status": booking.status, "sitter_id": booking.sitter_id},
            )
        except Conflict as exc:
            current = await self.store.get_booking(booking.id)
            raise Conflict(
                f"Booking {booking.id} changed during assignment", booking.id, current=current
            ) from exc

    async def assign_sitter(self, actor_id: str, booking_id: str, sitter_id: str) -> Booking:
        """
        Assign a sitter to one booking. Pending/scheduled bookings become approved.

        Raises:
            Conflict: If the booking already has a different sitter, or changed
                between read and write. Carries the current record.
            InvalidRequest: If the booking is completed or cancelled.
        """
        await self._begin(actor_id, "assign_sitter")
        booking = await self.store.get_booking(booking_id)
        if booking.sitter_id and booking.sitter_id != sitter_id:
            raise Conflict(
                f"Booking {booking_id} is already assigned to sitter {booking.sitter_id}",
                booking_id,
                current=booking,
            )
        if self.machine.is_terminal(booking.status):
            raise InvalidRequest(
                f"Cannot assign a sitter to a {booking.status.value} booking", ids=[booking_id]
            )

        sitter_name = await self._sitter_name(sitter_id)
        updated = await self._apply_sitter(booking, sitter_id, sitter_name, actor_id)
        logger.info(
            "Sitter %s assigned to booking %s (%s)", sitter_id, booking_id, updated.status.value
        )
        return updated

    async def unassign_sitter(self, actor_id: str, booking_id: str) -> Booking:
        """Remove the sitter from a booking; an approved booking falls back to scheduled."""
        await self._begin(actor_id, "unassign_sitter")
        booking = await self.store.get_booking(booking_id)
        if not booking.has_sitter:
            return booking
        if self.machine.is_terminal(booking.status):
            raise InvalidRequest(
                f"Cannot unassign the sitter of a {booking.status.value} booking",
                ids=[booking_id],
            )

        updated = await self._apply_sitter(booking, None, None, actor_id)
        logger.info("Sitter removed from booking %s (%s)", booking_id, updated.status.value)
        return updated

    async def bulk_assign_series(
        self, actor_id: str, series_id: str, sitter_id: Optional[str]
    ) -> BulkAssignmentReport:
        """
        Assign one sitter (or none) to every open booking of a series.

        Bookings are updated one at a time with pacing; completed and
        cancelled bookings are skipped.
        """
        await self._begin(actor_id, "bulk_assign_series")
        await self.store.get_series(series_id)
        sitter_name = await self._sitter_name(sitter_id)
        bookings = await self.store.query_bookings(series_id)
        report = BulkAssignmentReport(series_id=series_id)

        writes = 0
        for booking in bookings:
            if self.machine.is_terminal(booking.status):
                report.skipped.append(booking.id)
                continue
            try:
                await self._apply_sitter(booking, sitter_id, sitter_name, actor_id)
            except BookingEngineError as exc:
                logger.warning("Bulk assignment skipped booking %s: %s", booking.id, exc.message)
                report.failed.append(SiblingFailure(booking.id, exc.kind, exc.message))
                continue
            report.updated.append(booking.id)
            writes += 1
            await self.pacing.after_write(writes)

        await self.store.update_series(
            series_id, {"assigned_sitter_id": sitter_id, "last_modified_by": actor_id}
        )
        logger.info(
            "Bulk assigned sitter %s to %d bookings of series %s (%d skipped, %d failed)",
            sitter_id, report.updated_count, series_id, len(report.skipped), len(report.failed),
        )
        return report

    async def assign_sitters_to_series_bookings(
        self,
        actor_id: str,
        assignments: Sequence[Union[SitterAssignment, dict[str, Any]]],
    ) -> BulkAssignmentReport:
        """Assign a possibly different sitter to each listed booking."""
        await self._begin(actor_id, "assign_sitters_to_series_bookings")
        parsed = [SitterAssignment.model_validate(a) for a in assignments]
        report = BulkAssignmentReport()

        names: dict[str, Optional[str]] = {}
        for sitter_id in {a.sitter_id for a in parsed if a.sitter_id}:
            names[sitter_id] = await self._sitter_name(sitter_id)

        writes = 0
        for assignment in parsed:
            try:
                booking = await self.store.get_booking(assignment.booking_id)
                if self.machine.is_terminal(booking.status):
                    report.skipped.append(booking.id)
                    continue
                await self._apply_sitter(
                    booking, assignment.sitter_id, names.get(assignment.sitter_id or ""), actor_id
                )
            except BookingEngineError as exc:
                logger.warning(
                    "Assignment for booking %s failed: %s", assignment.booking_id, exc.message
                )
                report.failed.append(
                    SiblingFailure(assignment.booking_id, exc.kind, exc.message)
                )
                continue
            report.updated.append(assignment.booking_id)
            writes += 1
            await self.pacing.after_write(writes)

        logger.info(
            "Per-booking assignment: %d updated, %d skipped, %d failed",
            report.updated_count, len(report.skipped), len(report.failed),
        )
        return report

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    async def update_scheduled_date(
        self,
        actor_id: str,
        booking_id: str,
        new_date_time: datetime,
        reason: Optional[str] = None,
    ) -> Booking:
        """Move one booking to a new date/time, recording who changed it and why."""
        await self._begin(actor_id, "update_scheduled_date")
        booking = await self.store.get_booking(booking_id)
        if self.machine.is_terminal(booking.status):
            raise InvalidRequest(
                f"Cannot reschedule a {booking.status.value} booking", ids=[booking_id]
            )
        if new_date_time.tzinfo is None:
            new_date_time = new_date_time.replace(tzinfo=ZoneInfo(booking.time_zone_identifier))

        updated = await self.store.update_booking(
            booking_id,
            {
                "scheduled_date_time": new_date_time,
                "scheduled_time": format_display_time(new_date_time),
                "last_modified_by": actor_id,
                "modification_reason": reason or DEFAULT_RESCHEDULE_REASON,
            },
            expected={"status": booking.status},
        )
        logger.info("Booking %s rescheduled to %s", booking_id, new_date_time.isoformat())
        return updated

    async def get_series_bookings(self, series_id: str) -> list[Booking]:
        """All bookings of a series, earliest first."""
        return await self.store.query_bookings(series_id)
