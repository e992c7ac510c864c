"""
Series consistency: carrying an approval across sibling bookings.

When one booking of a recurring series is approved or scheduled, the
remaining pending/scheduled bookings of the same series are moved forward
as well. Siblings are written one at a time, each conditioned on the
status it was read with, and paced so a long series does not hammer the
record store.

Usage:
    coordinator = SeriesConsistencyCoordinator(store, directory, scorer)
    report = await coordinator.propagate(booking, actor_id, AutoAssignmentPolicy(enabled=True))
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from booking_engine.config import settings
from booking_engine.errors import BookingEngineError, DependencyUnavailable, NotFound
from booking_engine.lifecycle.state_machine import (
    BookingStatusStateMachine,
    payment_auto_approves,
)
from booking_engine.logging_context import get_request_logger
from booking_engine.schemas.booking_schema import Booking, BookingStatus
from booking_engine.schemas.sitter_schema import Confidence, Recommendation, SitterCandidate
from booking_engine.scoring.recommender import SitterRecommendationScorer
from booking_engine.tools.record_store import RecordStore
from booking_engine.tools.sitter_directory import SitterDirectory

logger = get_request_logger(__name__)

PROPAGATING_STATUSES = frozenset({BookingStatus.APPROVED, BookingStatus.SCHEDULED})
SIBLING_STATUSES = (BookingStatus.PENDING, BookingStatus.SCHEDULED)


@dataclass(frozen=True)
class AutoAssignmentPolicy:
    """Whether, and how confidently, sitters may be attached automatically."""

    enabled: bool = False
    min_confidence: Confidence = Confidence.LOW

    def allows(self, recommendation: Recommendation) -> bool:
        return self.enabled and recommendation.confidence.rank >= self.min_confidence.rank

    def choose(self, recommendations: list[Recommendation]) -> Optional[Recommendation]:
        """The top recommendation, if the policy accepts it."""
        if recommendations and self.allows(recommendations[0]):
            return recommendations[0]
        return None


@dataclass(frozen=True)
class WritePacing:
    """Pause ``delay_sec`` after every ``writes_per_pause`` sequential writes."""

    delay_sec: float = settings.pacing.sibling_write_delay_sec
    writes_per_pause: int = settings.pacing.writes_per_pause

    async def after_write(self, writes_done: int) -> None:
        if self.delay_sec > 0 and writes_done % self.writes_per_pause == 0:
            await asyncio.sleep(self.delay_sec)


@dataclass
class SiblingFailure:
    booking_id: str
    kind: str
    reason: str


@dataclass
class PropagationReport:
    """What happened to each sibling during one propagation."""

    series_id: str
    trigger_booking_id: str
    advanced: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    auto_assigned: dict[str, str] = field(default_factory=dict)
    failed: list[SiblingFailure] = field(default_factory=list)
    auto_assignment_skipped: Optional[str] = None

    @property
    def sibling_count(self) -> int:
        return len(self.advanced) + len(self.unchanged) + len(self.failed)


class SeriesConsistencyCoordinator:
    """Moves sibling bookings forward when one booking of a series is approved."""

    def __init__(
        self,
        store: RecordStore,
        directory: SitterDirectory,
        scorer: SitterRecommendationScorer,
        pacing: Optional[WritePacing] = None,
        machine: Optional[BookingStatusStateMachine] = None,
    ) -> None:
        self.store = store
        self.directory = directory
        self.scorer = scorer
        self.pacing = pacing or WritePacing()
        self.machine = machine or BookingStatusStateMachine()

    async def propagate(
        self,
        trigger_booking: Booking,
        actor_id: str,
        policy: AutoAssignmentPolicy,
    ) -> PropagationReport:
        """
        Advance every pending/scheduled sibling of ``trigger_booking``.

        Failures on individual siblings are recorded in the report and do
        not stop the remaining siblings.
        """
        series_id = trigger_booking.recurring_series_id
        report = PropagationReport(
            series_id=series_id or "",
            trigger_booking_id=trigger_booking.id,
        )
        if not series_id or trigger_booking.status not in PROPAGATING_STATUSES:
            return report

        siblings = [
            b for b in await self.store.query_bookings(series_id, statuses=SIBLING_STATUSES)
            if b.id != trigger_booking.id
        ]
        candidates = await self._load_candidates(siblings, policy, report)
        preferred_sitter_id = (
            await self.preferred_sitter_for(series_id) if candidates is not None else None
        )

        writes = 0
        for sibling in siblings:
            try:
                written = await self._advance_sibling(
                    sibling, actor_id, policy, candidates, report, preferred_sitter_id
                )
            except BookingEngineError as exc:
                logger.warning(
                    "Sibling %s of series %s not updated: %s", sibling.id, series_id, exc.message
                )
                report.failed.append(
                    SiblingFailure(booking_id=sibling.id, kind=exc.kind, reason=exc.message)
                )
                continue
            if written:
                writes += 1
                await self.pacing.after_write(writes)

        logger.info(
            "Series %s propagation: %d advanced, %d unchanged, %d failed",
            series_id, len(report.advanced), len(report.unchanged), len(report.failed),
        )
        return report

    async def preferred_sitter_for(self, series_id: Optional[str]) -> Optional[str]:
        """The series' preferred sitter, or None when the series record is missing."""
        if not series_id:
            return None
        try:
            series = await self.store.get_series(series_id)
        except NotFound:
            logger.debug("No series record for %s; no preferred sitter", series_id)
            return None
        return series.preferred_sitter_id

    async def _load_candidates(
        self,
        siblings: list[Booking],
        policy: AutoAssignmentPolicy,
        report: PropagationReport,
    ) -> Optional[list[SitterCandidate]]:
        """Fetch the candidate pool once; None means no sibling gets auto-assigned."""
        if not policy.enabled or all(s.has_sitter for s in siblings):
            return None
        try:
            return await self.directory.list_active_sitters()
        except DependencyUnavailable as exc:
            report.auto_assignment_skipped = exc.message
            logger.warning(
                "Auto-assignment skipped for all siblings of series %s: %s",
                report.series_id, exc.message,
            )
            return None

    async def _advance_sibling(
        self,
        sibling: Booking,
        actor_id: str,
        policy: AutoAssignmentPolicy,
        candidates: Optional[list[SitterCandidate]],
        report: PropagationReport,
        preferred_sitter_id: Optional[str] = None,
    ) -> bool:
        changes: dict[str, Any] = {}

        if candidates is not None and not sibling.has_sitter:
            chosen = policy.choose(
                await self.scorer.recommend(sibling, candidates, preferred_sitter_id)
            )
            if chosen is not None:
                changes["sitter_id"] = chosen.sitter_id
                changes["sitter_name"] = chosen.sitter_name or None

        has_sitter = sibling.has_sitter or "sitter_id" in changes
        decision = self.machine.next_status(
            sibling.status,
            has_sitter=has_sitter,
            payment_auto_approves=payment_auto_approves(sibling.payment_method),
            requested_status=BookingStatus.APPROVED,
            approved_at_set=sibling.approved_at is not None,
        )

        if decision.status == sibling.status and not changes:
            report.unchanged.append(sibling.id)
            return False

        changes["status"] = decision.status
        changes["last_modified_by"] = actor_id
        if decision.set_approved_at:
            changes["approved_at"] = datetime.now(timezone.utc)

        await self.store.update_booking(
            sibling.id,
            changes,
            expected={"status": sibling.status, "sitter_id": sibling.sitter_id},
        )

        if "sitter_id" in changes:
            report.auto_assigned[sibling.id] = changes["sitter_id"]
        if decision.status != sibling.status:
            report.advanced.append(sibling.id)
        else:
            report.unchanged.append(sibling.id)
        logger.debug(
            "Sibling %s: %s -> %s", sibling.id, sibling.status.value, decision.status.value
        )
        return True
