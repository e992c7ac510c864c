"""
Sitter recommendation scoring.

Each active candidate is scored by the remote scoring function when one is
configured. A candidate whose remote call fails is scored locally with a
deterministic weighted formula, so one failure never blocks the ranking of
the others.

Local weights (maximum 103 before clamping to 100):
    rating × 8 ............................ 40
    min(total_bookings × 0.5, 30) ......... 30
    location data on file ................. 15
    active ................................  8
    matched pet types / required × 10 ..... 10
"""

import asyncio
import math
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from booking_engine.config import settings
from booking_engine.errors import DependencyUnavailable
from booking_engine.schemas.booking_schema import Booking
from booking_engine.schemas.sitter_schema import (
    Confidence,
    Recommendation,
    RecommendationSource,
    SitterCandidate,
    ScoringFeatures,
)
from booking_engine.tools.remote_scorer import RemoteScorer

logger = logging.getLogger(__name__)

HIGH_CONFIDENCE_SCORE = 80
MEDIUM_CONFIDENCE_SCORE = 60
HIGH_RATING_THRESHOLD = 4.5
EXPERIENCED_BOOKINGS_THRESHOLD = 50


@dataclass
class ScoringOutcome:
    """Remote scoring result for one candidate: a recommendation or the failure."""

    candidate: SitterCandidate
    recommendation: Optional[Recommendation] = None
    error: Optional[DependencyUnavailable] = None

    @property
    def ok(self) -> bool:
        return self.recommendation is not None


def _pet_types(values: Iterable[str]) -> set[str]:
    return {v.strip().lower() for v in values if v and v.strip()}


def build_features(
    booking: Booking,
    candidate: SitterCandidate,
    preferred_sitter_id: Optional[str] = None,
) -> ScoringFeatures:
    """Feature payload for one (booking, candidate) pair."""
    required = _pet_types(booking.pets)
    handled = _pet_types(candidate.pet_types)
    return ScoringFeatures(
        sitter_id=candidate.id,
        rating=candidate.rating,
        total_bookings=candidate.total_bookings,
        has_location_data=candidate.has_location_data,
        pet_type_matches=len(required & handled),
        total_pet_types=len(required),
        is_preferred=preferred_sitter_id is not None and candidate.id == preferred_sitter_id,
    )


def confidence_for(score: float) -> Confidence:
    if score >= HIGH_CONFIDENCE_SCORE:
        return Confidence.HIGH
    if score >= MEDIUM_CONFIDENCE_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


def _clamp_score(value: float) -> int:
    # Halves round up, not to even.
    return max(0, min(100, math.floor(value + 0.5)))


def score_locally(booking: Booking, candidate: SitterCandidate) -> Recommendation:
    """Deterministic fallback score for a candidate."""
    features = build_features(booking, candidate)
    score = 0.0
    reasons: list[str] = []

    score += min(candidate.rating * 8, 40)
    if candidate.rating >= HIGH_RATING_THRESHOLD:
        reasons.append(f"High rating ({candidate.rating:.1f})")

    score += min(candidate.total_bookings * 0.5, 30)
    if candidate.total_bookings > EXPERIENCED_BOOKINGS_THRESHOLD:
        reasons.append(f"Experienced ({candidate.total_bookings} bookings)")

    if candidate.has_location_data:
        score += 15
        reasons.append("Location data available")

    if candidate.is_active:
        score += 8
        reasons.append("Active and available")

    if features.total_pet_types:
        score += features.pet_type_matches / features.total_pet_types * 10
        if features.pet_type_matches == features.total_pet_types:
            reasons.append("Handles all required pet types")

    final = _clamp_score(score)
    return Recommendation(
        sitter_id=candidate.id,
        sitter_name=candidate.name,
        score=final,
        confidence=confidence_for(score),
        reasons=reasons,
        source=RecommendationSource.LOCAL,
    )


class SitterRecommendationScorer:
    """Ranks sitter candidates for a booking."""

    def __init__(
        self,
        remote: Optional[RemoteScorer] = None,
        max_recommendations: Optional[int] = None,
    ) -> None:
        self.remote = remote
        self.max_recommendations = max_recommendations or settings.scoring.max_recommendations

    async def score_candidates(
        self,
        booking: Booking,
        candidates: Iterable[SitterCandidate],
        preferred_sitter_id: Optional[str] = None,
    ) -> list[ScoringOutcome]:
        """Score every active candidate remotely, concurrently."""
        active = [c for c in candidates if c.is_active]
        return list(await asyncio.gather(
            *(self._score_remote(booking, c, preferred_sitter_id) for c in active)
        ))

    async def _score_remote(
        self,
        booking: Booking,
        candidate: SitterCandidate,
        preferred_sitter_id: Optional[str],
    ) -> ScoringOutcome:
        if self.remote is None:
            return ScoringOutcome(
                candidate=candidate,
                error=DependencyUnavailable("remote scorer (not configured)"),
            )
        features = build_features(booking, candidate, preferred_sitter_id)
        try:
            remote_score = await self.remote.score(features)
        except DependencyUnavailable as exc:
            return ScoringOutcome(candidate=candidate, error=exc)

        recommendation = Recommendation(
            sitter_id=candidate.id,
            sitter_name=candidate.name,
            score=_clamp_score(remote_score.score),
            confidence=remote_score.confidence,
            reasons=list(remote_score.reasons),
            source=RecommendationSource.REMOTE,
        )
        return ScoringOutcome(candidate=candidate, recommendation=recommendation)

    def rank(self, booking: Booking, outcomes: list[ScoringOutcome]) -> list[Recommendation]:
        """Fill failed outcomes with local scores, sort descending and truncate."""
        recommendations: list[Recommendation] = []
        degraded = 0
        for outcome in outcomes:
            if outcome.ok:
                recommendations.append(outcome.recommendation)
            else:
                degraded += 1
                recommendations.append(score_locally(booking, outcome.candidate))

        if degraded and self.remote is not None:
            logger.warning(
                "Remote scoring failed for %d of %d candidates on booking %s; "
                "using local scores",
                degraded, len(outcomes), booking.id,
            )
        elif degraded:
            logger.debug("No remote scorer configured; scored %d candidates locally", degraded)

        recommendations.sort(key=lambda r: r.score, reverse=True)
        return recommendations[: self.max_recommendations]

    async def recommend(
        self,
        booking: Booking,
        candidates: Iterable[SitterCandidate],
        preferred_sitter_id: Optional[str] = None,
    ) -> list[Recommendation]:
        """Top recommendations for a booking, best first."""
        outcomes = await self.score_candidates(booking, candidates, preferred_sitter_id)
        return self.rank(booking, outcomes)
