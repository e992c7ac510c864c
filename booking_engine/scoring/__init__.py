from booking_engine.scoring.recommender import (
    ScoringOutcome,
    SitterRecommendationScorer,
    build_features,
    confidence_for,
    score_locally,
)

__all__ = [
    "SitterRecommendationScorer",
    "ScoringOutcome",
    "build_features",
    "confidence_for",
    "score_locally",
]
