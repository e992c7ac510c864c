"""Sitter candidates, scoring payloads and recommendations."""

from enum import Enum

from pydantic import BaseModel, Field


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class RecommendationSource(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


class SitterCandidate(BaseModel):
    """A sitter as listed by the candidate directory."""

    id: str
    name: str = ""
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    total_bookings: int = 0
    is_active: bool = True
    has_location_data: bool = False
    pet_types: set[str] = Field(default_factory=set)


class ScoringFeatures(BaseModel):
    """Per-candidate feature payload sent to the remote scoring function."""

    sitter_id: str
    rating: float
    total_bookings: int
    has_location_data: bool
    pet_type_matches: int
    total_pet_types: int
    is_preferred: bool = False


class RemoteScore(BaseModel):
    """Response body of the remote scoring function."""

    score: float = Field(ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    confidence: Confidence


class Recommendation(BaseModel):
    """A ranked sitter suggestion; consumed to pick a sitter_id, never stored."""

    sitter_id: str
    sitter_name: str = ""
    score: int = Field(ge=0, le=100)
    confidence: Confidence
    reasons: list[str] = Field(default_factory=list)
    source: RecommendationSource = RecommendationSource.REMOTE
