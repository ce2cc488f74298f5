"""
Domain models for daily habit scoring and feedback.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; value objects are frozen so a score history
handed to an analyzer cannot be changed underneath it.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScoreCategory(str, Enum):
    """The three self-scored habit channels."""

    DIET = "diet"
    EXERCISE = "exercise"
    MEDICATION = "medication"

    @property
    def score_field(self) -> str:
        """Name of the ScoreSubmission column holding this category's score."""
        return f"{self.value}_score"


class TrendType(str, Enum):
    """Kinds of streak the trend analyzer reports."""

    POSITIVE_STREAK = "positive_streak"
    NEGATIVE_STREAK = "negative_streak"


class BadgeTier(str, Enum):
    """Achievement tiers, lowest to highest."""

    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"


class ScoreSubmission(BaseModel):
    """One patient's self-scores for one day."""

    model_config = ConfigDict(frozen=True, strict=True)

    patient_id: int = Field(gt=0)
    score_date: date
    diet_score: int = Field(ge=1, le=10)
    exercise_score: int = Field(ge=1, le=10)
    medication_score: int = Field(ge=1, le=10)

    def score_for(self, category: ScoreCategory) -> int:
        return getattr(self, category.score_field)


class TrendResult(BaseModel):
    """A detected streak in one category. Transient, never persisted."""

    model_config = ConfigDict(frozen=True)

    type: TrendType
    category: ScoreCategory
    streak_length: int = Field(ge=1)
    current_score: int = Field(ge=1, le=10)
    average_score: float = Field(ge=1.0, le=10.0, description="Mean over the analyzed history")


class Badge(BaseModel):
    """An awarded achievement. Unique per (patient_id, badge_name, tier) and immutable."""

    model_config = ConfigDict(frozen=True)

    patient_id: int
    badge_name: str
    tier: BadgeTier
    earned_date: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[int, str, BadgeTier]:
        return (self.patient_id, self.badge_name, self.tier)


class CarePlanSummary(BaseModel):
    """Clinician-authored care plan directives, one optional text per category."""

    model_config = ConfigDict(frozen=True)

    diet: str | None = None
    exercise: str | None = None
    medication: str | None = None

    def directive_for(self, category: ScoreCategory) -> str | None:
        return getattr(self, category.value)


class FeedbackOutcome(BaseModel):
    """What the coordinator decided for a single submission."""

    proactive_suggestion_sent: bool = False
    new_badges: list[Badge] = Field(default_factory=list)


class ProactiveSuggestionPayload(BaseModel):
    """Message pushed to a patient's live session when a trend is detected."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    type: Literal["proactive_suggestion"] = "proactive_suggestion"
    content: str = Field(min_length=1)
    trend_type: TrendType
    category: ScoreCategory
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SubmissionResponse(BaseModel):
    """Contract returned to the UI layer for a score submission."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    data: ScoreSubmission
    new_badges: list[Badge] = Field(default_factory=list)
    proactive_suggestion_sent: bool = False
