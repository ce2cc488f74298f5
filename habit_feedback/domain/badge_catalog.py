"""
Fixed achievement catalog.

Three badges (one per score category) times four tiers. The table is versioned
data rather than inline logic so tests and future tuning can swap it without
touching the engine. Windows count the most recent *submitted* days; calendar
gaps between submissions do not break a run.
"""

from pydantic import BaseModel, ConfigDict, Field

from habit_feedback.domain.models import BadgeTier, ScoreCategory

BADGE_CATALOG_VERSION = "2024.1"


class TierRequirement(BaseModel):
    """Days of submissions required and the minimum score on each of them."""

    model_config = ConfigDict(frozen=True)

    tier: BadgeTier
    days_required: int = Field(gt=0)
    score_threshold: int = Field(ge=1, le=10)


class BadgeDefinition(BaseModel):
    """A named badge tracked against one score category."""

    model_config = ConfigDict(frozen=True)

    badge_name: str = Field(min_length=1)
    category: ScoreCategory
    tiers: tuple[TierRequirement, ...]


class BadgeCatalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    badges: tuple[BadgeDefinition, ...]

    def combinations(self) -> list[tuple[BadgeDefinition, TierRequirement]]:
        """Every (badge, tier) pair in catalog order."""
        return [(badge, requirement) for badge in self.badges for requirement in badge.tiers]


DEFAULT_TIER_REQUIREMENTS: tuple[TierRequirement, ...] = (
    TierRequirement(tier=BadgeTier.BRONZE, days_required=14, score_threshold=5),
    TierRequirement(tier=BadgeTier.SILVER, days_required=28, score_threshold=7),
    TierRequirement(tier=BadgeTier.GOLD, days_required=112, score_threshold=8),
    TierRequirement(tier=BadgeTier.PLATINUM, days_required=168, score_threshold=9),
)

DEFAULT_BADGE_CATALOG = BadgeCatalog(
    version=BADGE_CATALOG_VERSION,
    badges=(
        BadgeDefinition(
            badge_name="Healthy Meal Plan Hero",
            category=ScoreCategory.DIET,
            tiers=DEFAULT_TIER_REQUIREMENTS,
        ),
        BadgeDefinition(
            badge_name="E&W Consistency Champion",
            category=ScoreCategory.EXERCISE,
            tiers=DEFAULT_TIER_REQUIREMENTS,
        ),
        BadgeDefinition(
            badge_name="Medication Maverick",
            category=ScoreCategory.MEDICATION,
            tiers=DEFAULT_TIER_REQUIREMENTS,
        ),
    ),
)
