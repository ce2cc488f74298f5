"""
Streak detection over a patient's recent self-scores.

Key rules:
- At least three submissions are needed before any trend is reported
- A streak is counted backward from the latest submission (inclusive) and
  stops at the first score that breaks the condition
- Negative streaks (three or more days at 6 or below) outrank positive
  streaks (five or more days at 8 or above)
- Ties between categories are broken by CATEGORY_PRIORITY
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog

from habit_feedback.domain.models import ScoreCategory, ScoreSubmission, TrendResult, TrendType
from habit_feedback.services.repository import ScoreRepository

logger = structlog.get_logger(__name__)

MINIMUM_HISTORY = 3


@dataclass(frozen=True)
class StreakRule:
    """Condition a score must meet and how long the run must be to count."""

    trend_type: TrendType
    condition: Callable[[int], bool]
    min_length: int
    symbol: str
    label: str


NEGATIVE_STREAK_RULE = StreakRule(
    trend_type=TrendType.NEGATIVE_STREAK,
    condition=lambda score: score <= 6,
    min_length=3,
    symbol="≤6",
    label="low",
)
POSITIVE_STREAK_RULE = StreakRule(
    trend_type=TrendType.POSITIVE_STREAK,
    condition=lambda score: score >= 8,
    min_length=5,
    symbol="≥8",
    label="high",
)

# Checked in order; the first rule that matches a category wins for that category.
STREAK_RULES: tuple[StreakRule, ...] = (NEGATIVE_STREAK_RULE, POSITIVE_STREAK_RULE)

# Lower rank wins: negative streaks are reported ahead of positive ones.
TREND_TYPE_PRIORITY: dict[TrendType, int] = {
    TrendType.NEGATIVE_STREAK: 0,
    TrendType.POSITIVE_STREAK: 1,
}

# Tie-break between categories with the same trend type. Pending confirmation
# from the clinical owners.
CATEGORY_PRIORITY: dict[ScoreCategory, int] = {
    ScoreCategory.DIET: 0,
    ScoreCategory.EXERCISE: 1,
    ScoreCategory.MEDICATION: 2,
}


def count_trailing(scores: Sequence[int], condition: Callable[[int], bool]) -> int:
    """Length of the run at the end of scores where every value meets condition."""
    count = 0
    for score in reversed(scores):
        if not condition(score):
            break
        count += 1
    return count


def mean_one_decimal(values: Sequence[int]) -> float:
    """Arithmetic mean rounded half-up to one decimal place."""
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def describe_trend(trend: TrendResult) -> str:
    """Human-readable one-liner, e.g. '3-day streak of low diet scores (≤6)'."""
    rule = (
        NEGATIVE_STREAK_RULE if trend.type == TrendType.NEGATIVE_STREAK else POSITIVE_STREAK_RULE
    )
    return (
        f"{trend.streak_length}-day streak of {rule.label} "
        f"{trend.category.value} scores ({rule.symbol})"
    )


class TrendAnalyzer:
    """Pure streak detection over a chronological score history."""

    def __init__(self, rules: Sequence[StreakRule] = STREAK_RULES) -> None:
        self.rules = tuple(rules)
        self.logger = logger.bind(component="trend_analyzer")

    def analyze(self, history: Sequence[ScoreSubmission]) -> TrendResult | None:
        """
        Detect the single most significant trend in a history.

        Args:
            history: Submissions for one patient, oldest first. The latest entry
                is the submission that triggered the analysis.

        Returns:
            The highest-priority TrendResult, or None when no streak qualifies.
        """
        if len(history) < MINIMUM_HISTORY:
            return None

        candidates = [
            trend
            for category in ScoreCategory
            if (trend := self.analyze_category(history, category)) is not None
        ]
        if not candidates:
            return None

        return min(
            candidates,
            key=lambda t: (TREND_TYPE_PRIORITY[t.type], CATEGORY_PRIORITY[t.category]),
        )

    def analyze_category(
        self, history: Sequence[ScoreSubmission], category: ScoreCategory
    ) -> TrendResult | None:
        """Check one category against each streak rule in order."""
        scores = [submission.score_for(category) for submission in history]
        if len(scores) < MINIMUM_HISTORY:
            return None

        for rule in self.rules:
            streak = count_trailing(scores, rule.condition)
            if streak >= rule.min_length:
                return TrendResult(
                    type=rule.trend_type,
                    category=category,
                    streak_length=streak,
                    current_score=scores[-1],
                    average_score=mean_one_decimal(scores),
                )
        return None

    async def analyze_patient(
        self, repository: ScoreRepository, patient_id: int, window_size: int | None = None
    ) -> TrendResult | None:
        """
        Load a patient's history and analyze it.

        Repository failures are logged and reported as "no trend" so analytics
        can never fail a score save.
        """
        try:
            history = await repository.get_history(patient_id)
        except Exception as e:
            self.logger.error("trend_history_read_failed", patient_id=patient_id, error=str(e))
            return None

        return self.analyze_recent(patient_id, history, window_size)

    def analyze_recent(
        self,
        patient_id: int,
        history: Sequence[ScoreSubmission],
        window_size: int | None = None,
    ) -> TrendResult | None:
        """Analyze the newest `window_size` submissions of a history in any order."""
        recent = sorted(history, key=lambda s: s.score_date)
        if window_size is not None:
            recent = recent[-window_size:]

        trend = self.analyze(recent)
        if trend is not None:
            self.logger.info(
                "trend_detected",
                patient_id=patient_id,
                trend_type=trend.type.value,
                category=trend.category.value,
                description=describe_trend(trend),
            )
        return trend
