"""
Tiered achievement awarding.

Every (badge, tier) pair in the catalog is evaluated on each submission. A
pair qualifies when the patient has at least `days_required` submissions and
the most recent `days_required` of them all meet the tier's score threshold.
Awards are monotonic: nothing is ever revoked, and a pair already stored is
skipped, which makes re-evaluation of an unchanged history a no-op.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog

from habit_feedback.domain.badge_catalog import (
    DEFAULT_BADGE_CATALOG,
    BadgeCatalog,
    BadgeDefinition,
    TierRequirement,
)
from habit_feedback.domain.models import Badge, BadgeTier, ScoreSubmission
from habit_feedback.services.repository import ScoreRepository

logger = structlog.get_logger(__name__)


def meets_requirement(
    recent_first: Sequence[ScoreSubmission],
    badge: BadgeDefinition,
    requirement: TierRequirement,
) -> bool:
    """Whether the newest `days_required` submissions all reach the tier threshold."""
    if len(recent_first) < requirement.days_required:
        return False
    window = recent_first[: requirement.days_required]
    return all(s.score_for(badge.category) >= requirement.score_threshold for s in window)


class AchievementEngine:
    """Computes and persists newly earned badges."""

    def __init__(self, catalog: BadgeCatalog = DEFAULT_BADGE_CATALOG) -> None:
        self.catalog = catalog
        self.logger = logger.bind(component="achievement_engine", catalog=catalog.version)

    def qualifying_awards(
        self,
        history: Sequence[ScoreSubmission],
        existing: Sequence[Badge],
    ) -> list[tuple[str, BadgeTier]]:
        """
        Pure evaluation of which (badge_name, tier) pairs are newly earned.

        Args:
            history: The patient's submissions in any order.
            existing: Badges already recorded for the patient.

        Returns:
            Pairs in catalog order that qualify and are not yet recorded.
        """
        recent_first = sorted(history, key=lambda s: s.score_date, reverse=True)
        already_awarded = {(b.badge_name, b.tier) for b in existing}

        return [
            (badge.badge_name, requirement.tier)
            for badge, requirement in self.catalog.combinations()
            if (badge.badge_name, requirement.tier) not in already_awarded
            and meets_requirement(recent_first, badge, requirement)
        ]

    async def award_badges(
        self,
        repository: ScoreRepository,
        patient_id: int,
        history: Sequence[ScoreSubmission] | None = None,
    ) -> list[Badge]:
        """
        Award every newly qualifying badge for a patient.

        Pass `history` to evaluate against a snapshot already read by the
        caller. Read failures are logged and yield no badges; unique-index
        conflicts from a concurrent submission are treated as already awarded.
        """
        try:
            if history is None:
                history = await repository.get_history(patient_id)
            existing = await repository.get_existing_badges(patient_id)
        except Exception as e:
            self.logger.error("badge_history_read_failed", patient_id=patient_id, error=str(e))
            return []

        awarded: list[Badge] = []
        earned_date = datetime.now(UTC)

        for badge_name, tier in self.qualifying_awards(history, existing):
            badge = Badge(
                patient_id=patient_id, badge_name=badge_name, tier=tier, earned_date=earned_date
            )
            result = await repository.insert_badge(badge)
            if result.is_err():
                self.logger.info(
                    "badge_already_awarded",
                    patient_id=patient_id,
                    badge_name=badge_name,
                    tier=tier.value,
                )
                continue
            awarded.append(result.unwrap())

        if awarded:
            self.logger.info(
                "badges_awarded",
                patient_id=patient_id,
                badges=[f"{b.badge_name} {b.tier.value}" for b in awarded],
            )
        return awarded

    async def get_patient_badges(self, repository: ScoreRepository, patient_id: int) -> list[Badge]:
        """All badges a patient holds, most recently earned first."""
        badges = await repository.get_existing_badges(patient_id)
        return sorted(badges, key=lambda b: b.earned_date, reverse=True)
