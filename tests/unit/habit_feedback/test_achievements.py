"""
Tests for tiered badge awarding.

Covers:
- Tier windows over the most recent submitted days
- Idempotent re-evaluation
- Unique-constraint conflicts treated as already awarded
- Read failures yielding no badges
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from habit_feedback.domain.badge_catalog import (
    DEFAULT_BADGE_CATALOG,
    BadgeCatalog,
    BadgeDefinition,
    TierRequirement,
)
from habit_feedback.domain.models import Badge, BadgeTier, ScoreCategory
from habit_feedback.services.achievements import AchievementEngine, meets_requirement
from habit_feedback.services.errors import BadgeConflictError, RepositoryError
from habit_feedback.services.result import Result


@pytest.fixture
def engine() -> AchievementEngine:
    return AchievementEngine()


class TestQualifyingAwards:
    def test_fourteen_days_at_five_earns_bronze_diet(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        awards = engine.qualifying_awards(history_factory(diet=[5] * 14, exercise=[4] * 14), [])

        assert ("Healthy Meal Plan Hero", BadgeTier.BRONZE) in awards
        assert all(name != "E&W Consistency Champion" for name, _ in awards)

    def test_thirteen_days_are_not_enough(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        history = history_factory(diet=[5] * 13, exercise=[4] * 13, medication=[4] * 13)

        assert engine.qualifying_awards(history, []) == []

    def test_one_low_day_inside_window_blocks_the_tier(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        diet = [9] * 20
        diet[-7] = 4
        history = history_factory(diet=diet, exercise=[1] * 20, medication=[1] * 20)

        assert engine.qualifying_awards(history, []) == []

    def test_low_day_before_window_does_not_matter(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        history = history_factory(diet=[1] + [5] * 14, exercise=[1] * 15, medication=[1] * 15)

        assert engine.qualifying_awards(history, []) == [
            ("Healthy Meal Plan Hero", BadgeTier.BRONZE)
        ]

    def test_several_categories_qualify_in_one_pass(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        awards = engine.qualifying_awards(history_factory(diet=[8] * 28), [])

        assert awards == [
            ("Healthy Meal Plan Hero", BadgeTier.BRONZE),
            ("Healthy Meal Plan Hero", BadgeTier.SILVER),
            ("E&W Consistency Champion", BadgeTier.BRONZE),
            ("E&W Consistency Champion", BadgeTier.SILVER),
            ("Medication Maverick", BadgeTier.BRONZE),
            ("Medication Maverick", BadgeTier.SILVER),
        ]

    def test_existing_badges_are_not_reawarded(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        history = history_factory(diet=[6] * 14, exercise=[1] * 14, medication=[1] * 14)
        existing = [Badge(patient_id=1, badge_name="Healthy Meal Plan Hero", tier=BadgeTier.BRONZE)]

        assert engine.qualifying_awards(history, existing) == []

    def test_input_order_does_not_matter(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        history = history_factory(diet=[1] + [5] * 14, exercise=[1] * 15, medication=[1] * 15)

        assert engine.qualifying_awards(list(reversed(history)), []) == engine.qualifying_awards(
            history, []
        )

    def test_calendar_gaps_do_not_break_the_window(self, history_factory) -> None:
        sparse = BadgeCatalog(
            version="test",
            badges=(
                BadgeDefinition(
                    badge_name="Medication Maverick",
                    category=ScoreCategory.MEDICATION,
                    tiers=(
                        TierRequirement(tier=BadgeTier.BRONZE, days_required=3, score_threshold=5),
                    ),
                ),
            ),
        )
        history = [
            submission.model_copy(
                update={"score_date": submission.score_date + timedelta(days=gap)}
            )
            for submission, gap in zip(
                history_factory(medication=[6, 6, 6]), (0, 5, 9), strict=True
            )
        ]

        assert AchievementEngine(sparse).qualifying_awards(history, []) == [
            ("Medication Maverick", BadgeTier.BRONZE)
        ]


class TestMeetsRequirement:
    def test_short_history_never_meets(self, history_factory) -> None:
        badge = DEFAULT_BADGE_CATALOG.badges[0]
        bronze = badge.tiers[0]

        assert not meets_requirement(history_factory(diet=[10] * 3), badge, bronze)


class TestAwardBadges:
    async def test_awards_and_persists_new_badges(
        self, engine: AchievementEngine, store, history_factory
    ) -> None:
        store.seed_history(history_factory(diet=[5] * 14, exercise=[1] * 14, medication=[1] * 14))

        awarded = await engine.award_badges(store, 1)

        assert [(b.badge_name, b.tier) for b in awarded] == [
            ("Healthy Meal Plan Hero", BadgeTier.BRONZE)
        ]
        assert awarded[0].patient_id == 1
        assert await store.get_existing_badges(1) == awarded

    async def test_second_evaluation_is_a_no_op(
        self, engine: AchievementEngine, store, history_factory
    ) -> None:
        store.seed_history(history_factory(diet=[9] * 14))

        first = await engine.award_badges(store, 1)
        second = await engine.award_badges(store, 1)

        assert len(first) == 3
        assert second == []
        assert len(await store.get_existing_badges(1)) == 3

    async def test_uses_supplied_history_snapshot(
        self, engine: AchievementEngine, store, history_factory
    ) -> None:
        awarded = await engine.award_badges(
            store, 1, history=history_factory(diet=[5] * 14, exercise=[1] * 14, medication=[1] * 14)
        )

        assert len(awarded) == 1

    async def test_conflict_from_concurrent_insert_is_skipped(
        self, engine: AchievementEngine, history_factory
    ) -> None:
        history = history_factory(diet=[9] * 14, exercise=[1] * 14, medication=[1] * 14)
        repository = _RacingRepository(history)

        awarded = await engine.award_badges(repository, 1)

        assert awarded == []
        assert repository.insert_attempts == 1

    async def test_read_failure_yields_no_badges(self, engine: AchievementEngine) -> None:
        assert await engine.award_badges(_BrokenRepository(), 1) == []

    async def test_get_patient_badges_newest_first(
        self, engine: AchievementEngine, store
    ) -> None:
        now = datetime.now(UTC)
        older = Badge(
            patient_id=1,
            badge_name="Healthy Meal Plan Hero",
            tier=BadgeTier.BRONZE,
            earned_date=now - timedelta(days=20),
        )
        newer = Badge(
            patient_id=1,
            badge_name="Healthy Meal Plan Hero",
            tier=BadgeTier.SILVER,
            earned_date=now,
        )
        await store.insert_badge(older)
        await store.insert_badge(newer)

        assert await engine.get_patient_badges(store, 1) == [newer, older]


class _RacingRepository:
    """Another submission stored the badge between our read and our insert."""

    def __init__(self, history) -> None:
        self.history = history
        self.insert_attempts = 0

    async def get_history(self, patient_id: int):
        return self.history

    async def get_existing_badges(self, patient_id: int) -> list[Badge]:
        return []

    async def insert_badge(self, badge: Badge) -> Result[Badge, BadgeConflictError]:
        self.insert_attempts += 1
        return Result.err(BadgeConflictError(badge.patient_id, badge.badge_name, badge.tier.value))


class _BrokenRepository:
    async def get_history(self, patient_id: int):
        raise RepositoryError("connection reset")

    async def get_existing_badges(self, patient_id: int) -> list[Badge]:
        raise RepositoryError("connection reset")
