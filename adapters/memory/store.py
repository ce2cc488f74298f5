"""
In-memory score store implementing the ScoreRepository protocol.

Used by tests and the demo. Enforces the same constraints the production
schema does:
- one submission per (patient, day)
- unique (patient, badge name, tier), reported as a BadgeConflictError result
- read-after-write: a saved submission is visible to the next history read
"""

import asyncio
from datetime import date

import structlog

from habit_feedback.domain.models import Badge, CarePlanSummary, ScoreSubmission
from habit_feedback.services.errors import BadgeConflictError, SubmissionConflictError
from habit_feedback.services.result import Result

logger = structlog.get_logger(__name__)


class InMemoryScoreStore:
    """Dict-backed storage, safe for concurrent coroutines on one event loop."""

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self._submissions: dict[int, dict[date, ScoreSubmission]] = {}
        self._badges: dict[tuple[int, str, str], Badge] = {}
        self._care_plans: dict[int, CarePlanSummary] = {}
        self.logger = logger.bind(component="in_memory_score_store")

    async def _io(self) -> None:
        # Yields to the event loop between reads and writes.
        await asyncio.sleep(self.latency_seconds)

    def seed_history(self, submissions: list[ScoreSubmission]) -> None:
        """Load existing submissions without going through the duplicate check."""
        for submission in submissions:
            self._submissions.setdefault(submission.patient_id, {})[submission.score_date] = (
                submission
            )

    def set_care_plan(self, patient_id: int, care_plan: CarePlanSummary) -> None:
        self._care_plans[patient_id] = care_plan

    async def save_submission(self, submission: ScoreSubmission) -> ScoreSubmission:
        await self._io()
        by_date = self._submissions.setdefault(submission.patient_id, {})
        if submission.score_date in by_date:
            raise SubmissionConflictError(
                f"Submission for patient {submission.patient_id} on "
                f"{submission.score_date.isoformat()} already exists"
            )
        by_date[submission.score_date] = submission
        return submission

    async def get_submission_for_date(
        self, patient_id: int, score_date: date
    ) -> ScoreSubmission | None:
        await self._io()
        return self._submissions.get(patient_id, {}).get(score_date)

    async def get_history(self, patient_id: int) -> list[ScoreSubmission]:
        await self._io()
        by_date = self._submissions.get(patient_id, {})
        return [by_date[day] for day in sorted(by_date)]

    async def get_existing_badges(self, patient_id: int) -> list[Badge]:
        await self._io()
        return [badge for key, badge in self._badges.items() if key[0] == patient_id]

    async def insert_badge(self, badge: Badge) -> Result[Badge, BadgeConflictError]:
        await self._io()
        key = (badge.patient_id, badge.badge_name, badge.tier.value)
        if key in self._badges:
            return Result.err(BadgeConflictError(*key))
        self._badges[key] = badge
        self.logger.debug(
            "badge_inserted", patient_id=badge.patient_id, badge=badge.badge_name, tier=key[2]
        )
        return Result.ok(badge)

    async def get_care_plan(self, patient_id: int) -> CarePlanSummary:
        await self._io()
        return self._care_plans.get(patient_id, CarePlanSummary())
