"""
Storage boundary for the feedback pipeline.

The pipeline only depends on this Protocol; persistence mechanics live in
adapters. Implementations must be read-after-write consistent: a submission
returned by save_submission is visible to the next get_history call.
"""

from datetime import date
from typing import Protocol

from habit_feedback.domain.models import Badge, CarePlanSummary, ScoreSubmission
from habit_feedback.services.errors import BadgeConflictError
from habit_feedback.services.result import Result


class ScoreRepository(Protocol):
    """
    Score history and badge storage.

    Read methods raise RepositoryError on failure.
    """

    async def save_submission(self, submission: ScoreSubmission) -> ScoreSubmission:
        """
        Persist a new submission and return the committed row.

        Raises SubmissionConflictError when the patient already has a row for
        that day.
        """
        ...

    async def get_submission_for_date(
        self, patient_id: int, score_date: date
    ) -> ScoreSubmission | None:
        """Return the patient's submission for a day, if any."""
        ...

    async def get_history(self, patient_id: int) -> list[ScoreSubmission]:
        """Return every submission for the patient, oldest first."""
        ...

    async def get_existing_badges(self, patient_id: int) -> list[Badge]:
        """Return every badge already awarded to the patient."""
        ...

    async def insert_badge(self, badge: Badge) -> Result[Badge, BadgeConflictError]:
        """
        Insert a badge, enforcing uniqueness of (patient_id, badge_name, tier).

        Returns:
            Result containing the stored badge, or a BadgeConflictError when the
            unique index rejects a duplicate.
        """
        ...

    async def get_care_plan(self, patient_id: int) -> CarePlanSummary:
        """Return the patient's care plan directives (empty when none are set)."""
        ...
