"""
Daily score submission entry point.

Validates and persists a submission, then hands the committed row to the
feedback coordinator. The score save is the only part that can fail the
request; the response always reports success once the row is stored.
"""

from datetime import UTC, date, datetime

import structlog
from pydantic import ValidationError

from habit_feedback.domain.models import FeedbackOutcome, ScoreSubmission, SubmissionResponse
from habit_feedback.services.errors import (
    DuplicateSubmissionError,
    InvalidScoreError,
    SubmissionConflictError,
)
from habit_feedback.services.feedback_coordinator import FeedbackCoordinator
from habit_feedback.services.repository import ScoreRepository

logger = structlog.get_logger(__name__)

SUCCESS_MESSAGE = "Scores saved successfully"
DUPLICATE_MESSAGE = (
    "Daily scores have already been submitted for today. Please try again tomorrow."
)


class ScoreSubmissionService:
    """Accepts one submission per patient per day and reports the feedback outcome."""

    def __init__(self, repository: ScoreRepository, coordinator: FeedbackCoordinator) -> None:
        self.repository = repository
        self.coordinator = coordinator
        self.logger = logger.bind(component="score_submission_service")

    async def submit(
        self,
        patient_id: int,
        diet_score: int,
        exercise_score: int,
        medication_score: int,
        score_date: date | None = None,
    ) -> SubmissionResponse:
        """
        Save a day's scores and run the feedback pipeline.

        Raises:
            InvalidScoreError: a score is not an integer in 1-10.
            DuplicateSubmissionError: the patient already submitted for that day.
        """
        try:
            submission = ScoreSubmission(
                patient_id=patient_id,
                score_date=score_date or datetime.now(UTC).date(),
                diet_score=diet_score,
                exercise_score=exercise_score,
                medication_score=medication_score,
            )
        except ValidationError as e:
            self.logger.warning("invalid_scores_submitted", patient_id=patient_id)
            raise InvalidScoreError("Scores must be a number between 1 and 10.") from e

        existing = await self.repository.get_submission_for_date(patient_id, submission.score_date)
        if existing is not None:
            raise self._duplicate(submission)

        try:
            saved = await self.repository.save_submission(submission)
        except SubmissionConflictError as e:
            # A concurrent request for the same day committed first.
            raise self._duplicate(submission) from e

        self.logger.info(
            "daily_scores_saved",
            patient_id=patient_id,
            diet=saved.diet_score,
            exercise=saved.exercise_score,
            medication=saved.medication_score,
        )

        outcome = await self._run_feedback(saved)

        return SubmissionResponse(
            success=True,
            message=SUCCESS_MESSAGE,
            data=saved,
            new_badges=outcome.new_badges,
            proactive_suggestion_sent=outcome.proactive_suggestion_sent,
        )

    def _duplicate(self, submission: ScoreSubmission) -> DuplicateSubmissionError:
        self.logger.warning(
            "duplicate_submission_rejected",
            patient_id=submission.patient_id,
            score_date=submission.score_date.isoformat(),
        )
        return DuplicateSubmissionError(DUPLICATE_MESSAGE)

    async def _run_feedback(self, saved: ScoreSubmission) -> FeedbackOutcome:
        try:
            return await self.coordinator.process_submission(saved)
        except Exception as e:
            self.logger.exception(
                "feedback_failed_after_save", patient_id=saved.patient_id, error=str(e)
            )
            return FeedbackOutcome()
