"""Exceptions raised across the feedback pipeline."""


class FeedbackPipelineError(Exception):
    """Base class for every pipeline error."""


class RepositoryError(FeedbackPipelineError):
    """The score repository could not be read or written."""


class SubmissionConflictError(RepositoryError):
    """The unique (patient, day) constraint rejected a submission."""


class BadgeConflictError(FeedbackPipelineError):
    """A badge with the same (patient, name, tier) is already stored."""

    def __init__(self, patient_id: int, badge_name: str, tier: str) -> None:
        super().__init__(f"Badge {badge_name!r} {tier} already awarded to patient {patient_id}")
        self.patient_id = patient_id
        self.badge_name = badge_name
        self.tier = tier


class SuggestionGenerationError(FeedbackPipelineError):
    """The suggestion generator failed to produce usable text."""


class SubmissionError(FeedbackPipelineError):
    """A score submission was rejected before persistence."""


class InvalidScoreError(SubmissionError):
    """A score was missing, not an integer, or outside 1-10."""


class DuplicateSubmissionError(SubmissionError):
    """The patient already submitted scores for this day."""
