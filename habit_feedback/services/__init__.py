"""
Core services for the application.

This package contains the feedback pipeline: trend detection, achievement
awarding, PHI sanitization, suggestion generation, notification delivery and
the coordinator that ties them together for each score submission.
"""

from .achievements import AchievementEngine
from .errors import (
    BadgeConflictError,
    DuplicateSubmissionError,
    FeedbackPipelineError,
    InvalidScoreError,
    RepositoryError,
    SubmissionConflictError,
    SuggestionGenerationError,
)
from .feedback_coordinator import FeedbackCoordinator, create_feedback_coordinator
from .notifications import NotificationChannel, NotificationOutbox, SessionBroker
from .patient_locks import PatientLockRegistry
from .phi_sanitizer import PHISanitizer
from .repository import ScoreRepository
from .result import Result
from .score_analysis import generate_health_score_analysis
from .submission import ScoreSubmissionService
from .suggestions import ProactiveSuggestionAgent, SuggestionGenerator, fallback_suggestion
from .trend_analysis import TrendAnalyzer, describe_trend

__all__ = [
    "AchievementEngine",
    "BadgeConflictError",
    "DuplicateSubmissionError",
    "FeedbackCoordinator",
    "FeedbackPipelineError",
    "InvalidScoreError",
    "NotificationChannel",
    "NotificationOutbox",
    "PHISanitizer",
    "PatientLockRegistry",
    "ProactiveSuggestionAgent",
    "RepositoryError",
    "Result",
    "ScoreRepository",
    "ScoreSubmissionService",
    "SessionBroker",
    "SubmissionConflictError",
    "SuggestionGenerationError",
    "SuggestionGenerator",
    "TrendAnalyzer",
    "create_feedback_coordinator",
    "describe_trend",
    "fallback_suggestion",
    "generate_health_score_analysis",
]
