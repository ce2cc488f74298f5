"""
Per-submission feedback orchestration.

This is the pipeline that runs after a score submission is committed:
1. Read the patient's history once (the new row included)
2. Award any newly earned badges
3. Detect the most significant trend
4. If there is a trend, send exactly one proactive suggestion; otherwise tell
   the caller to show the generic analysis view

Failure policy: analytics never fail the score save. Anything unexpected
degrades to "no suggestion sent, no badges reported". Channel delivery runs
as a background task once the payload is handed off; a failed or slow send
is logged and never changes the outcome or delays the response.
"""

import asyncio
from collections.abc import Sequence

import structlog

from habit_feedback.config import AppConfig, FeedbackConfig, get_config
from habit_feedback.domain.models import (
    Badge,
    CarePlanSummary,
    FeedbackOutcome,
    ProactiveSuggestionPayload,
    ScoreSubmission,
    TrendResult,
)
from habit_feedback.services.achievements import AchievementEngine
from habit_feedback.services.notifications import NotificationChannel
from habit_feedback.services.patient_locks import PatientLockRegistry
from habit_feedback.services.phi_sanitizer import PHISanitizer
from habit_feedback.services.repository import ScoreRepository
from habit_feedback.services.suggestions import (
    ProactiveSuggestionAgent,
    StaticSuggestionGenerator,
    SuggestionConfig,
    SuggestionGenerator,
    fallback_suggestion,
)
from habit_feedback.services.trend_analysis import TrendAnalyzer

logger = structlog.get_logger(__name__)


class FeedbackCoordinator:
    """
    Decides the single feedback channel for each submission.

    Invariant: proactive_suggestion_sent is True exactly when one payload was
    handed to the notification channel for this submission.
    """

    def __init__(
        self,
        repository: ScoreRepository,
        notification_channel: NotificationChannel,
        suggestion_generator: SuggestionGenerator | None = None,
        *,
        config: FeedbackConfig | None = None,
        trend_analyzer: TrendAnalyzer | None = None,
        achievement_engine: AchievementEngine | None = None,
        sanitizer: PHISanitizer | None = None,
        locks: PatientLockRegistry | None = None,
    ) -> None:
        self.repository = repository
        self.notification_channel = notification_channel
        self.suggestion_generator = suggestion_generator or StaticSuggestionGenerator()
        self.config = config or FeedbackConfig()
        self.trend_analyzer = trend_analyzer or TrendAnalyzer()
        self.achievement_engine = achievement_engine or AchievementEngine()
        self.sanitizer = sanitizer or PHISanitizer()
        self.locks = locks or PatientLockRegistry(ttl_seconds=self.config.patient_lock_ttl_seconds)
        self._deliveries: set[asyncio.Task[None]] = set()
        self.logger = logger.bind(component="feedback_coordinator")

    async def process_submission(self, submission: ScoreSubmission) -> FeedbackOutcome:
        """
        Run badges, trends and feedback arbitration for a committed submission.

        Never raises for analytics failures; cancellation still propagates.
        """
        try:
            async with self.locks.hold(submission.patient_id):
                return await self._process(submission)
        except Exception as e:
            self.logger.exception(
                "feedback_pipeline_failed", patient_id=submission.patient_id, error=str(e)
            )
            return FeedbackOutcome(proactive_suggestion_sent=False, new_badges=[])

    async def _process(self, submission: ScoreSubmission) -> FeedbackOutcome:
        patient_id = submission.patient_id

        history = await self._read_history(submission)
        if history is None:
            return FeedbackOutcome()

        new_badges = await self._award_badges_to_completion(patient_id, history)

        trend = self._detect_trend(patient_id, history)
        if trend is None:
            self.logger.info("no_trend_generic_feedback", patient_id=patient_id)
            return FeedbackOutcome(proactive_suggestion_sent=False, new_badges=new_badges)

        sent = await self._send_proactive_suggestion(patient_id, trend)
        return FeedbackOutcome(proactive_suggestion_sent=sent, new_badges=new_badges)

    async def _read_history(self, submission: ScoreSubmission) -> list[ScoreSubmission] | None:
        """Single consistent read of history, forcing the new row into view."""
        try:
            history = await self.repository.get_history(submission.patient_id)
        except Exception as e:
            self.logger.error(
                "history_read_failed", patient_id=submission.patient_id, error=str(e)
            )
            return None

        history = sorted(history, key=lambda s: s.score_date)
        if not any(s.score_date == submission.score_date for s in history):
            self.logger.warning(
                "submission_not_visible_in_history",
                patient_id=submission.patient_id,
                history_length=len(history),
            )
            history = sorted([*history, submission], key=lambda s: s.score_date)
        return history

    async def _award_badges_to_completion(
        self, patient_id: int, history: Sequence[ScoreSubmission]
    ) -> list[Badge]:
        """
        Award badges, finishing the pass even if the caller is cancelled.

        On cancellation the awarding task is awaited before CancelledError
        propagates, so the patient's lock is only released once every insert
        of this pass has completed.
        """
        awarding = asyncio.ensure_future(self._award_badges(patient_id, history))
        try:
            return await asyncio.shield(awarding)
        except asyncio.CancelledError:
            self.logger.warning("badge_awarding_finishing_after_cancel", patient_id=patient_id)
            await awarding
            raise

    async def _award_badges(
        self, patient_id: int, history: Sequence[ScoreSubmission]
    ) -> list[Badge]:
        try:
            return await self.achievement_engine.award_badges(
                self.repository, patient_id, history=history
            )
        except Exception as e:
            self.logger.error("badge_awarding_failed", patient_id=patient_id, error=str(e))
            return []

    def _detect_trend(
        self, patient_id: int, history: Sequence[ScoreSubmission]
    ) -> TrendResult | None:
        try:
            return self.trend_analyzer.analyze_recent(
                patient_id, history, self.config.trend_window_size
            )
        except Exception as e:
            self.logger.error("trend_analysis_failed", patient_id=patient_id, error=str(e))
            return None

    async def _send_proactive_suggestion(self, patient_id: int, trend: TrendResult) -> bool:
        care_plan = await self._sanitized_care_plan(patient_id)
        content = await self._generate_suggestion(patient_id, trend, care_plan)

        validation = self.sanitizer.validate_response(content)
        if not validation.is_valid:
            self.logger.warning(
                "phi_leak_redacted",
                security_event=True,
                patient_id=patient_id,
                findings=validation.findings,
            )
            content = validation.sanitized_response

        payload = ProactiveSuggestionPayload(
            content=content, trend_type=trend.type, category=trend.category
        )
        delivery = asyncio.create_task(
            self._deliver(patient_id, payload), name=f"proactive-suggestion-{patient_id}"
        )
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)
        # One loop turn: the delivery task enters channel.send before we return.
        await asyncio.sleep(0)

        self.logger.info(
            "proactive_suggestion_sent",
            patient_id=patient_id,
            trend_type=trend.type.value,
            category=trend.category.value,
        )
        return True

    async def _deliver(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None:
        """Run one channel send in the background; failures are logged, never raised."""
        try:
            async with asyncio.timeout(self.config.notification_timeout_seconds):
                await self.notification_channel.send(patient_id, payload)
        except TimeoutError:
            self.logger.warning(
                "proactive_suggestion_delivery_timeout",
                patient_id=patient_id,
                timeout_seconds=self.config.notification_timeout_seconds,
            )
        except Exception as e:
            self.logger.error(
                "proactive_suggestion_delivery_failed", patient_id=patient_id, error=str(e)
            )

    @property
    def pending_deliveries(self) -> int:
        return len(self._deliveries)

    async def drain_deliveries(self) -> None:
        """Wait for every in-flight channel send to finish, fail or time out."""
        if self._deliveries:
            await asyncio.gather(*self._deliveries)

    async def _sanitized_care_plan(self, patient_id: int) -> CarePlanSummary:
        try:
            care_plan = await self.repository.get_care_plan(patient_id)
        except Exception as e:
            self.logger.warning("care_plan_read_failed", patient_id=patient_id, error=str(e))
            return CarePlanSummary()

        def _scrub(text: str | None) -> str | None:
            return self.sanitizer.deidentify(text).content if text else None

        return CarePlanSummary(
            diet=_scrub(care_plan.diet),
            exercise=_scrub(care_plan.exercise),
            medication=_scrub(care_plan.medication),
        )

    async def _generate_suggestion(
        self, patient_id: int, trend: TrendResult, care_plan: CarePlanSummary
    ) -> str:
        """Model text within the deadline, otherwise the static fallback."""
        try:
            suggestion = await asyncio.wait_for(
                self.suggestion_generator.generate(trend, care_plan),
                timeout=self.config.suggestion_timeout_seconds,
            )
        except TimeoutError:
            self.logger.warning(
                "suggestion_generation_timeout",
                patient_id=patient_id,
                timeout_seconds=self.config.suggestion_timeout_seconds,
            )
            return fallback_suggestion(trend)
        except Exception as e:
            self.logger.error("suggestion_generation_failed", patient_id=patient_id, error=str(e))
            return fallback_suggestion(trend)

        if not suggestion or not suggestion.strip():
            self.logger.warning("suggestion_generation_empty", patient_id=patient_id)
            return fallback_suggestion(trend)
        return suggestion.strip()


def create_feedback_coordinator(
    repository: ScoreRepository,
    notification_channel: NotificationChannel,
    config: AppConfig | None = None,
) -> FeedbackCoordinator:
    """Wire a coordinator from application config, using the model only when configured."""
    config = config or get_config()

    generator: SuggestionGenerator
    if config.ai_provider.enabled:
        generator = ProactiveSuggestionAgent(
            SuggestionConfig(
                model_name=config.ai_provider.suggestion_model,
                max_tokens=config.ai_provider.max_tokens,
                temperature=config.ai_provider.temperature,
                timeout_seconds=config.ai_provider.timeout_seconds,
            )
        )
        logger.info("suggestion_model_enabled", model=config.ai_provider.suggestion_model)
    else:
        generator = StaticSuggestionGenerator()
        logger.info("suggestion_model_disabled", reason="no_api_key")

    return FeedbackCoordinator(
        repository,
        notification_channel,
        generator,
        config=config.feedback,
    )
