"""
Proactive suggestion generation using Pydantic AI.

Key architectural decisions:
- Narrow interface: the coordinator only sees SuggestionGenerator.generate
- Allow-listed prompt: only structural trend fields and de-identified care
  plan text are written into the prompt
- Fallback strategy: a static sentence per (trend type, category) is always
  available when the model is slow, failing, or not configured
"""

from typing import Any, Protocol, cast

import structlog
from pydantic import BaseModel, Field
from pydantic_ai import Agent

from habit_feedback.domain.models import CarePlanSummary, ScoreCategory, TrendResult, TrendType
from habit_feedback.services.errors import SuggestionGenerationError

logger = structlog.get_logger(__name__)

APP_FEATURES: tuple[str, ...] = (
    "Daily Self-Scores: Track diet, exercise, and medication adherence",
    "Motivation: Upload photos to personalise the Keep Going button",
    "Progress Milestones: Achievement badges and goal setting",
    "Inspiration Machine D: Meal ideas aligned with the care plan",
    "Inspiration Machine E&W: Exercise and wellness inspiration",
    "Journaling: Record thoughts and track how medication feels",
    "Health Snapshots: Visual summaries of progress",
    "Chatbot: Personalised health guidance",
)

PROACTIVE_SUGGESTION_PROMPT = """You are a caring and perceptive health assistant. Your goal is to
provide a short, empathetic, and motivational message to a user based on a recent trend in their
self-reported scores.

You will be given:
1. The trend: its type (a negative or positive streak), category, length and scores.
2. The patient's care plan directives, as prescribed by their doctor.
3. A list of app features you can recommend.

Instructions:
1. Acknowledge the trend. Congratulate a positive streak. For a negative streak be gentle and
   acknowledge their effort.
2. Write a single encouraging sentence (max 30 words) suggesting one specific feature from the
   list that would help.
3. Frame it as a question.

Constraints:
- Be succinct and gentle.
- Provide educational support only; never diagnose or change the care plan.
- Never include names, dates, contact details or identifiers.
- Use Australian English spelling."""

# Keyed by (trend type, category). Used when the model fails or misses its deadline.
FALLBACK_SUGGESTIONS: dict[tuple[TrendType, ScoreCategory], str] = {
    (TrendType.NEGATIVE_STREAK, ScoreCategory.DIET): (
        "I notice you've been working hard on your health journey. Would you like to try the "
        "'Inspiration Machine D' for some fresh, simple meal ideas?"
    ),
    (TrendType.NEGATIVE_STREAK, ScoreCategory.EXERCISE): (
        "Staying active can be tough some weeks. Would you like to find an easy activity to "
        "start with in 'Inspiration Machine E&W'?"
    ),
    (TrendType.NEGATIVE_STREAK, ScoreCategory.MEDICATION): (
        "Keeping up with medication isn't always easy. Would it help to note how you're "
        "feeling each day in your 'Journaling' feature?"
    ),
    (TrendType.POSITIVE_STREAK, ScoreCategory.DIET): (
        "Congratulations on your healthy eating streak! Would you like to celebrate by setting "
        "a new goal in your 'Progress Milestones'?"
    ),
    (TrendType.POSITIVE_STREAK, ScoreCategory.EXERCISE): (
        "Congratulations on your exercise streak! Would you like to celebrate by setting a new "
        "goal in your 'Progress Milestones'?"
    ),
    (TrendType.POSITIVE_STREAK, ScoreCategory.MEDICATION): (
        "Great consistency with your medication! Would you like to see your progress in "
        "'Health Snapshots'?"
    ),
}


def fallback_suggestion(trend: TrendResult) -> str:
    """Deterministic suggestion for a trend, no model involved."""
    return FALLBACK_SUGGESTIONS[(trend.type, trend.category)]


def build_suggestion_prompt(trend: TrendResult, cpd_summary: CarePlanSummary) -> str:
    """
    Build the user prompt from allow-listed fields only.

    cpd_summary is expected to be de-identified already.
    """
    no_goal = "No specific goal set"
    features = "\n".join(f"- {feature}" for feature in APP_FEATURES)
    return f"""Detected trend:
Type: {trend.type.value}
Category: {trend.category.value}
Streak length: {trend.streak_length} days
Current score: {trend.current_score}/10
Average score: {trend.average_score}/10

Care plan directives:
Diet goal: {cpd_summary.diet or no_goal}
Exercise goal: {cpd_summary.exercise or no_goal}
Medication goal: {cpd_summary.medication or no_goal}

Available features:
{features}"""


class SuggestionGenerator(Protocol):
    """
    Black-box text generation for proactive suggestions.

    Implementations may raise; callers bound every call with a deadline.
    """

    async def generate(self, trend: TrendResult, cpd_summary: CarePlanSummary) -> str: ...


class SuggestionConfig(BaseModel):
    """Configuration for the suggestion agent with smart defaults."""

    model_name: str = "anthropic:claude-3-5-haiku-latest"
    max_tokens: int = Field(default=200, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=10.0, gt=0.0)


class ProactiveSuggestionAgent:
    """
    AI agent that phrases a proactive suggestion for a detected trend.

    Single responsibility: turns a sanitized trend and care plan into one
    sentence. Timeouts and fallbacks are the coordinator's job.
    """

    def __init__(self, config: SuggestionConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="proactive_suggestion_agent")

        self.agent = Agent(
            model=self.config.model_name,
            output_type=str,
            system_prompt=PROACTIVE_SUGGESTION_PROMPT,
            model_settings={
                "max_tokens": self.config.max_tokens,
                "temperature": self.config.temperature,
                "timeout": self.config.timeout_seconds,
            },
            defer_model_check=True,
        )

    async def generate(self, trend: TrendResult, cpd_summary: CarePlanSummary) -> str:
        self.logger.info(
            "generating_proactive_suggestion",
            trend_type=trend.type.value,
            category=trend.category.value,
        )

        result = await self.agent.run(build_suggestion_prompt(trend, cpd_summary))
        suggestion = cast(str, cast(Any, result).output).strip()
        if not suggestion:
            raise SuggestionGenerationError("Model returned an empty suggestion")

        self.logger.info("proactive_suggestion_generated", suggestion_length=len(suggestion))
        return suggestion


class StaticSuggestionGenerator:
    """Generator used when no model is configured; always returns the fallback text."""

    async def generate(self, trend: TrendResult, cpd_summary: CarePlanSummary) -> str:
        return fallback_suggestion(trend)
