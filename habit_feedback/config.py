"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys in code)
"""

import os
from functools import lru_cache
from typing import Any, Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()


class AIProviderConfig(BaseModel):
    """Suggestion model configuration. Without an API key only static fallbacks are sent."""

    anthropic_api_key: str | None = Field(None, description="Anthropic API key (optional)")

    suggestion_model: str = Field(
        default="anthropic:claude-3-5-haiku-latest",
        description="Model used to phrase proactive suggestions",
    )

    temperature: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Sampling temperature for suggestions"
    )
    max_tokens: int = Field(default=200, gt=0, description="Max tokens for a suggestion")
    timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for a single model call"
    )

    @field_validator("anthropic_api_key")
    def validate_api_key(cls, v):
        if not v:
            return None
        if v == "your-anthropic-api-key-here":
            raise ValueError("AI provider API key placeholder must be replaced or left empty")
        if not v.startswith("sk-"):
            raise ValueError("AI provider API key must start with 'sk-'")
        return v

    @property
    def enabled(self) -> bool:
        return self.anthropic_api_key is not None


class FeedbackConfig(BaseModel):
    """Per-submission feedback pipeline settings."""

    trend_window_size: int = Field(
        default=14, ge=3, description="Most recent submissions considered for trend detection"
    )
    suggestion_timeout_seconds: float = Field(
        default=8.0, gt=0.0, description="Deadline for the suggestion generator"
    )
    notification_timeout_seconds: float = Field(
        default=5.0, gt=0.0, description="Deadline for delivering one notification"
    )
    outbox_max_size: int = Field(
        default=1000, gt=0, description="Pending notifications held before new ones are dropped"
    )
    patient_lock_ttl_seconds: float = Field(
        default=300.0, gt=0.0, description="Idle time before a per-patient lock is swept"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    ai_provider: AIProviderConfig = Field(default_factory=AIProviderConfig)
    feedback: FeedbackConfig = Field(default_factory=FeedbackConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    ai_config = AIProviderConfig(
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        suggestion_model=os.getenv("SUGGESTION_MODEL", "anthropic:claude-3-5-haiku-latest"),
        timeout_seconds=float(os.getenv("SUGGESTION_MODEL_TIMEOUT_SECONDS", "10.0")),
    )

    feedback_config = FeedbackConfig(
        trend_window_size=int(os.getenv("TREND_WINDOW_SIZE", "14")),
        suggestion_timeout_seconds=float(os.getenv("SUGGESTION_TIMEOUT_SECONDS", "8.0")),
        notification_timeout_seconds=float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5.0")),
        outbox_max_size=int(os.getenv("NOTIFICATION_OUTBOX_MAX_SIZE", "1000")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        ai_provider=ai_config,
        feedback=feedback_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def get_model_config() -> dict[str, Any]:
    """Get suggestion model settings as keyword arguments for the agent."""
    config = get_config()
    return {
        "model_name": config.ai_provider.suggestion_model,
        "max_tokens": config.ai_provider.max_tokens,
        "temperature": config.ai_provider.temperature,
        "timeout_seconds": config.ai_provider.timeout_seconds,
    }
