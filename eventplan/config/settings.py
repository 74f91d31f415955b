"""
Application settings configuration for EventPlan.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment Variables:
        EVENTPLAN_DEFAULT_MAX_OCCURRENCES: Occurrence cap when a recurring event
            carries neither a count nor an end date (default: 52)
        EVENTPLAN_RECURRENCE_HARD_LIMIT: Absolute cap on occurrences produced by a
            single expansion, whatever the bounds (default: 1000)
        EVENTPLAN_WEBHOOK_TIMEOUT: Seconds before a webhook POST is abandoned (default: 10)
        EVENTPLAN_WEBHOOK_USER_AGENT: User-Agent header sent with webhooks
        EVENTPLAN_WEBHOOK_WORKERS: Background threads delivering webhooks (default: 4)
        EVENTPLAN_SWEEP_HOUR: Hour of day (UTC) the past-occurrence sweep runs (default: 2)
        EVENTPLAN_SWEEP_BATCH_SIZE: Rows deleted per sweep batch (default: 100)
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Recurrence expansion
    default_max_occurrences: int = Field(
        default=52,
        validation_alias="EVENTPLAN_DEFAULT_MAX_OCCURRENCES",
        ge=1,
        description="Roughly one year of weekly cadence"
    )

    recurrence_hard_limit: int = Field(
        default=1000,
        validation_alias="EVENTPLAN_RECURRENCE_HARD_LIMIT",
        ge=1,
    )

    # Webhook delivery
    webhook_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="EVENTPLAN_WEBHOOK_TIMEOUT",
        gt=0,
    )

    webhook_user_agent: str = Field(
        default="EventPlan/1.0 Webhook",
        validation_alias="EVENTPLAN_WEBHOOK_USER_AGENT",
    )

    webhook_workers: int = Field(
        default=4,
        validation_alias="EVENTPLAN_WEBHOOK_WORKERS",
        ge=1,
        le=64,
    )

    # Past-occurrence sweep
    sweep_hour: int = Field(
        default=2,
        validation_alias="EVENTPLAN_SWEEP_HOUR",
        ge=0,
        le=23,
    )

    sweep_batch_size: int = Field(
        default=100,
        validation_alias="EVENTPLAN_SWEEP_BATCH_SIZE",
        ge=1,
    )

    @field_validator("webhook_user_agent")
    @classmethod
    def validate_user_agent(cls, v: str) -> str:
        """Reject blank User-Agent values."""
        if not v.strip():
            raise ValueError("EVENTPLAN_WEBHOOK_USER_AGENT cannot be blank")
        return v.strip()


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings instance.

    Returns:
        AppSettings: Configured application settings from environment
    """
    return AppSettings()
