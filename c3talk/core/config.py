"""
C3Talk Core Configuration

This module manages all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from typing import Literal, Optional
from functools import lru_cache

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # Database (account store + audit log)
    database_url: str = Field(default="sqlite+aiosqlite:///./c3talk.db")
    db_echo: bool = False

    # Redis (guest device store)
    redis_url: str = "redis://localhost:6379/0"
    redis_db: int = 0
    guest_key_prefix: str = "c3talk"

    # Primary provider (Gemini)
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY", "API_KEY"),
    )
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Secondary provider (OpenRouter)
    openrouter_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("openrouter_api_key", "OPENROUTER_API_KEY", "OR_API_KEY"),
    )
    openrouter_model: str = "google/gemini-2.5-flash"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_app_title: Optional[str] = "C3Talk"
    openrouter_referer: Optional[str] = None

    provider_timeout_seconds: float = 60.0

    # Retry / fallback policy
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 2000
    billing_recovery_attempts: int = 3
    billing_recovery_base_delay_ms: int = 3000
    fallback_cooldown_seconds: float = 60.0
    fallback_on_rate_limit: bool = True

    # Credits
    disable_credit_deduction: bool = False
    initial_guest_credits: float = 5
    plan_credits: float = 100
    subscription_days: int = 365
    audio_credit_cost: float = 1.0
    text_credit_cost: float = 0.25

    # Prompt budgets
    audio_max_output_tokens: int = 512
    text_max_output_tokens: int = 256

    @validator("retry_max_attempts", "billing_recovery_attempts")
    def validate_attempts(cls, v: int) -> int:
        """Retry loops need at least one attempt"""
        if v < 1:
            raise ValueError("retry attempts must be >= 1")
        return v

    @validator(
        "initial_guest_credits",
        "plan_credits",
        "audio_credit_cost",
        "text_credit_cost",
        "retry_base_delay_ms",
        "billing_recovery_base_delay_ms",
        "fallback_cooldown_seconds",
    )
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache for singleton pattern.
    """
    return Settings()


# Export singleton instance
settings = get_settings()
