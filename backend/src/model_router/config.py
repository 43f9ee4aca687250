"""Model Router: Application Configuration."""

from __future__ import annotations

from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from model_router.domain.enums import Environment


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "model-router"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Provider secrets ─────────────────────────────────────
    # Multi-key providers take comma-separated keys for rotation
    gemini_api_keys: str = ""
    groq_api_keys: str = ""
    deepseek_api_key: str = ""
    mistral_api_key: str = ""
    openrouter_api_key: str = ""
    cerebras_api_key: str = ""
    sambanova_api_key: str = ""

    # ── Provider calls ───────────────────────────────────────
    provider_timeout_seconds: float = 60.0
    gemini_min_interval_seconds: float = 2.5

    # ── Quota epoch ──────────────────────────────────────────
    quota_epoch_timezone: str = "America/Los_Angeles"
    quota_epoch_margin_seconds: float = 30.0
    balance_refresh_seconds: float = 300.0

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    def secret_for(self, secret_ref: str) -> str:
        """Value of the setting named by a provider's ``secret_ref``."""
        return str(getattr(self, secret_ref.lower(), "") or "")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("quota_epoch_timezone")
    @classmethod
    def _validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {v!r}") from exc
        return v


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
