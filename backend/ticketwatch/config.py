"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tickets.db",
        description="SQLAlchemy async database URL (aiosqlite or asyncpg)",
    )

    # Sentry
    sentry_dsn: str = Field(default="", description="Sentry DSN for error tracking")

    # Ticket portal
    portal_url: str = Field(
        default="https://www.tocite.net/cityofithaca/portal/ticket",
        description="Ticket search page of the citation portal",
    )
    start_ticket_id: str = Field(
        default="100000057470",
        description="First ticket id to probe when no cursor exists yet",
    )
    portal_timezone: str = Field(
        default="America/New_York",
        description="Timezone the portal prints issuance timestamps in",
    )

    # Browser
    browser_type: Literal["firefox", "chromium", "webkit"] = "firefox"
    browser_headless: bool = Field(
        default=False,
        description="Run the browser headless (the portal is friendlier to headed sessions under Xvfb)",
    )
    page_timeout_ms: int = Field(default=5000, description="Timeout for navigation and form waits")
    results_timeout_ms: int = Field(
        default=10000,
        description="Timeout waiting for search results to render",
    )

    # Waiting for tickets that have not been issued yet
    backoff_seconds: list[float] = Field(
        default=[10.0, 30.0, 60.0],
        description="Wait schedule while a ticket id returns no results; the last value repeats",
    )
    advance_delay_seconds: float = Field(default=2.0, description="Pause between ticket ids")
    error_cooldown_seconds: float = Field(
        default=5.0,
        description="Pause before retrying the same ticket id after an unexpected error",
    )

    # Challenges
    challenge_max_attempts: int = Field(
        default=5,
        description="Maximum reload/solve attempts per search before giving up on a challenge",
    )
    captcha_api_key: str = Field(
        default="",
        description="2Captcha-compatible API key; leave empty to only reload on challenges",
    )
    captcha_api_url: str = Field(default="https://2captcha.com", description="Solver API base URL")
    captcha_method: Literal["userrecaptcha", "hcaptcha", "turnstile"] = "userrecaptcha"
    captcha_poll_interval_seconds: float = Field(default=5.0, description="Solver polling interval")
    captcha_timeout_seconds: float = Field(default=120.0, description="Give up on a solve after this long")

    # OCR
    ocr_band_height: int = Field(
        default=60,
        description="Height in pixels of the top band of the evidence image holding the GPS overlay",
    )
    ocr_threshold: int = Field(default=128, description="Binarization threshold (0-255)")
    ocr_language: str = Field(default="eng", description="Tesseract language")

    # Notifications
    notify_freshness_minutes: float = Field(
        default=10.0,
        description="Only broadcast tickets issued within this many minutes",
    )

    # HTTP
    http_user_agent: str = Field(
        default="Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0",
        description="User agent for image downloads and solver calls",
    )
    http_timeout_seconds: int = Field(default=30, description="HTTP request timeout")

    # Worker
    watcher_enabled: bool = Field(
        default=True,
        description="Run the ticket watcher inside the API process",
    )

    @field_validator("backoff_seconds")
    @classmethod
    def _backoff_not_empty(cls, value: list[float]) -> list[float]:
        if not value:
            raise ValueError("backoff_seconds needs at least one duration")
        if any(v < 0 for v in value):
            raise ValueError("backoff_seconds cannot contain negative durations")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
