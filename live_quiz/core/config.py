"""Runtime settings, overridable through ``LIVEQUIZ_*`` environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from live_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from live_quiz.constants.session_constants import (
    POLL_INTERVAL_SECONDS,
    RETENTION_DAYS,
    STORE_RETRY_ATTEMPTS,
    TIMER_TICK_SECONDS,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="LIVEQUIZ_", env_file=".env", extra="ignore")

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    retention_days: int = Field(default=RETENTION_DAYS, ge=1)
    store_retry_attempts: int = Field(default=STORE_RETRY_ATTEMPTS, ge=1)
    timer_tick_seconds: float = Field(default=TIMER_TICK_SECONDS, gt=0)
    poll_interval_seconds: float = Field(default=POLL_INTERVAL_SECONDS, gt=0)

    # Server-side timers stand in for a presenter screen that is not running one itself.
    run_server_timers: bool = True
    # None keeps sessions active forever when the timer authority disappears.
    stale_timer_grace_seconds: int | None = None


def get_settings() -> Settings:
    return Settings()
