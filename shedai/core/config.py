"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "ShedAI Scheduler"
    debug: bool = False
    log_level: str = "INFO"
    engine_log_level: str | None = None
    database_url: str = "postgresql+psycopg2://shedai@localhost:5432/shedai"

    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.2
    proposer_timeout_seconds: float = 30.0
    proposer_max_retries: int = 2
    proposer_max_attempts: int = 2
    proposer_chunk_minutes: int = 120
    proposer_min_chunk_minutes: int = 60

    day_start: str = "00:00"
    day_end: str = "23:00"
    min_window_minutes: int = 30
    default_preferred_time: str = "19:00"
    default_horizon_days: int = 7
    max_horizon_days: int = 28
    apply_now_floor: bool = True
    backfill_min_partial_minutes: int = 30
    backfill_span_days: int = 28
    session_max_messages: int = 12
    feedback_history_limit: int = 20

    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "shedai"
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    nightly_job_hour: int = 2
    nightly_job_minute: int = 0
    jobs_run_on_startup: bool = False
    notifications_enabled: bool = False
    notifications_provider: str = "noop"


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
