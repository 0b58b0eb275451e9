"""Application configuration managed via environment variables."""
from datetime import time
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "CalmDay Scheduling Engine"
    debug: bool = False
    log_level: str = "INFO"
    default_timezone: str = "UTC"
    min_gap_minutes: int = 10
    max_accepted_activities: int = 4
    max_workout_minutes: int = 45
    activity_day_start: time = time(hour=7)
    activity_day_end: time = time(hour=22)
    recommender_provider: str = "rule_based"
    openai_api_key: str | None = None
    recommender_model: str = "gpt-4o-mini"
    recommender_timeout_seconds: float = 15.0
    recommender_max_workers: int = 4
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "calmday"
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    cache_prune_hour: int = 3
    cache_retention_days: int = 1


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
