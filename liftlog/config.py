"""Application configuration from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment (and .env file), prefixed with LIFTLOG_."""

    model_config = SettingsConfigDict(
        env_prefix="LIFTLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Liftlog"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///liftlog.db"

    # Workout engine
    default_workout_name: str = "Workout"
    history_session_limit: int = 10

    # Insert missing built-in exercise templates on startup
    seed_catalog: bool = True


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
