from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WATCHPLAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "Watch Planner"
    log_level: str = "INFO"

    # Fallback runtimes when metadata has no duration
    default_episode_minutes: int = 30
    default_movie_minutes: int = 120

    # Slot grid used by the random-placement search and click snapping
    slot_step_minutes: int = 15

    default_timezone_offset: str = "+00:00"


@lru_cache
def get_settings() -> Settings:
    return Settings()
