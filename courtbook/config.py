from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from the environment and `.env`."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./courtbook.db"
    SKIP_DB_INIT: bool = False

    # Scheduling
    DEFAULT_CLUB_TIMEZONE: str = "Europe/Kyiv"
    RESERVATION_TTL_MINUTES: int = 5
    SLOT_DURATION_MINUTES: int = 60

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("RESERVATION_TTL_MINUTES", "SLOT_DURATION_MINUTES")
    @classmethod
    def positive_minutes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive number of minutes")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
