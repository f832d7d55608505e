"""Library configuration using Pydantic BaseSettings."""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("blurranker.config")

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # MongoDB Configuration
    MONGO_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "blurranker"

    # Multi-document transactions need a replica set. When disabled, units
    # of work fall back to compensating writes.
    USE_TRANSACTIONS: bool = False

    LOG_LEVEL: str = "INFO"

    # Read side
    RECENT_GAMES_LIMIT: int = 10

    # Change feed: per-subscriber queue bound
    CHANGE_FEED_QUEUE_SIZE: int = 256

    APP_VERSION: str = "1.0.0"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        """Normalise LOG_LEVEL, falling back to INFO for unknown names."""
        if v is None or v == "":
            return "INFO"
        level = str(v).strip().upper()
        if level not in _LOG_LEVELS:
            logger.warning("Unknown LOG_LEVEL %r, using INFO", v)
            return "INFO"
        return level

    @field_validator("RECENT_GAMES_LIMIT", "CHANGE_FEED_QUEUE_SIZE")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


# Global settings instance
settings = Settings()
