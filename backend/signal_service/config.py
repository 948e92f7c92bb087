"""Service configuration."""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SIGNAL_",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Optional engine.yaml with profile overrides (None = default location)
    engine_config_path: str | None = None

    # Engine overrides (None = keep EngineConfig / YAML value)
    min_candles: int | None = None
    cache_max_entries: int | None = None
    learning_rate: float | None = None
    min_learning_samples: int | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging once for a process embedding the service."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
