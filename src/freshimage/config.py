"""Configuration management for freshimage."""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FRESHIMAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Paths
    meta_dir: Path = Field(
        default=Path(".freshimage"),
        description="Directory holding build records, relative to the working directory",
    )

    # Build context
    ignore_filename: str = Field(
        default=".dockerignore",
        description="Ignore-pattern file looked up in every context root",
    )
    build_spec_name: str = Field(
        default="Dockerfile",
        description="Archive entry name for inline build steps",
    )
    default_tag: str = Field(
        default="latest",
        description="Tag used when a task does not name one",
    )

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for hosts embedding freshimage."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
