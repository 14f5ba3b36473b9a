from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import CONFIG_FILE, AppConfig, load_config

ENV_PREFIX = "ANYTOMD_"


class Settings(BaseSettings):
    """Runtime settings sourced from the environment (and ``.env``)."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, env_file=".env", extra="ignore", populate_by_name=True
    )

    config_path: Path = CONFIG_FILE
    enable_local_api: bool | None = None
    gemini_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "ANYTOMD_GEMINI_API_KEY")
    )
    gemini_model: str | None = Field(
        default=None, validation_alias=AliasChoices("GEMINI_MODEL", "ANYTOMD_GEMINI_MODEL")
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def load_app_config(settings: Settings, config_path: Path | None = None) -> AppConfig:
    """Load ``config.toml`` and apply environment overrides on top."""

    config = load_config(config_path or settings.config_path)
    if settings.enable_local_api is not None:
        config.runtime.enable_local_api = settings.enable_local_api
    if settings.gemini_model:
        config.describer.model = settings.gemini_model
    return config


__all__ = ["ENV_PREFIX", "Settings", "get_settings", "load_app_config"]
