"""Application configuration via Pydantic Settings.

All configuration is driven by environment variables.  Every setting has a
default so the service starts with no environment at all; invalid values
raise a ``ValidationError`` at startup so misconfigured deployments fail fast.

Usage::

    from watson.config import get_settings

    settings = get_settings()
    print(settings.STATE_FILE)

The ``get_settings`` function is cached with ``functools.lru_cache``. To override
settings in tests, pass explicit arguments to the component under test, or set
the relevant environment variables and call ``get_settings.cache_clear()``.
"""
from __future__ import annotations

import functools
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Watson application settings.

    Environment variables are read case-insensitively. A ``.env`` file in the
    working directory is loaded automatically when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Persistence
    STATE_FILE: str = Field(
        default="watson_state.bin",
        description="Path of the state snapshot, fully overwritten on every mutation",
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level: DEBUG, INFO, WARNING, ERROR or CRITICAL",
    )

    # HTTP server
    HOST: str = Field(default="127.0.0.1", description="Bind address for uvicorn")
    PORT: int = Field(default=8000, ge=1, le=65535, description="Bind port for uvicorn")

    # Debug
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (never set True in production)",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    The first call reads environment variables (and ``.env``). Subsequent calls
    return the cached instance. Clear the cache with ``get_settings.cache_clear()``
    between tests.
    """
    return Settings()


settings = get_settings()
