"""Client configuration objects based on Pydantic settings."""
from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RETRYABLE_ERRORS = [
    "Connection refused",
    "Connection reset",
    "Connection timed out",
    "Could not resolve host",
    "Operation timed out",
    "Network is unreachable",
    "HTTP/2 stream",
    "SSL connection",
    "Server disconnected",
    "peer closed connection",
    "ReadTimeout",
    "ConnectTimeout",
    "ReadError",
    "RemoteProtocolError",
]


class GeminiSettings(BaseModel):
    """Endpoint, credentials and request behaviour for the Gemini API."""

    api_key: str = ""
    base_url: str = "https://generativelanguage.googleapis.com"
    api_version: str = "v1beta"
    model: str = "gemini-2.0-flash"
    embedding_model: str = "text-embedding-004"
    request_timeout: float = 60.0
    stream_timeout: float = 120.0
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=2.0, ge=0)
    retry_multiplier: float = Field(default=2.0, ge=1)
    default_headers: dict[str, str] = Field(default_factory=dict)


class ReconnectSettings(BaseModel):
    """Defaults for re-establishing dropped streaming connections."""

    enabled: bool = True
    max_attempts: int = Field(default=10, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    jitter: bool = True
    retryable_errors: list[str] = Field(default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS))


class CacheSettings(BaseModel):
    """File-system response cache configuration."""

    enabled: bool = False
    path: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "gemini-client-cache")
    ttl: int = Field(default=3600, ge=0)


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_format: bool = True
    log_file: Path | None = None


class Settings(BaseSettings):
    """Aggregate settings for the client."""

    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    reconnect: ReconnectSettings = Field(default_factory=ReconnectSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env", env_nested_delimiter="__", case_sensitive=False, extra="ignore"
    )


@lru_cache()
def load_settings() -> Settings:
    """Load client settings with caching."""

    return Settings()


__all__ = [
    "DEFAULT_RETRYABLE_ERRORS",
    "Settings",
    "GeminiSettings",
    "ReconnectSettings",
    "CacheSettings",
    "LoggingSettings",
    "load_settings",
]
