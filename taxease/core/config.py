"""
Application configuration models and helpers.

Centralizes settings management so the wizard, the upload pipeline and the
admin poller share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import os

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class ApiSettings(BaseSettings):
    """Configuration for the TaxEase backend REST surface."""

    model_config = _SETTINGS_CONFIG

    base_url: AnyHttpUrl = Field(
        "https://tax-filing-backend-693306869303.us-central1.run.app",
        alias="TAXEASE_API_BASE_URL",
    )
    timeout_seconds: float = Field(10.0, alias="TAXEASE_API_TIMEOUT")
    upload_timeout_seconds: float = Field(
        60.0,
        alias="TAXEASE_UPLOAD_TIMEOUT",
        description="Large photo uploads need more headroom than REST calls.",
    )
    retry_attempts: int = Field(
        2,
        alias="TAXEASE_API_RETRY_ATTEMPTS",
        description="Attempts for idempotent GET requests on transport failure.",
    )

    def url(self, endpoint: str) -> str:
        """Join an endpoint path onto the configured base URL."""
        return f"{str(self.base_url).rstrip('/')}{endpoint}"


class WizardSettings(BaseSettings):
    """Wizard navigation and auto-save behaviour."""

    model_config = _SETTINGS_CONFIG

    total_steps: int = Field(5, alias="TAXEASE_WIZARD_TOTAL_STEPS")
    autosave_delay_seconds: float = Field(1.0, alias="TAXEASE_AUTOSAVE_DELAY")


class PollingSettings(BaseSettings):
    """Cadence of the admin-action poller."""

    model_config = _SETTINGS_CONFIG

    admin_interval_seconds: float = Field(10.0, alias="TAXEASE_ADMIN_POLL_INTERVAL")
    history_interval_seconds: float = Field(
        60.0, alias="TAXEASE_HISTORY_POLL_INTERVAL"
    )
    history_max_age_minutes: float = Field(
        5.0,
        alias="TAXEASE_HISTORY_MAX_AGE_MINUTES",
        description="Cached form history older than this is refetched before diffing.",
    )


class StorageSettings(BaseSettings):
    """Location of the durable key-value store."""

    model_config = _SETTINGS_CONFIG

    db_path: str = Field("./.taxease/state.db", alias="TAXEASE_DB_PATH")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_secret: Optional[str] = Field(
        None,
        alias="TAXEASE_TOKEN_SECRET",
        description="Secret used to derive the key protecting stored credentials.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the client core."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", alias="TAXEASE_ENV")
    log_level: str = Field("INFO", alias="TAXEASE_LOG_LEVEL")
    api: ApiSettings = Field(default_factory=ApiSettings)
    wizard: WizardSettings = Field(default_factory=WizardSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "ApiSettings",
    "AppSettings",
    "PollingSettings",
    "SecuritySettings",
    "StorageSettings",
    "WizardSettings",
    "get_settings",
]
