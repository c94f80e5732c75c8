# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: API endpoints,
principal gating, retry cadence, cache backend and retention, logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === AGENT API ===
    api_base_url: str = "http://localhost:8000"
    task_endpoint: str = "/agent/task/{principal_id}"
    keyed_on_endpoint: str = "/agent/keyedon"
    http_timeout_s: float = 30.0

    # === Principal ===
    principal_id: str = ""
    allowed_principals: str = "1,15"
    read_only: bool = False

    # === Task lifecycle ===
    retry_interval_s: float = 30.0
    not_provisioned_status_code: int = 501

    # === Cache ===
    cache_backend: Literal["sqlite", "json", "redis", "memory"] = "sqlite"
    cache_root: Path = Path("~/.taskdocs/cache")
    cache_redis_url: str = ""
    cache_retention_days: int = 7

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("cache_retention_days")
    @classmethod
    def validate_retention(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("cache_retention_days must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.cache_backend == "redis" and not self.cache_redis_url:
            errors.append("CACHE_REDIS_URL must be set when CACHE_BACKEND=redis")

        if self.retry_interval_s <= 0:
            errors.append("RETRY_INTERVAL_S must be > 0")

        if not 100 <= self.not_provisioned_status_code <= 599:
            errors.append("NOT_PROVISIONED_STATUS_CODE must be an HTTP status code")

        if "{principal_id}" not in self.task_endpoint:
            errors.append("TASK_ENDPOINT must contain a {principal_id} placeholder")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def allowed_principals_list(self) -> list[str]:
        """Parse comma-separated principal ids."""
        return [p.strip() for p in self.allowed_principals.split(",") if p.strip()]

    @property
    def can_fetch_tasks(self) -> bool:
        """True when this process may pull tasks for its principal."""
        return not self.read_only and self.principal_id in self.allowed_principals_list


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
