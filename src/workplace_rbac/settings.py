"""Workplace RBAC settings (conventional Pydantic v2)."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import TypeVar

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ALLOWED_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
ALLOWED_LOG_FORMATS = frozenset({"console", "json"})

DEFAULT_DATABASE_URL = "sqlite:///./data/workplace_rbac.sqlite"

T = TypeVar("T")


def create_settings_accessors(
    settings_type: type[T],
) -> tuple[Callable[[], T], Callable[[], T]]:
    """Create ``get_settings`` and ``reload_settings`` helpers for a settings class."""

    @lru_cache(maxsize=1)
    def _build() -> T:
        return settings_type()

    def get_settings() -> T:
        return _build()

    def reload_settings() -> T:
        _build.cache_clear()
        return _build()

    return get_settings, reload_settings


def normalize_log_format(value: str, *, env_var: str = "RBAC_LOG_FORMAT") -> str:
    normalized = value.strip().lower()
    if normalized not in ALLOWED_LOG_FORMATS:
        allowed = ", ".join(sorted(ALLOWED_LOG_FORMATS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


def normalize_log_level(value: str | None, *, env_var: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in ALLOWED_LOG_LEVELS:
        allowed = ", ".join(sorted(ALLOWED_LOG_LEVELS))
        raise ValueError(f"{env_var} must be one of: {allowed}.")
    return normalized


# ---- Settings ---------------------------------------------------------------


class Settings(BaseSettings):
    """Service settings loaded from RBAC_* environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RBAC_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        str_strip_whitespace=True,
    )

    # Core
    app_name: str = "Workplace RBAC API"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    log_format: str = "console"
    log_level: str = "INFO"
    database_log_level: str | None = None

    # Database
    database_url: str = DEFAULT_DATABASE_URL
    database_echo: bool = False
    database_busy_timeout: float = Field(30.0, gt=0)

    # Access control
    actor_header: str = "X-Actor-Id"
    request_id_header: str = "X-Request-Id"
    system_actor: str = "system"
    bootstrap_on_startup: bool = True
    grant_expiry_enforced: bool = True

    # ---- Validators ----

    @field_validator("log_format", mode="before")
    @classmethod
    def _validate_log_format(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_log_format(value)
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_log_level(value, env_var="RBAC_LOG_LEVEL")
        return value

    @field_validator("database_log_level", mode="before")
    @classmethod
    def _validate_database_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return normalize_log_level(value, env_var="RBAC_DATABASE_LOG_LEVEL")
        return value

    @field_validator("database_url")
    @classmethod
    def _validate_database_url(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("RBAC_DATABASE_URL must not be blank.")
        return candidate

    @field_validator("actor_header", "request_id_header")
    @classmethod
    def _validate_header_name(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("Header names must not be blank.")
        return candidate


get_settings, reload_settings = create_settings_accessors(Settings)

__all__ = [
    "ALLOWED_LOG_FORMATS",
    "ALLOWED_LOG_LEVELS",
    "DEFAULT_DATABASE_URL",
    "Settings",
    "create_settings_accessors",
    "get_settings",
    "normalize_log_format",
    "normalize_log_level",
    "reload_settings",
]
