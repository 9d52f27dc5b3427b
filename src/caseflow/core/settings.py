"""Runtime settings for caseflow.

Settings are read from ``CASEFLOW_``-prefixed environment variables and an
optional ``.env`` file, validated by pydantic at startup.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked when the settings are built
    - **Environment-driven:** ``CASEFLOW_LOG_LEVEL=DEBUG`` just works
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from caseflow.core.settings import get_settings
    >>> get_settings().log_level
    'INFO'

Tags:
    settings, configuration, pydantic, environment, caseflow

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from caseflow.core.errors import ConfigError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class CaseflowSettings(BaseSettings):
    """Settings shared by every caseflow component.

    Fields
    ──────
    log_level     : structlog log level
    log_json      : JSON output (True), console (False), auto-detect (None)
    service_name  : Service name stamped on every log line
    id_separator  : Separator between class name and uuid in UseCase ids
    """

    model_config = SettingsConfigDict(
        env_prefix="CASEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "caseflow"

    # ── Identity ─────────────────────────────────────────────────
    id_separator: str = Field(
        default="-",
        min_length=1,
        description="Separator placed between the class name and the uuid",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> CaseflowSettings:
    """Return the process-wide settings, built on first use."""
    try:
        return CaseflowSettings()
    except ValueError as exc:
        raise ConfigError("Invalid caseflow settings", cause=exc) from exc


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


def configure_logging_from_settings(settings: CaseflowSettings | None = None) -> None:
    """Apply ``log_level`` / ``log_json`` / ``service_name`` to structlog."""
    from caseflow.core.logging import configure_logging

    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        service=settings.service_name,
    )


__all__ = [
    "CaseflowSettings",
    "get_settings",
    "reset_settings",
    "configure_logging_from_settings",
]
