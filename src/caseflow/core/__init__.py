"""Ambient primitives shared by every caseflow module: errors, logging, settings."""

from caseflow.core.errors import (
    AsyncUseCaseError,
    CaseflowError,
    CompletionError,
    ConfigError,
    ErrorCategory,
    InvalidTransitionError,
    PayloadError,
    StoreNotImplementedError,
    UseCaseNotImplementedError,
    categorize_error,
)
from caseflow.core.logging import LogContext, configure_logging, get_logger
from caseflow.core.settings import CaseflowSettings, get_settings, reset_settings

__all__ = [
    # errors
    "ErrorCategory",
    "CaseflowError",
    "UseCaseNotImplementedError",
    "StoreNotImplementedError",
    "PayloadError",
    "CompletionError",
    "InvalidTransitionError",
    "AsyncUseCaseError",
    "ConfigError",
    "categorize_error",
    # logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # settings
    "CaseflowSettings",
    "get_settings",
    "reset_settings",
]
