"""
Structured error types for caseflow.

Every error raised by the orchestration core derives from ``CaseflowError``
so callers can catch the whole family at once, while the concrete
subclasses also inherit from the matching builtin (``TypeError``,
``ValueError``, ``NotImplementedError``) so plain ``except TypeError``
code keeps working.

Manifesto:
    - **Typed Error Hierarchy:** One subclass per failure domain
    - **Builtin Compatibility:** Contract violations are still TypeErrors
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve the original exception as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                      CaseflowError                           │
        │            (category, context, cause)                        │
        ├──────────────────────────────────────────────────────────────┤
        │  UseCaseNotImplementedError   PayloadError                   │
        │  (CONTRACT, TypeError)        (PAYLOAD, TypeError)           │
        │                                                              │
        │  CompletionError              InvalidTransitionError         │
        │  (LIFECYCLE)                  (LIFECYCLE, ValueError)        │
        │                                                              │
        │  AsyncUseCaseError            StoreNotImplementedError       │
        │  (EXECUTION)                  (CONTRACT, NotImplementedError)│
        │                                                              │
        │  ConfigError                                                 │
        │  (CONFIG)                                                    │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = PayloadError("payload must carry a type")
    >>> isinstance(error, TypeError)
    True
    >>> error.category
    <ErrorCategory.PAYLOAD: 'PAYLOAD'>

    >>> error.with_context(use_case="LoadUserUseCase").to_dict()["context"]
    {'use_case': 'LoadUserUseCase'}

Guardrails:
    ❌ DON'T: Raise a release violation as an exception
    ✅ DO: Report it through the logger (see ``caseflow.execution.context``)

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, caseflow, contract

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification in logs."""

    CONTRACT = "CONTRACT"         # Required capability not implemented
    PAYLOAD = "PAYLOAD"           # Malformed payload handed to a bus
    EXECUTION = "EXECUTION"       # Running a unit could not proceed
    LIFECYCLE = "LIFECYCLE"       # Token / completion state misuse
    CONFIG = "CONFIG"             # Invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


class CaseflowError(Exception):
    """
    Base class for all caseflow errors.

    Attributes:
        message: Human readable description
        category: ErrorCategory used for routing and logging
        context: Free-form metadata (use case name, payload type, ...)
        cause: Underlying exception, also chained as ``__cause__``
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> CaseflowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise PayloadError("bad payload").with_context(use_case="Save")
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONTRACT ERRORS
# =============================================================================


class UseCaseNotImplementedError(CaseflowError, TypeError):
    """A UseCase subclass was executed without overriding ``execute``."""

    default_category = ErrorCategory.CONTRACT

    def __init__(self, use_case_name: str, message: str | None = None):
        super().__init__(
            message or f"UseCase({use_case_name}) should implement execute() method",
            context={"use_case": use_case_name},
        )
        self.use_case_name = use_case_name


class StoreNotImplementedError(CaseflowError, NotImplementedError):
    """A Store subclass did not override ``get_state``."""

    default_category = ErrorCategory.CONTRACT

    def __init__(self, store_name: str):
        super().__init__(
            f"Store({store_name}) should implement get_state() method",
            context={"store": store_name},
        )
        self.store_name = store_name


# =============================================================================
# PAYLOAD ERRORS
# =============================================================================


class PayloadError(CaseflowError, TypeError):
    """Something other than a typed payload was handed to a bus."""

    default_category = ErrorCategory.PAYLOAD


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class CompletionError(CaseflowError):
    """A Completion was settled twice or read before settling."""

    default_category = ErrorCategory.LIFECYCLE


class InvalidTransitionError(CaseflowError, ValueError):
    """Raised when an execution token is moved along an illegal edge.

    Token states only move forward (``PENDING → RUNNING → SUCCEEDED |
    FAILED → RELEASED``); anything else is a bug in the orchestration code.
    """

    default_category = ErrorCategory.LIFECYCLE

    def __init__(self, current: str, target: str, enum_name: str = "TokenStatus") -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid {enum_name} transition: {current} → {target}",
            context={"current": current, "target": target},
        )


# =============================================================================
# EXECUTION / CONFIG ERRORS
# =============================================================================


class AsyncUseCaseError(CaseflowError):
    """A UseCase returned an awaitable but no event loop is running."""

    default_category = ErrorCategory.EXECUTION


class ConfigError(CaseflowError):
    """Invalid caseflow configuration."""

    default_category = ErrorCategory.CONFIG


def categorize_error(error: BaseException) -> ErrorCategory:
    """Return the category of *error*, ``INTERNAL`` for foreign exceptions."""
    if isinstance(error, CaseflowError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
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
]
