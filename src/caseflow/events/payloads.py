"""Payloads: immutable tagged values flowing through a Dispatcher.

WHY
───
Subscribers pick what they care about by looking at a single string
discriminant (``payload.type``).  The four lifecycle variants are emitted
by the execution core itself; every other ``type`` belongs to the
application and may carry arbitrary extra fields.

ARCHITECTURE
────────────
::

    Payload (frozen, extra fields allowed)
      ├── type         ─ discriminant string
      ├── use_case_id  ─ originating UseCase identity (when known)
      │
      ├── WillExecutedPayload   caseflow:will-execute   args, kwargs
      ├── DidExecutedPayload    caseflow:did-execute    value
      ├── CompletedPayload      caseflow:completed      value
      └── ErrorPayload          caseflow:failed         error

    Payload(type="TodoAdded", title="buy milk")  ─ user-defined
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict

from caseflow.core.errors import PayloadError

WILL_EXECUTE_TYPE = "caseflow:will-execute"
DID_EXECUTE_TYPE = "caseflow:did-execute"
COMPLETED_TYPE = "caseflow:completed"
FAILED_TYPE = "caseflow:failed"


class PayloadKind(str, Enum):
    """Discriminant families a payload can belong to."""

    WILL_EXECUTE = "will_execute"
    DID_EXECUTE = "did_execute"
    COMPLETED = "completed"
    FAILED = "failed"
    USER_DEFINED = "user_defined"


_KIND_BY_TYPE: dict[str, PayloadKind] = {
    WILL_EXECUTE_TYPE: PayloadKind.WILL_EXECUTE,
    DID_EXECUTE_TYPE: PayloadKind.DID_EXECUTE,
    COMPLETED_TYPE: PayloadKind.COMPLETED,
    FAILED_TYPE: PayloadKind.FAILED,
}


class Payload(BaseModel):
    """An event value. Immutable once built.

    Example:
        >>> payload = Payload(type="TodoAdded", title="buy milk")
        >>> payload.kind
        <PayloadKind.USER_DEFINED: 'user_defined'>
        >>> payload.title
        'buy milk'
    """

    model_config = ConfigDict(frozen=True, extra="allow", arbitrary_types_allowed=True)

    type: str
    use_case_id: str | None = None

    @property
    def kind(self) -> PayloadKind:
        return _KIND_BY_TYPE.get(self.type, PayloadKind.USER_DEFINED)

    @property
    def is_lifecycle(self) -> bool:
        """True for the four payload variants emitted by the execution core."""
        return self.type in _KIND_BY_TYPE

    def with_use_case(self, use_case_id: str) -> Payload:
        """Return a copy stamped with *use_case_id* (self when already stamped)."""
        if self.use_case_id is not None:
            return self
        return self.model_copy(update={"use_case_id": use_case_id})


class WillExecutedPayload(Payload):
    """Emitted right before ``UseCase.execute`` is invoked."""

    TYPE: ClassVar[str] = WILL_EXECUTE_TYPE

    type: Literal["caseflow:will-execute"] = WILL_EXECUTE_TYPE
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = {}


class DidExecutedPayload(Payload):
    """Emitted once ``execute`` returned and any pending completion settled."""

    TYPE: ClassVar[str] = DID_EXECUTE_TYPE

    type: Literal["caseflow:did-execute"] = DID_EXECUTE_TYPE
    value: Any = None


class CompletedPayload(Payload):
    """Emitted after ``DidExecutedPayload`` when the run succeeded."""

    TYPE: ClassVar[str] = COMPLETED_TYPE

    type: Literal["caseflow:completed"] = COMPLETED_TYPE
    value: Any = None


class ErrorPayload(Payload):
    """A failure: raised inside ``execute`` or reported via ``throw_error``."""

    TYPE: ClassVar[str] = FAILED_TYPE

    type: Literal["caseflow:failed"] = FAILED_TYPE
    error: BaseException


LIFECYCLE_PAYLOAD_CLASSES: dict[str, type[Payload]] = {
    WILL_EXECUTE_TYPE: WillExecutedPayload,
    DID_EXECUTE_TYPE: DidExecutedPayload,
    COMPLETED_TYPE: CompletedPayload,
    FAILED_TYPE: ErrorPayload,
}


def payload_type_of(type_or_class: str | type[Payload]) -> str:
    """Normalize a discriminant given as a string or a lifecycle payload class."""
    if isinstance(type_or_class, str):
        return type_or_class
    type_value = getattr(type_or_class, "TYPE", None)
    if isinstance(type_value, str):
        return type_value
    raise PayloadError(f"Cannot derive a payload type from {type_or_class!r}")


def coerce_payload(obj: Payload | Mapping[str, Any]) -> Payload:
    """Turn *obj* into a Payload.

    Accepts a Payload as-is, or a mapping with a non-empty string ``type``
    key.  Mappings whose type names a lifecycle variant build that variant.

    Raises:
        PayloadError: If *obj* carries no usable discriminant.
    """
    if isinstance(obj, Payload):
        return obj
    if isinstance(obj, Mapping):
        payload_type = obj.get("type")
        if not isinstance(payload_type, str) or not payload_type:
            raise PayloadError(
                "payload mapping must have a non-empty string 'type'",
                context={"keys": sorted(str(k) for k in obj.keys())},
            )
        payload_class = LIFECYCLE_PAYLOAD_CLASSES.get(payload_type, Payload)
        try:
            return payload_class(**obj)
        except ValueError as exc:
            raise PayloadError(
                f"invalid {payload_type!r} payload", cause=exc
            ) from exc
    raise PayloadError(
        f"payload must be a Payload or a mapping with 'type', got {type(obj).__name__}"
    )


__all__ = [
    "WILL_EXECUTE_TYPE",
    "DID_EXECUTE_TYPE",
    "COMPLETED_TYPE",
    "FAILED_TYPE",
    "PayloadKind",
    "Payload",
    "WillExecutedPayload",
    "DidExecutedPayload",
    "CompletedPayload",
    "ErrorPayload",
    "LIFECYCLE_PAYLOAD_CLASSES",
    "payload_type_of",
    "coerce_payload",
]
