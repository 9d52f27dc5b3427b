"""Metadata delivered alongside every payload."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from caseflow.execution.usecase import UseCase


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class DispatcherPayloadMeta:
    """Where a payload came from.

    .. code-block:: text

        DispatcherPayloadMeta
        ├── .use_case          → UseCase that dispatched (None for direct dispatch)
        ├── .parent_use_case   → direct parent in the nesting chain
        ├── .ancestors         → parent, grandparent, ... root
        ├── .is_trusted        → emitted by the execution core itself
        └── .timestamp         → UTC
    """

    use_case: UseCase | None = None
    parent_use_case: UseCase | None = None
    ancestors: tuple[UseCase, ...] = ()
    is_trusted: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def use_case_name(self) -> str | None:
        return self.use_case.name if self.use_case is not None else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        return {
            "use_case": self.use_case_name,
            "use_case_id": self.use_case.id if self.use_case is not None else None,
            "parent_use_case": self.parent_use_case.name if self.parent_use_case else None,
            "ancestors": [ancestor.name for ancestor in self.ancestors],
            "is_trusted": self.is_trusted,
            "timestamp": self.timestamp.isoformat(),
        }


__all__ = ["DispatcherPayloadMeta", "utcnow"]
