"""Execution tokens and the release registry.

One ``ExecutionToken`` is created per run of a UseCase inside a Context.
It links to the token of the run that started it (``parent``), which is
how delegation decides whether a payload may still reach the root
Dispatcher.

Valid transition graph::

    PENDING  → RUNNING
    RUNNING  → SUCCEEDED | FAILED
    SUCCEEDED → RELEASED
    FAILED    → RELEASED
    RELEASED  → (terminal)

``is_released`` flips false → true exactly once and never reverts.  The
``ReleaseRegistry`` belonging to a Context is the only thing allowed to
flip it.
"""

from __future__ import annotations

import uuid
import weakref
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING

from caseflow.core.errors import InvalidTransitionError
from caseflow.core.logging import get_logger

if TYPE_CHECKING:
    from caseflow.execution.completion import Completion
    from caseflow.execution.context import Context
    from caseflow.execution.usecase import UseCase

logger = get_logger(__name__)


class TokenStatus(str, Enum):
    """Where one run of a UseCase is in its lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RELEASED = "released"


TOKEN_VALID_TRANSITIONS: dict[TokenStatus, frozenset[TokenStatus]] = {
    TokenStatus.PENDING: frozenset({TokenStatus.RUNNING}),
    TokenStatus.RUNNING: frozenset({TokenStatus.SUCCEEDED, TokenStatus.FAILED}),
    TokenStatus.SUCCEEDED: frozenset({TokenStatus.RELEASED}),
    TokenStatus.FAILED: frozenset({TokenStatus.RELEASED}),
    TokenStatus.RELEASED: frozenset(),  # terminal
}


def validate_token_transition(current: TokenStatus, target: TokenStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal."""
    allowed = TOKEN_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value, "TokenStatus")


class ExecutionToken:
    """Bookkeeping for one run of ``unit`` inside ``context``.

    The Context is held through a weak reference: a unit that outlives the
    contexts it ran in (and keeps its last token for late-dispatch checks)
    must not keep those contexts alive.
    """

    def __init__(
        self,
        unit: UseCase,
        context: Context,
        parent: ExecutionToken | None = None,
        *,
        id: str | None = None,
    ) -> None:
        self.unit = unit
        self._context = weakref.ref(context)
        self.parent = parent
        self.id = id or f"run_{uuid.uuid4().hex[:12]}"
        self.status = TokenStatus.PENDING
        self.completion: Completion | None = None

    @property
    def context(self) -> Context | None:
        """The Context running this token, None once it was collected."""
        return self._context()

    @property
    def is_released(self) -> bool:
        return self.status is TokenStatus.RELEASED

    def transition_to(self, target: TokenStatus) -> None:
        validate_token_transition(self.status, target)
        self.status = target

    def chain(self) -> Iterator[ExecutionToken]:
        """Yield this token, then each ancestor up to the root run."""
        token: ExecutionToken | None = self
        while token is not None:
            yield token
            token = token.parent

    @property
    def ancestors(self) -> tuple[ExecutionToken, ...]:
        return tuple(self.chain())[1:]

    def first_released(self) -> ExecutionToken | None:
        """Nearest released token in the chain (self first), or None."""
        for token in self.chain():
            if token.is_released:
                return token
        return None

    def __repr__(self) -> str:
        return f"ExecutionToken({self.unit.name}, {self.status.value})"


class ReleaseRegistry:
    """Table of live runs owned by a single Context."""

    def __init__(self) -> None:
        self._live: dict[str, ExecutionToken] = {}

    def register(self, token: ExecutionToken) -> None:
        self._live[token.id] = token

    def release(self, token: ExecutionToken) -> None:
        """Move a finished token to RELEASED and drop it from the live table."""
        token.transition_to(TokenStatus.RELEASED)
        self._live.pop(token.id, None)
        logger.debug(
            "use_case_released",
            use_case=token.unit.name,
            use_case_id=token.unit.id,
            run_id=token.id,
        )

    def live_tokens(self) -> list[ExecutionToken]:
        return list(self._live.values())

    def is_live(self, unit: UseCase) -> bool:
        return any(token.unit is unit for token in self._live.values())

    def __len__(self) -> int:
        return len(self._live)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, ExecutionToken) and token.id in self._live


__all__ = [
    "TokenStatus",
    "TOKEN_VALID_TRANSITIONS",
    "validate_token_transition",
    "ExecutionToken",
    "ReleaseRegistry",
]
