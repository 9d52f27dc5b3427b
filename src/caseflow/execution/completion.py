"""Completion: a settle-once result handle for a UseCase run.

WHY
───
A UseCase may finish synchronously (plain return) or later (it returned a
coroutine).  Callers need one handle for both shapes: something they can
inspect immediately when the run already finished, or ``await`` when it
has not.  ``asyncio.Future`` requires a running loop even for values that
are already known, so runs that never leave the current turn would be
forced onto a loop.  ``Completion`` settles synchronously and only touches
asyncio when it is awaited while still pending.

CONTRACT
────────
::

    PENDING ──set_result──▶ RESOLVED
       │
       └────set_exception──▶ REJECTED

    - settles exactly once (second settle → CompletionError)
    - done callbacks run synchronously at settle time, in registration order
    - callbacks added after settling run immediately
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Generator
from enum import Enum
from typing import Any, Generic, TypeVar

from caseflow.core.errors import AsyncUseCaseError, CompletionError
from caseflow.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CompletionState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Completion(Generic[T]):
    """Result of ``context.use_case(unit).execute(...)``.

    Example:
        >>> completion = context.use_case(SaveTodoUseCase()).execute("buy milk")
        >>> completion.done()
        True
        >>> completion.result()
        'todo-1'

    From async code::

        value = await context.use_case(FetchTodosUseCase()).execute()
    """

    def __init__(self) -> None:
        self._state = CompletionState.PENDING
        self._value: T | None = None
        self._error: BaseException | None = None
        self._callbacks: list[Callable[[Completion[T]], Any]] = []
        self._task: asyncio.Future[Any] | None = None

    def __repr__(self) -> str:
        return f"Completion({self._state.value})"

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #

    @classmethod
    def resolved(cls, value: T) -> Completion[T]:
        completion: Completion[T] = cls()
        completion.set_result(value)
        return completion

    @classmethod
    def rejected(cls, error: BaseException) -> Completion[T]:
        completion: Completion[T] = cls()
        completion.set_exception(error)
        return completion

    @classmethod
    def from_awaitable(cls, awaitable: Awaitable[T]) -> Completion[T]:
        """Schedule *awaitable* on the running loop and settle when it finishes.

        Raises:
            AsyncUseCaseError: If no event loop is running.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError as exc:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise AsyncUseCaseError(
                "An awaitable UseCase result needs a running event loop", cause=exc
            ) from exc

        completion: Completion[T] = cls()
        task = asyncio.ensure_future(awaitable)
        completion._task = task

        def settle(finished: asyncio.Future[T]) -> None:
            if finished.cancelled():
                completion.set_exception(asyncio.CancelledError())
                return
            error = finished.exception()
            if error is not None:
                completion.set_exception(error)
            else:
                completion.set_result(finished.result())

        task.add_done_callback(settle)
        return completion

    # ------------------------------------------------------------------ #
    # Settling
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> CompletionState:
        return self._state

    def done(self) -> bool:
        return self._state is not CompletionState.PENDING

    def set_result(self, value: T) -> None:
        self._ensure_pending()
        self._value = value
        self._state = CompletionState.RESOLVED
        self._run_callbacks()

    def set_exception(self, error: BaseException) -> None:
        self._ensure_pending()
        self._error = error
        self._state = CompletionState.REJECTED
        self._run_callbacks()

    def _ensure_pending(self) -> None:
        if self.done():
            raise CompletionError(
                f"Completion already settled ({self._state.value})",
                context={"state": self._state.value},
            )

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def result(self) -> T:
        """Return the value, raise the stored error, or CompletionError if pending."""
        if not self.done():
            raise CompletionError("Completion is still pending")
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def exception(self) -> BaseException | None:
        if not self.done():
            raise CompletionError("Completion is still pending")
        return self._error

    def add_done_callback(self, callback: Callable[[Completion[T]], Any]) -> None:
        if self.done():
            self._invoke(callback)
        else:
            self._callbacks.append(callback)

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: Callable[[Completion[T]], Any]) -> None:
        try:
            callback(self)
        except Exception as e:
            logger.warning(
                "completion_callback_error",
                state=self._state.value,
                error=str(e),
                error_type=type(e).__name__,
            )

    def __await__(self) -> Generator[Any, None, T]:
        if not self.done():
            future: asyncio.Future[None] = asyncio.get_running_loop().create_future()

            def wake(_: Completion[T]) -> None:
                if not future.done():
                    future.set_result(None)

            self.add_done_callback(wake)
            yield from future.__await__()
        return self.result()


__all__ = ["Completion", "CompletionState"]
