"""Context: the single entry point application code uses to run UseCases.

Example:
    >>> dispatcher = Dispatcher()
    >>> context = Context(dispatcher=dispatcher, store=TodoStore())
    >>> context.on_did_execute_each_use_case(
    ...     lambda payload, meta: print(f"{meta.use_case_name} done")
    ... )
    >>> context.use_case(AddTodoUseCase()).execute("buy milk").result()
    AddTodoUseCase done
    'buy milk'

Manifesto:
    Every run goes through one Context, so every payload reaches global
    subscribers through one path: the root Dispatcher.  The Context owns
    the release registry and is the only thing that decides whether a
    late payload is still delivered.

Tags:
    caseflow, execution, context, delegation, release

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from caseflow.core.logging import get_logger
from caseflow.events.dispatcher import ANY, Dispatcher, PayloadHandler, Unsubscribe
from caseflow.events.payloads import (
    CompletedPayload,
    DidExecutedPayload,
    ErrorPayload,
    Payload,
    WillExecutedPayload,
)
from caseflow.execution.executor import DelegationChannel, UseCaseExecutor, build_meta
from caseflow.execution.tokens import ExecutionToken, ReleaseRegistry
from caseflow.execution.usecase import UseCase

if TYPE_CHECKING:
    from caseflow.store import Store

logger = get_logger(__name__)


class Context:
    """Wraps a root Dispatcher (and optionally a Store) and runs UseCases.

    .. code-block:: text

        Context
        ├── .use_case(unit).execute(*args)   → Completion
        ├── .on_will_execute_each_use_case(h)
        ├── .on_did_execute_each_use_case(h)
        ├── .on_complete_each_use_case(h)
        ├── .on_error_dispatch(h)
        ├── .on_dispatch(h)                  → every payload reaching the root
        ├── .get_state() / .on_change(h)     → Store read surface
        └── .release()                       → drop handlers and unit channels
    """

    def __init__(self, dispatcher: Dispatcher, store: Store | None = None) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._registry = ReleaseRegistry()
        self._release_handlers: list[Unsubscribe] = []
        self._channels: list[DelegationChannel] = []

        if store is not None:
            self._track(dispatcher.on_dispatch(store.receive_payload))

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def store(self) -> Store | None:
        return self._store

    @property
    def registry(self) -> ReleaseRegistry:
        return self._registry

    @property
    def live_use_cases(self) -> list[UseCase]:
        """UseCases whose run has not been released yet."""
        return [token.unit for token in self._registry.live_tokens()]

    def use_case(self, use_case: UseCase) -> UseCaseExecutor:
        return UseCaseExecutor(use_case, self)

    # ------------------------------------------------------------------ #
    # Observation hooks
    # ------------------------------------------------------------------ #

    def _track(self, unsubscribe: Unsubscribe) -> Unsubscribe:
        self._release_handlers.append(unsubscribe)
        return unsubscribe

    def on_will_execute_each_use_case(self, handler: PayloadHandler) -> Unsubscribe:
        return self._track(self._dispatcher.subscribe(WillExecutedPayload, handler))

    def on_did_execute_each_use_case(self, handler: PayloadHandler) -> Unsubscribe:
        return self._track(self._dispatcher.subscribe(DidExecutedPayload, handler))

    def on_complete_each_use_case(self, handler: PayloadHandler) -> Unsubscribe:
        return self._track(self._dispatcher.subscribe(CompletedPayload, handler))

    def on_error_dispatch(self, handler: PayloadHandler) -> Unsubscribe:
        return self._track(self._dispatcher.subscribe(ErrorPayload, handler))

    def on_dispatch(self, handler: PayloadHandler) -> Unsubscribe:
        return self._track(self._dispatcher.subscribe(ANY, handler))

    # ------------------------------------------------------------------ #
    # Store read surface
    # ------------------------------------------------------------------ #

    def get_state(self) -> Any:
        if self._store is None:
            return None
        return self._store.get_state()

    def on_change(self, handler: Callable[[Store], Any]) -> Unsubscribe:
        if self._store is None:
            return lambda: None
        return self._track(self._store.on_change(handler))

    def release(self) -> None:
        """Remove every handler registered through this context.

        Also detaches the context from the private bus of every unit it ran,
        so those units stop referring to it.
        """
        handlers, self._release_handlers = self._release_handlers, []
        for unsubscribe in handlers:
            unsubscribe()
        channels, self._channels = self._channels, []
        for channel in channels:
            channel.detach()

    # ------------------------------------------------------------------ #
    # Delegation
    # ------------------------------------------------------------------ #

    def _delegate(self, token: ExecutionToken, payload: Payload) -> None:
        """Forward a unit's own payload to the root, unless its run chain released."""
        released = token.first_released()
        if released is not None:
            logger.warning(
                "use_case_already_released",
                detail=(
                    f"UseCase({released.unit.name}) is already released. "
                    f"{payload.type!r} dispatched by {token.unit.name} is not delivered "
                    "to the dispatcher. Await nested UseCases before the parent finishes."
                ),
                use_case=released.unit.name,
                use_case_id=released.unit.id,
                dispatched_by=token.unit.name,
                payload_type=payload.type,
            )
            return
        self._dispatcher.dispatch(payload, build_meta(token))


__all__ = ["Context"]
