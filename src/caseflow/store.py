"""Store: the state-container collaborator.

Stores are application code.  The orchestration core only needs two
things from them: a hook that receives every payload reaching the root
Dispatcher (``receive_payload``) and a read method (``get_state``).

Example::

    class TodoStore(Store):
        def __init__(self):
            super().__init__()
            self.todos = []

        def receive_payload(self, payload, meta):
            if payload.type == "TodoAdded":
                self.todos = [*self.todos, payload.title]
                self.emit_change()

        def get_state(self):
            return {"todos": self.todos}
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, ClassVar

from caseflow.core.errors import StoreNotImplementedError
from caseflow.events.dispatcher import Dispatcher, Unsubscribe
from caseflow.events.meta import DispatcherPayloadMeta
from caseflow.events.payloads import Payload

STORE_CHANGED_TYPE = "caseflow:store-changed"


class Store:
    """Base class for state containers observed by a Context."""

    display_name: ClassVar[str | None] = None

    def __init__(self) -> None:
        self._changes = Dispatcher()

    @property
    def name(self) -> str:
        return type(self).display_name or type(self).__name__

    def get_state(self) -> Any:
        raise StoreNotImplementedError(self.name)

    def receive_payload(self, payload: Payload, meta: DispatcherPayloadMeta) -> None:
        """Called for every payload reaching the root Dispatcher. No-op by default."""

    def on_change(self, handler: Callable[[Store], Any]) -> Unsubscribe:
        return self._changes.subscribe(STORE_CHANGED_TYPE, lambda payload, meta: handler(self))

    def emit_change(self) -> None:
        self._changes.dispatch(Payload(type=STORE_CHANGED_TYPE, store=self.name))


__all__ = ["Store", "STORE_CHANGED_TYPE"]
