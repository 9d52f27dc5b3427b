"""UseCase: the unit of executable intent.

Subclasses implement ``execute``.  Everything else (identity, naming, the
private bus, ``throw_error``) is inherited::

    class AddTodoUseCase(UseCase):
        def execute(self, title):
            self.dispatch({"type": "TodoAdded", "title": title})
            return title

    context.use_case(AddTodoUseCase()).execute("buy milk")

The private bus only reaches whoever called ``on_dispatch`` on this unit,
normally the Context running it.  Global subscribers see a payload only
after the Context delegated it to the root Dispatcher.

While a run is in progress, ``self.context`` is the Context running it.
The binding lives in a ``ContextVar`` scoped to the run (and to asyncio
tasks created by it), not on the instance, so two concurrent runs of the
same unit never see each other's context.
"""

from __future__ import annotations

import uuid
import weakref
from collections.abc import Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, ClassVar

from caseflow.core.errors import UseCaseNotImplementedError
from caseflow.core.settings import get_settings
from caseflow.events.dispatcher import Dispatcher, PayloadHandler, Unsubscribe
from caseflow.events.meta import DispatcherPayloadMeta
from caseflow.events.payloads import ErrorPayload, Payload, coerce_payload

if TYPE_CHECKING:
    from caseflow.execution.context import Context
    from caseflow.execution.tokens import ExecutionToken

_current_run: ContextVar[ExecutionToken | None] = ContextVar("caseflow_current_run", default=None)


def current_run() -> ExecutionToken | None:
    """Token of the UseCase run active in the current flow, if any."""
    return _current_run.get()


class UseCase:
    """Base class for executable units.

    Attributes:
        display_name: Class-level override for ``name``
    """

    display_name: ClassVar[str | None] = None

    def __init__(self) -> None:
        separator = get_settings().id_separator
        self._id = f"{type(self).__name__}{separator}{uuid.uuid4().hex}"
        self._bus = Dispatcher()
        # Context -> DelegationChannel, managed by caseflow.execution.executor
        self._channels: weakref.WeakKeyDictionary[Context, Any] = weakref.WeakKeyDictionary()

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return type(self).display_name or type(self).__name__

    @property
    def context(self) -> Context | None:
        token = _current_run.get()
        while token is not None:
            if token.unit is self:
                return token.context
            token = token.parent
        return None

    def execute(self, *args: Any, **kwargs: Any) -> Any:
        raise UseCaseNotImplementedError(self.name)

    def dispatch(
        self,
        payload: Payload | Mapping[str, Any],
        meta: DispatcherPayloadMeta | None = None,
    ) -> None:
        """Stamp *payload* with this unit's id and deliver it on the private bus."""
        payload = coerce_payload(payload).with_use_case(self._id)
        self._bus.dispatch(payload, meta or DispatcherPayloadMeta(use_case=self))

    def on_dispatch(self, handler: PayloadHandler) -> Unsubscribe:
        return self._bus.on_dispatch(handler)

    def throw_error(self, error: BaseException) -> None:
        """Report *error* as a failed payload without raising it."""
        self.dispatch(ErrorPayload(error=error))

    def __repr__(self) -> str:
        return f"<{self.name} id={self._id}>"


def is_implemented(use_case: UseCase) -> bool:
    """True when the concrete class overrides ``execute``."""
    return type(use_case).execute is not UseCase.execute


__all__ = ["UseCase", "current_run", "is_implemented"]
