"""
caseflow - in-process UseCase orchestration.

Separates intent (running a UseCase) from effect (payloads describing
what happened).  A Context runs UseCases, tracks nested runs, and
delegates their payloads to one root Dispatcher that stores and views
subscribe to.

Usage::

    from caseflow import Context, Dispatcher, UseCase

    class AddTodoUseCase(UseCase):
        def execute(self, title):
            self.dispatch({"type": "TodoAdded", "title": title})

    dispatcher = Dispatcher()
    dispatcher.subscribe("TodoAdded", lambda payload, meta: print(payload.title))
    Context(dispatcher=dispatcher).use_case(AddTodoUseCase()).execute("buy milk")
"""

__version__ = "0.1.0"

from caseflow.core.errors import (
    AsyncUseCaseError,
    CaseflowError,
    CompletionError,
    PayloadError,
    UseCaseNotImplementedError,
)
from caseflow.events import (
    ANY,
    CompletedPayload,
    DidExecutedPayload,
    Dispatcher,
    DispatcherPayloadMeta,
    ErrorPayload,
    Payload,
    PayloadKind,
    WillExecutedPayload,
)
from caseflow.execution import Completion, Context, UseCase, UseCaseExecutor
from caseflow.store import Store

__all__ = [
    "__version__",
    # errors
    "CaseflowError",
    "UseCaseNotImplementedError",
    "PayloadError",
    "CompletionError",
    "AsyncUseCaseError",
    # events
    "ANY",
    "Dispatcher",
    "DispatcherPayloadMeta",
    "Payload",
    "PayloadKind",
    "WillExecutedPayload",
    "DidExecutedPayload",
    "CompletedPayload",
    "ErrorPayload",
    # execution
    "Completion",
    "Context",
    "UseCase",
    "UseCaseExecutor",
    # collaborators
    "Store",
]
