"""Payloads and the Dispatcher that distributes them.

Usage::

    from caseflow.events import ANY, Dispatcher, Payload

    dispatcher = Dispatcher()
    dispatcher.subscribe("TodoAdded", lambda payload, meta: print(payload.title))
    dispatcher.dispatch(Payload(type="TodoAdded", title="buy milk"))

Modules
-------
payloads     Payload, lifecycle variants, PayloadKind
meta         DispatcherPayloadMeta
dispatcher   Dispatcher, ANY wildcard
"""

from caseflow.events.dispatcher import ANY, Dispatcher, PayloadHandler, Subscription, Unsubscribe
from caseflow.events.meta import DispatcherPayloadMeta
from caseflow.events.payloads import (
    COMPLETED_TYPE,
    DID_EXECUTE_TYPE,
    FAILED_TYPE,
    WILL_EXECUTE_TYPE,
    CompletedPayload,
    DidExecutedPayload,
    ErrorPayload,
    Payload,
    PayloadKind,
    WillExecutedPayload,
    coerce_payload,
)

__all__ = [
    "ANY",
    "Dispatcher",
    "PayloadHandler",
    "Subscription",
    "Unsubscribe",
    "DispatcherPayloadMeta",
    "Payload",
    "PayloadKind",
    "WillExecutedPayload",
    "DidExecutedPayload",
    "CompletedPayload",
    "ErrorPayload",
    "WILL_EXECUTE_TYPE",
    "DID_EXECUTE_TYPE",
    "COMPLETED_TYPE",
    "FAILED_TYPE",
    "coerce_payload",
]
