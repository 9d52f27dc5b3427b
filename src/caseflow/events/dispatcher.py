"""
In-process publish/subscribe Dispatcher.

Manifesto:
    Lifecycle notifications must reach every interested party in a
    predictable order, in the same turn they happen, and one misbehaving
    subscriber must not silence the others.

Delivery is synchronous.  A handler may dispatch again; the nested payload
is delivered to completion before the outer ``dispatch`` returns
(depth-first).  The dispatcher keeps an explicit delivery stack so the
current nesting is observable through ``depth``.

Each ``dispatch`` works on a snapshot of the subscribers taken when it
starts, so unsubscribing from inside a handler never invalidates the
iteration and never makes the current delivery skip a handler.

Example::

    dispatcher = Dispatcher()

    def log_payload(payload, meta):
        print(payload.type, meta.use_case_name)

    unsubscribe = dispatcher.on_dispatch(log_payload)
    dispatcher.dispatch(Payload(type="TodoAdded", title="buy milk"))
    unsubscribe()

Tags:
    caseflow, events, dispatcher, pubsub, in-process

Doc-Types:
    api-reference
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from caseflow.core.logging import get_logger
from caseflow.events.meta import DispatcherPayloadMeta
from caseflow.events.payloads import Payload, coerce_payload, payload_type_of

logger = get_logger(__name__)

ANY = "*"

PayloadHandler = Callable[[Payload, DispatcherPayloadMeta], Any]
Unsubscribe = Callable[[], None]

_sequence = itertools.count(1)


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: PayloadHandler
    seq: int = field(default_factory=lambda: next(_sequence))
    active: bool = True


class Dispatcher:
    """Synchronous pub/sub bus keyed by payload ``type`` (or ``ANY``)."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._delivery_stack: list[Payload] = []

    # ------------------------------------------------------------------ #
    # Subscription management
    # ------------------------------------------------------------------ #

    def subscribe(self, payload_type: str | type[Payload], handler: PayloadHandler) -> Unsubscribe:
        """Register *handler* for one payload type, or every payload with ``ANY``.

        Args:
            payload_type: Discriminant string, lifecycle payload class, or ``ANY``
            handler: Called as ``handler(payload, meta)``

        Returns:
            A callable removing the subscription; calling it twice is harmless.
        """
        pattern = payload_type_of(payload_type)
        subscription = Subscription(
            id=f"sub_{next(_sequence)}",
            pattern=pattern,
            handler=handler,
        )
        # copy-on-write so snapshots held by in-flight dispatches stay intact
        current = self._subscriptions.get(pattern, [])
        self._subscriptions[pattern] = [*current, subscription]

        def unsubscribe() -> None:
            self._remove(subscription)

        return unsubscribe

    def on_dispatch(self, handler: PayloadHandler) -> Unsubscribe:
        """Subscribe *handler* to every payload."""
        return self.subscribe(ANY, handler)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription by id. Returns False when it was not found."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                if subscription.id == subscription_id:
                    self._remove(subscription)
                    return True
        return False

    def _remove(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        remaining = [s for s in self._subscriptions.get(subscription.pattern, []) if s is not subscription]
        if remaining:
            self._subscriptions[subscription.pattern] = remaining
        else:
            self._subscriptions.pop(subscription.pattern, None)

    def clear(self) -> None:
        """Remove all subscriptions."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.active = False
        self._subscriptions = {}

    def subscriber_count(self, payload_type: str | type[Payload] | None = None) -> int:
        """Number of subscriptions, optionally for one pattern only."""
        if payload_type is None:
            return sum(len(subs) for subs in self._subscriptions.values())
        return len(self._subscriptions.get(payload_type_of(payload_type), []))

    # ------------------------------------------------------------------ #
    # Delivery
    # ------------------------------------------------------------------ #

    @property
    def depth(self) -> int:
        """How many dispatches are currently being delivered (nesting level)."""
        return len(self._delivery_stack)

    def dispatch(
        self,
        payload: Payload | Mapping[str, Any],
        meta: DispatcherPayloadMeta | None = None,
    ) -> None:
        """Deliver *payload* to its type subscribers and to ``ANY`` subscribers.

        Handlers run in subscription order.  A handler raising is logged and
        delivery continues with the next one.
        """
        payload = coerce_payload(payload)
        meta = meta or DispatcherPayloadMeta()

        snapshot = sorted(
            [*self._subscriptions.get(payload.type, ()), *self._subscriptions.get(ANY, ())],
            key=lambda s: s.seq,
        )
        if not snapshot:
            return

        self._delivery_stack.append(payload)
        try:
            for subscription in snapshot:
                try:
                    subscription.handler(payload, meta)
                except Exception as e:
                    logger.warning(
                        "dispatcher_handler_error",
                        subscription_id=subscription.id,
                        payload_type=payload.type,
                        use_case=meta.use_case_name,
                        depth=self.depth,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        finally:
            self._delivery_stack.pop()

    def pipe(self, to_dispatcher: Dispatcher) -> Unsubscribe:
        """Forward every payload (and its meta) to *to_dispatcher*."""

        def forward(payload: Payload, meta: DispatcherPayloadMeta) -> None:
            to_dispatcher.dispatch(payload, meta)

        return self.on_dispatch(forward)


__all__ = ["ANY", "Dispatcher", "PayloadHandler", "Subscription", "Unsubscribe"]
