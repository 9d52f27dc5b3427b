"""UseCaseExecutor: runs one UseCase inside a Context.

Architecture:

    .. code-block:: text

        UseCaseExecutor.execute(*args) lifecycle:

        ┌──────────────────────────────────────────────────────┐
        │ 1. Variant check (execute overridden?)               │
        │ 2. Token created, parent = current run, registered   │
        │ 3. Delegation channel attached to the private bus    │
        │ 4. emit WillExecuted                                 │
        │ 5. ─── unit.execute(*args) ───                       │
        │ 6a. plain value   → settle now                       │
        │ 6b. Completion    → settle when it settles           │
        │ 6c. awaitable     → task, settle when it finishes    │
        │ 7. RELEASE → emit DidExecuted → Completed | Failed   │
        │ 8. settle the Completion handed to the caller        │
        └──────────────────────────────────────────────────────┘

Lifecycle payloads travel on the unit's private bus (so ``on_dispatch``
observers of the unit see them) and straight to the root Dispatcher.
Payloads dispatched by the unit itself go through its delegation channel,
which forwards them to the root Dispatcher only while every run in the
token chain is unreleased.  Otherwise the payload is dropped and a
``use_case_already_released`` warning is logged; nothing is raised.
"""

from __future__ import annotations

import inspect
import weakref
from typing import TYPE_CHECKING, Any

from caseflow.core.errors import UseCaseNotImplementedError
from caseflow.core.logging import LogContext, get_logger
from caseflow.events.meta import DispatcherPayloadMeta
from caseflow.events.payloads import (
    CompletedPayload,
    DidExecutedPayload,
    ErrorPayload,
    Payload,
    WillExecutedPayload,
)
from caseflow.execution.completion import Completion
from caseflow.execution.tokens import ExecutionToken, TokenStatus
from caseflow.execution.usecase import UseCase, _current_run, current_run, is_implemented

if TYPE_CHECKING:
    from caseflow.execution.context import Context

logger = get_logger(__name__)


def build_meta(token: ExecutionToken, *, is_trusted: bool = False) -> DispatcherPayloadMeta:
    ancestors = tuple(ancestor.unit for ancestor in token.ancestors)
    return DispatcherPayloadMeta(
        use_case=token.unit,
        parent_use_case=ancestors[0] if ancestors else None,
        ancestors=ancestors,
        is_trusted=is_trusted,
    )


class DelegationChannel:
    """The Context's single subscription to one unit's private bus.

    Attached on the unit's first run in a Context and kept until the Context
    is released or collected, so a dispatch arriving after the run released
    still reaches the release check instead of vanishing.  The unit only
    refers to its Context weakly (``unit._channels`` is a
    ``WeakKeyDictionary`` and the subscription is dropped by a finalizer).
    """

    def __init__(self, context: Context, unit: UseCase) -> None:
        self._context = weakref.ref(context)
        self._channels = unit._channels
        self.latest: ExecutionToken | None = None
        self._detach = weakref.finalize(context, unit.on_dispatch(self._on_payload))

    @property
    def context(self) -> Context | None:
        return self._context()

    @classmethod
    def attach(cls, context: Context, unit: UseCase) -> DelegationChannel:
        channel = unit._channels.get(context)
        if channel is None:
            channel = cls(context, unit)
            unit._channels[context] = channel
            context._channels.append(channel)
        return channel

    def detach(self) -> None:
        """Unsubscribe from the unit's private bus. Safe to call twice."""
        self._detach()
        context = self.context
        if context is not None and self._channels.get(context) is self:
            del self._channels[context]
        self.latest = None

    def _on_payload(self, payload: Payload, meta: DispatcherPayloadMeta) -> None:
        if meta.is_trusted:
            # lifecycle payloads are sent to the root by the executor itself
            return
        context = self.context
        token = self._resolve(meta.use_case)
        if context is not None and token is not None:
            context._delegate(token, payload)

    def _resolve(self, unit: UseCase | None) -> ExecutionToken | None:
        """Find the run that is dispatching: the current flow first, else the latest run."""
        token = current_run()
        while token is not None:
            if token.unit is unit:
                return token if token.context is self.context else None
            token = token.parent
        return self.latest


class UseCaseExecutor:
    """Handle returned by ``context.use_case(unit)``."""

    def __init__(self, use_case: UseCase, context: Context) -> None:
        self.use_case = use_case
        self.context = context

    def __repr__(self) -> str:
        return f"UseCaseExecutor({self.use_case.name})"

    def execute(self, *args: Any, **kwargs: Any) -> Completion[Any]:
        """Run the unit.

        Returns:
            A Completion settled with the unit's result, or with the error it
            raised (application errors are never raised from here).

        Raises:
            UseCaseNotImplementedError: If the unit does not override execute.
        """
        unit = self.use_case
        if not is_implemented(unit):
            raise UseCaseNotImplementedError(unit.name)

        token = ExecutionToken(unit=unit, context=self.context, parent=self._parent_token())
        completion: Completion[Any] = Completion()
        token.completion = completion
        self.context.registry.register(token)
        DelegationChannel.attach(self.context, unit).latest = token

        logger.debug(
            "use_case_will_execute",
            use_case=unit.name,
            use_case_id=unit.id,
            run_id=token.id,
            parent=token.parent.unit.name if token.parent else None,
        )
        self._emit(token, WillExecutedPayload(args=args, kwargs=kwargs))

        token.transition_to(TokenStatus.RUNNING)
        reset = _current_run.set(token)
        failure: BaseException | None = None
        pending: Completion[Any] | None = None
        result: Any = None
        try:
            with LogContext(use_case=unit.name, use_case_id=unit.id, run_id=token.id):
                result = unit.execute(*args, **kwargs)
                if isinstance(result, Completion):
                    pending = result
                elif inspect.isawaitable(result):
                    # created while the run is current so the task inherits it
                    pending = Completion.from_awaitable(result)
        except BaseException as error:
            failure = error
        finally:
            _current_run.reset(reset)

        if failure is not None:
            self._finish(token, error=failure)
            if not isinstance(failure, Exception):
                # not an application error: reported, then propagated
                raise failure
        elif pending is None:
            self._finish(token, value=result)
        else:
            pending.add_done_callback(lambda settled: self._on_settled(token, settled))
        return completion

    def _parent_token(self) -> ExecutionToken | None:
        token = current_run()
        if token is not None and token.context is self.context:
            return token
        return None

    def _on_settled(self, token: ExecutionToken, settled: Completion[Any]) -> None:
        error = settled.exception()
        if error is not None:
            self._finish(token, error=error)
        else:
            self._finish(token, value=settled.result())

    def _finish(self, token: ExecutionToken, *, value: Any = None, error: BaseException | None = None) -> None:
        unit = token.unit
        token.transition_to(TokenStatus.FAILED if error is not None else TokenStatus.SUCCEEDED)
        self.context.registry.release(token)

        self._emit(token, DidExecutedPayload(value=value))
        if error is not None:
            logger.info(
                "use_case_failed",
                use_case=unit.name,
                use_case_id=unit.id,
                run_id=token.id,
                error=str(error),
                error_type=type(error).__name__,
            )
            self._emit(token, ErrorPayload(error=error))
            token.completion.set_exception(error)
        else:
            logger.debug("use_case_completed", use_case=unit.name, use_case_id=unit.id, run_id=token.id)
            self._emit(token, CompletedPayload(value=value))
            token.completion.set_result(value)

    def _emit(self, token: ExecutionToken, payload: Payload) -> None:
        meta = build_meta(token, is_trusted=True)
        payload = payload.with_use_case(token.unit.id)
        token.unit.dispatch(payload, meta)
        self.context.dispatcher.dispatch(payload, meta)


__all__ = ["UseCaseExecutor", "DelegationChannel", "build_meta"]
