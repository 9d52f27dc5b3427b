"""Tests for caseflow.execution.context — single runs through a Context."""

import asyncio
import gc
import weakref

import pytest
import structlog

from caseflow import Context, Dispatcher, Store
from caseflow.core.errors import UseCaseNotImplementedError
from caseflow.events.payloads import (
    COMPLETED_TYPE,
    DID_EXECUTE_TYPE,
    FAILED_TYPE,
    WILL_EXECUTE_TYPE,
    CompletedPayload,
    ErrorPayload,
    PayloadKind,
    WillExecutedPayload,
)
from caseflow.execution.completion import Completion
from caseflow.execution.executor import UseCaseExecutor
from caseflow.execution.usecase import UseCase, current_run


class EchoUseCase(UseCase):
    def execute(self, value, *, suffix=""):
        return f"{value}{suffix}"


class AddTodoUseCase(UseCase):
    def execute(self, title):
        self.dispatch({"type": "TodoAdded", "title": title})
        return title


class BrokenUseCase(UseCase):
    def execute(self):
        raise ValueError("broken")


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


class TestSynchronousRun:
    def test_use_case_returns_executor(self, context):
        executor = context.use_case(EchoUseCase())
        assert isinstance(executor, UseCaseExecutor)
        assert executor.context is context

    def test_result_and_lifecycle_order(self, context, dispatcher, recorder):
        dispatcher.on_dispatch(recorder)

        completion = context.use_case(EchoUseCase()).execute("a", suffix="!")

        assert isinstance(completion, Completion)
        assert completion.done()
        assert completion.result() == "a!"
        assert recorder.types == [WILL_EXECUTE_TYPE, DID_EXECUTE_TYPE, COMPLETED_TYPE]

    def test_lifecycle_payload_contents(self, context, dispatcher, recorder):
        dispatcher.on_dispatch(recorder)
        use_case = EchoUseCase()

        context.use_case(use_case).execute("a", suffix="!")

        will, did, completed = recorder.payloads
        assert will.args == ("a",)
        assert will.kwargs == {"suffix": "!"}
        assert did.value == "a!"
        assert completed.value == "a!"
        assert {p.use_case_id for p in recorder.payloads} == {use_case.id}
        for _, meta in recorder.calls:
            assert meta.use_case is use_case
            assert meta.is_trusted is True
            assert meta.parent_use_case is None

    def test_user_payloads_between_will_and_did(self, context, dispatcher, recorder):
        dispatcher.on_dispatch(recorder)
        use_case = AddTodoUseCase()

        context.use_case(use_case).execute("buy milk")

        assert recorder.types == [WILL_EXECUTE_TYPE, "TodoAdded", DID_EXECUTE_TYPE, COMPLETED_TYPE]
        payload, meta = recorder.calls[1]
        assert payload.title == "buy milk"
        assert payload.use_case_id == use_case.id
        assert meta.use_case is use_case
        assert meta.is_trusted is False

    def test_context_available_during_run(self, context):
        seen = {}

        class TestUseCase(UseCase):
            def execute(self):
                seen["context"] = self.context
                seen["dispatch"] = callable(self.dispatch)

        use_case = TestUseCase()
        context.use_case(use_case).execute()

        assert seen["context"] is context
        assert seen["dispatch"] is True
        assert use_case.context is None

    def test_unit_is_live_only_during_run(self, context):
        seen = {}

        class TestUseCase(UseCase):
            def execute(self):
                seen["live"] = context.registry.is_live(self)
                seen["live_use_cases"] = list(context.live_use_cases)

        use_case = TestUseCase()
        context.use_case(use_case).execute()

        assert seen["live"] is True
        assert seen["live_use_cases"] == [use_case]
        assert len(context.registry) == 0

    def test_run_identity_is_bound_for_logging(self, context):
        seen = {}

        class TestUseCase(UseCase):
            def execute(self):
                seen.update(structlog.contextvars.get_contextvars())

        use_case = TestUseCase()
        context.use_case(use_case).execute()

        assert seen["use_case"] == "TestUseCase"
        assert seen["use_case_id"] == use_case.id
        assert seen["run_id"].startswith("run_")
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_same_unit_can_run_twice(self, context, dispatcher, recorder):
        dispatcher.subscribe("TodoAdded", recorder)
        use_case = AddTodoUseCase()

        context.use_case(use_case).execute("one")
        context.use_case(use_case).execute("two")

        assert [p.title for p in recorder.payloads] == ["one", "two"]


class TestFailures:
    def test_error_is_reported_not_raised(self, context, dispatcher, recorder):
        dispatcher.on_dispatch(recorder)

        completion = context.use_case(BrokenUseCase()).execute()

        assert recorder.types == [WILL_EXECUTE_TYPE, DID_EXECUTE_TYPE, FAILED_TYPE]
        failed = recorder.payloads[-1]
        assert isinstance(failed, ErrorPayload)
        assert isinstance(failed.error, ValueError)
        assert completion.exception() is failed.error
        with pytest.raises(ValueError):
            completion.result()
        assert len(context.registry) == 0

    def test_throw_error_does_not_fail_the_run(self, context, dispatcher, recorder):
        error = Exception("error")

        class TestUseCase(UseCase):
            def execute(self):
                self.throw_error(error)
                return "still fine"

        dispatcher.on_dispatch(recorder)
        completion = context.use_case(TestUseCase()).execute()

        assert recorder.types == [WILL_EXECUTE_TYPE, FAILED_TYPE, DID_EXECUTE_TYPE, COMPLETED_TYPE]
        assert recorder.payloads[1].error is error
        assert completion.result() == "still fine"

    def test_throw_error_reaches_the_unit_bus_once(self, context):
        error = Exception("error")

        class TestUseCase(UseCase):
            def execute(self):
                self.throw_error(error)

        use_case = TestUseCase()
        received = []
        use_case.on_dispatch(lambda payload, meta: received.append(payload))

        context.use_case(use_case).execute()

        failed = [p for p in received if p.kind == PayloadKind.FAILED]
        assert len(failed) == 1
        assert failed[0].error is error
        assert [p.type for p in received] == [
            WILL_EXECUTE_TYPE,
            FAILED_TYPE,
            DID_EXECUTE_TYPE,
            COMPLETED_TYPE,
        ]

    @pytest.mark.parametrize("error_class", [asyncio.CancelledError, KeyboardInterrupt])
    def test_base_exception_is_reported_then_propagated(
        self, context, dispatcher, recorder, error_class
    ):
        class InterruptedUseCase(UseCase):
            def execute(self):
                raise error_class()

        dispatcher.on_dispatch(recorder)

        with pytest.raises(error_class):
            context.use_case(InterruptedUseCase()).execute()

        assert recorder.types == [WILL_EXECUTE_TYPE, DID_EXECUTE_TYPE, FAILED_TYPE]
        assert isinstance(recorder.payloads[-1].error, error_class)
        assert len(context.registry) == 0
        assert current_run() is None

    def test_not_implemented_raises_before_any_payload(self, context, dispatcher, recorder):
        class EmptyUseCase(UseCase):
            pass

        dispatcher.on_dispatch(recorder)
        with pytest.raises(UseCaseNotImplementedError):
            context.use_case(EmptyUseCase()).execute()
        assert recorder.calls == []
        assert len(context.registry) == 0


class TestHooks:
    def test_will_and_did_hooks(self, context):
        calls = []
        context.on_will_execute_each_use_case(lambda p, m: calls.append(f"{m.use_case.name}:will"))
        context.on_did_execute_each_use_case(lambda p, m: calls.append(f"{m.use_case.name}:did"))

        context.use_case(EchoUseCase()).execute("x")

        assert calls == ["EchoUseCase:will", "EchoUseCase:did"]

    def test_complete_and_error_hooks(self, context):
        completed = []
        errors = []
        context.on_complete_each_use_case(lambda p, m: completed.append(p))
        context.on_error_dispatch(lambda p, m: errors.append(p))

        context.use_case(EchoUseCase()).execute("x")
        context.use_case(BrokenUseCase()).execute()

        assert [type(p) for p in completed] == [CompletedPayload]
        assert [type(p) for p in errors] == [ErrorPayload]

    def test_on_dispatch_sees_everything_reaching_root(self, context, recorder):
        context.on_dispatch(recorder)
        context.use_case(AddTodoUseCase()).execute("x")
        assert isinstance(recorder.payloads[0], WillExecutedPayload)
        assert "TodoAdded" in recorder.types

    def test_release_removes_context_handlers(self, dispatcher):
        context = Context(dispatcher=dispatcher)
        calls = []
        context.on_will_execute_each_use_case(lambda p, m: calls.append("will"))
        context.on_dispatch(lambda p, m: calls.append("any"))
        assert dispatcher.subscriber_count() == 2

        context.release()
        context.use_case(EchoUseCase()).execute("x")

        assert calls == []
        assert dispatcher.subscriber_count() == 0


class TestStoreCollaborator:
    def test_store_receives_root_payloads(self):
        store = TodoStore()
        context = Context(dispatcher=Dispatcher(), store=store)
        changes = []
        context.on_change(lambda changed: changes.append(changed.get_state()))

        context.use_case(AddTodoUseCase()).execute("buy milk")

        assert context.get_state() == {"todos": ["buy milk"]}
        assert changes == [{"todos": ["buy milk"]}]

    def test_without_store(self, context):
        assert context.store is None
        assert context.get_state() is None
        context.on_change(lambda store: None)()


class TestContextLifetime:
    def test_unit_does_not_keep_contexts_alive(self):
        use_case = EchoUseCase()
        refs = []
        for _ in range(20):
            context = Context(dispatcher=Dispatcher())
            context.use_case(use_case).execute("x")
            refs.append(weakref.ref(context))
        del context
        gc.collect()

        assert [ref for ref in refs if ref() is not None] == []
        assert len(use_case._channels) == 0
        assert use_case._bus.subscriber_count() == 0

    def test_release_detaches_unit_channels(self, context):
        use_case = AddTodoUseCase()
        context.use_case(use_case).execute("x")
        assert use_case._bus.subscriber_count() == 1
        assert len(use_case._channels) == 1

        context.release()

        assert use_case._bus.subscriber_count() == 0
        assert len(use_case._channels) == 0

    def test_context_can_run_again_after_release(self, context, dispatcher, recorder):
        use_case = AddTodoUseCase()
        context.use_case(use_case).execute("one")
        context.release()

        dispatcher.subscribe("TodoAdded", recorder)
        context.use_case(use_case).execute("two")

        assert [p.title for p in recorder.payloads] == ["two"]
        assert use_case._bus.subscriber_count() == 1
