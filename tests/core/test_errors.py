"""Tests for caseflow.core.errors module."""

import pytest

from caseflow.core.errors import (
    AsyncUseCaseError,
    CaseflowError,
    CompletionError,
    ConfigError,
    ErrorCategory,
    InvalidTransitionError,
    PayloadError,
    StoreNotImplementedError,
    UseCaseNotImplementedError,
    categorize_error,
)


class TestCaseflowError:
    def test_defaults(self):
        error = CaseflowError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.context == {}
        assert error.cause is None

    def test_cause_is_chained(self):
        cause = RuntimeError("root")
        error = CaseflowError("wrapped", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_with_context_is_fluent(self):
        error = CaseflowError("boom").with_context(use_case="SaveUseCase")
        assert error.context == {"use_case": "SaveUseCase"}

    def test_to_dict(self):
        error = PayloadError("bad", cause=ValueError("nope")).with_context(keys=["a"])
        d = error.to_dict()
        assert d["error_type"] == "PayloadError"
        assert d["category"] == "PAYLOAD"
        assert d["context"] == {"keys": ["a"]}
        assert d["cause"] == "nope"

    def test_repr(self):
        assert repr(ConfigError("x")) == "ConfigError('x', category=CONFIG)"


class TestBuiltinCompatibility:
    """Subclasses stay catchable with the builtin they stand for."""

    def test_not_implemented_is_type_error(self):
        error = UseCaseNotImplementedError("MyUseCase")
        assert isinstance(error, TypeError)
        assert error.category == ErrorCategory.CONTRACT
        assert "MyUseCase" in str(error)
        assert error.use_case_name == "MyUseCase"

    def test_payload_error_is_type_error(self):
        assert isinstance(PayloadError("x"), TypeError)

    def test_invalid_transition_is_value_error(self):
        error = InvalidTransitionError("released", "running")
        assert isinstance(error, ValueError)
        assert "released → running" in str(error)

    def test_store_not_implemented(self):
        error = StoreNotImplementedError("TodoStore")
        assert isinstance(error, NotImplementedError)
        assert error.store_name == "TodoStore"

    def test_all_share_base(self):
        for cls in (CompletionError, AsyncUseCaseError, ConfigError):
            with pytest.raises(CaseflowError):
                raise cls("x")


class TestCategorizeError:
    def test_caseflow_error(self):
        assert categorize_error(CompletionError("x")) == ErrorCategory.LIFECYCLE

    def test_foreign_error(self):
        assert categorize_error(KeyError("x")) == ErrorCategory.INTERNAL
