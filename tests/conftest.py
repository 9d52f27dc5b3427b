"""
Shared pytest fixtures for caseflow tests.

This module provides:
- Settings isolation (no CASEFLOW_* variables leak between tests)
- A fresh root Dispatcher and Context per test
- A recording handler fixture for asserting payload order
"""

import os

import pytest

from caseflow import Context, Dispatcher, Payload
from caseflow.core.settings import reset_settings
from caseflow.events.meta import DispatcherPayloadMeta


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Drop CASEFLOW_* env vars and the cached settings around each test."""
    for key in list(os.environ):
        if key.startswith("CASEFLOW_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def dispatcher():
    return Dispatcher()


@pytest.fixture
def context(dispatcher):
    return Context(dispatcher=dispatcher)


class Recorder:
    """Handler that records every (payload, meta) it receives."""

    def __init__(self):
        self.calls: list[tuple[Payload, DispatcherPayloadMeta]] = []

    def __call__(self, payload, meta):
        self.calls.append((payload, meta))

    @property
    def payloads(self):
        return [payload for payload, _ in self.calls]

    @property
    def types(self):
        return [payload.type for payload, _ in self.calls]


@pytest.fixture
def recorder():
    return Recorder()
