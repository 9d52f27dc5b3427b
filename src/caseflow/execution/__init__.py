"""caseflow execution: UseCases, their runs, and the Context that drives them.

ARCHITECTURE
────────────
::

    Context (entry point, owns ReleaseRegistry)
      │
      ▼
    UseCaseExecutor (one run)
      ├── ExecutionToken   ─ PENDING → RUNNING → SUCCEEDED|FAILED → RELEASED
      ├── DelegationChannel ─ unit private bus → root Dispatcher (release check)
      └── Completion       ─ settle-once result handed to the caller
      │
      ▼
    UseCase.execute(*args)

MODULE MAP
──────────
  1. usecase.py     ─ UseCase base class, current_run()
  2. completion.py  ─ Completion
  3. tokens.py      ─ ExecutionToken, TokenStatus, ReleaseRegistry
  4. executor.py    ─ UseCaseExecutor, DelegationChannel
  5. context.py     ─ Context
"""

from caseflow.execution.completion import Completion, CompletionState
from caseflow.execution.context import Context
from caseflow.execution.executor import DelegationChannel, UseCaseExecutor
from caseflow.execution.tokens import ExecutionToken, ReleaseRegistry, TokenStatus
from caseflow.execution.usecase import UseCase, current_run, is_implemented

__all__ = [
    "Completion",
    "CompletionState",
    "Context",
    "DelegationChannel",
    "UseCaseExecutor",
    "ExecutionToken",
    "ReleaseRegistry",
    "TokenStatus",
    "UseCase",
    "current_run",
    "is_implemented",
]
