"""Test case execution: models, step execution, orchestration and work intake."""

from .models import (
    TestStep,
    TestCase,
    StepResult,
    ExecutionRecord,
    ExecutionOutcome,
    ExecutionStatus,
    ExecutionVerdict,
    StepStatus,
)
from .status import is_valid_transition, is_terminal, determine_verdict
from .steps import StepExecutor
from .executor import TestCaseExecutor
from .worker import ExecutionWorker, ExecutionStore, InMemoryExecutionStore

__all__ = [
    "TestStep",
    "TestCase",
    "StepResult",
    "ExecutionRecord",
    "ExecutionOutcome",
    "ExecutionStatus",
    "ExecutionVerdict",
    "StepStatus",
    "is_valid_transition",
    "is_terminal",
    "determine_verdict",
    "StepExecutor",
    "TestCaseExecutor",
    "ExecutionWorker",
    "ExecutionStore",
    "InMemoryExecutionStore",
]
