"""
Execution status state machine and result aggregation.

All functions here are pure. They are used by the test case executor to compute a
verdict and by persistence collaborators to validate status writes.
"""

from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Union

from ..core.exceptions import InvalidStatusTransitionError
from .models import (
    ExecutionRecord,
    ExecutionStatus,
    ExecutionVerdict,
    StepResult,
    StepStatus,
    SuiteExecutionStats,
)

StatusLike = Union[ExecutionStatus, str]

VALID_TRANSITIONS: Dict[ExecutionStatus, FrozenSet[ExecutionStatus]] = {
    ExecutionStatus.QUEUED: frozenset({ExecutionStatus.RUNNING, ExecutionStatus.ERROR}),
    ExecutionStatus.RUNNING: frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.ERROR}),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.ERROR: frozenset(),
}

TERMINAL_STATUSES = frozenset({ExecutionStatus.COMPLETED, ExecutionStatus.ERROR})


def _coerce(status: StatusLike) -> Optional[ExecutionStatus]:
    if isinstance(status, ExecutionStatus):
        return status
    try:
        return ExecutionStatus(status)
    except ValueError:
        return None


def is_valid_transition(current: StatusLike, new: StatusLike) -> bool:
    """Check whether ``current -> new`` is allowed. Unknown statuses never are."""
    current_status = _coerce(current)
    new_status = _coerce(new)
    if current_status is None or new_status is None:
        return False
    return new_status in VALID_TRANSITIONS[current_status]


def is_terminal(status: StatusLike) -> bool:
    """Terminal statuses have no outgoing transitions."""
    return _coerce(status) in TERMINAL_STATUSES


def ensure_transition(current: StatusLike, new: StatusLike) -> ExecutionStatus:
    """Return the new status, or raise if the transition is not allowed."""
    if not is_valid_transition(current, new):
        raise InvalidStatusTransitionError(
            getattr(current, "value", str(current)), getattr(new, "value", str(new))
        )
    return _coerce(new)


def determine_verdict(step_results: Sequence[StepResult]) -> ExecutionVerdict:
    """
    Aggregate step outcomes into the execution verdict.

    No executed steps counts as a setup failure. An error outranks a failure.
    """
    if not step_results:
        return ExecutionVerdict.ERROR

    if any(r.status == StepStatus.ERROR for r in step_results):
        return ExecutionVerdict.ERROR

    if any(r.status == StepStatus.FAIL for r in step_results):
        return ExecutionVerdict.FAIL

    return ExecutionVerdict.PASS


def collect_screenshots(step_results: Iterable[StepResult]) -> list:
    """Order-preserving, de-duplicated union of step screenshot keys."""
    seen = []
    for result in step_results:
        if result.screenshot and result.screenshot not in seen:
            seen.append(result.screenshot)
    return seen


def calculate_suite_stats(executions: Sequence[ExecutionRecord]) -> SuiteExecutionStats:
    """Count results across the test case executions of a suite."""
    stats = SuiteExecutionStats(total=len(executions))

    for execution in executions:
        if execution.result == ExecutionVerdict.PASS:
            stats.passed += 1
        elif execution.result == ExecutionVerdict.FAIL:
            stats.failed += 1
        elif (
            execution.result == ExecutionVerdict.ERROR
            or execution.status == ExecutionStatus.ERROR
        ):
            stats.errors += 1

        if execution.duration:
            stats.duration += execution.duration

    return stats


def determine_suite_status(executions: Sequence[ExecutionRecord]) -> ExecutionStatus:
    """
    Derive a suite status from its test case executions.

    Empty suites are still queued; any queued or running child keeps the suite
    running; once every child is terminal, a single errored child makes the
    suite an error, otherwise it is completed.
    """
    if not executions:
        return ExecutionStatus.QUEUED

    if any(
        e.status in (ExecutionStatus.QUEUED, ExecutionStatus.RUNNING)
        for e in executions
    ):
        return ExecutionStatus.RUNNING

    if any(e.status == ExecutionStatus.ERROR for e in executions):
        return ExecutionStatus.ERROR

    return ExecutionStatus.COMPLETED


def determine_suite_result(
    status: ExecutionStatus, stats: SuiteExecutionStats
) -> Optional[ExecutionVerdict]:
    if status == ExecutionStatus.COMPLETED:
        if stats.failed > 0 or stats.errors > 0:
            return ExecutionVerdict.FAIL
        return ExecutionVerdict.PASS
    if status == ExecutionStatus.ERROR:
        return ExecutionVerdict.ERROR
    return None
