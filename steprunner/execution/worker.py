"""
Work intake and persistence contract.

Turns queue messages into executions: marks the record ``running``, runs
the test case, writes the terminal record and refreshes the owning suite.
Every status write goes through the state machine.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import MessageFormatError
from ..core.logging_config import get_logger
from .executor import TestCaseExecutor
from .models import (
    ExecutionMessage,
    ExecutionMetadata,
    ExecutionOutcome,
    ExecutionRecord,
    ExecutionStatus,
    ExecutionVerdict,
    TestCase,
    isoformat,
    utc_now,
)
from .status import (
    calculate_suite_stats,
    determine_suite_result,
    determine_suite_status,
    ensure_transition,
    is_terminal,
)


class ExecutionStore:
    """Interface of the key-value store holding execution records."""

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        raise NotImplementedError

    async def put(self, record: ExecutionRecord) -> None:
        raise NotImplementedError

    async def query_by_suite(self, suite_execution_id: str) -> List[ExecutionRecord]:
        raise NotImplementedError

    async def update_status(
        self, execution_id: str, status: ExecutionStatus
    ) -> ExecutionRecord:
        """Apply a validated status change to a stored record."""
        record = await self.get(execution_id)
        if record is None:
            raise KeyError(f"Execution not found: {execution_id}")

        new_status = ensure_transition(record.status, status)
        updated = record.model_copy(
            update={"status": new_status, "updated_at": isoformat(utc_now())}
        )
        await self.put(updated)
        return updated


class InMemoryExecutionStore(ExecutionStore):
    """Execution store kept in a dict, for the CLI and tests."""

    def __init__(self):
        self._records: Dict[str, ExecutionRecord] = {}

    async def get(self, execution_id: str) -> Optional[ExecutionRecord]:
        return self._records.get(execution_id)

    async def put(self, record: ExecutionRecord) -> None:
        self._records[record.execution_id] = record

    async def query_by_suite(self, suite_execution_id: str) -> List[ExecutionRecord]:
        return [
            r
            for r in self._records.values()
            if r.suite_execution_id == suite_execution_id
        ]

    def __len__(self) -> int:
        return len(self._records)


def parse_execution_message(body: Union[str, bytes, Dict[str, Any]]) -> ExecutionMessage:
    """Parse a queue message body into an ``ExecutionMessage``."""
    try:
        data = json.loads(body) if isinstance(body, (str, bytes)) else body
        return ExecutionMessage.model_validate(data)
    except (ValueError, TypeError, PydanticValidationError) as e:
        raw = body if isinstance(body, str) else None
        raise MessageFormatError(
            f"Invalid execution message format: {e}", body=raw
        ) from e


def create_queued_record(
    execution_id: str,
    test_case: TestCase,
    project_id: str,
    triggered_by: str,
    environment: Optional[str] = None,
    suite_execution_id: Optional[str] = None,
) -> ExecutionRecord:
    """Initial record written by whoever enqueues an execution."""
    now = isoformat(utc_now())
    return ExecutionRecord(
        execution_id=execution_id,
        project_id=project_id,
        test_case_id=test_case.test_case_id,
        test_suite_id=test_case.suite_id,
        suite_execution_id=suite_execution_id,
        status=ExecutionStatus.QUEUED,
        start_time=now,
        metadata=ExecutionMetadata(triggered_by=triggered_by, environment=environment),
        created_at=now,
        updated_at=now,
    )


class ExecutionWorker:
    """Processes execution messages one at a time."""

    def __init__(self, executor: TestCaseExecutor, store: ExecutionStore):
        self.executor = executor
        self.store = store
        self.logger = get_logger(__name__)

    async def process_message(self, body) -> ExecutionOutcome:
        """
        Run the execution described by a queue message.

        Raises:
            MessageFormatError: the message could not be parsed
            Exception: a store write failed; the record is marked ``error``
                on a best-effort basis and the error re-raised so the message
                can be redelivered

        A message for a record that is already terminal is acknowledged
        without running again; the stored record is returned unchanged.
        """
        message = parse_execution_message(body)
        execution_id = message.execution_id
        self.logger.info(
            f"Processing execution: {execution_id}",
            extra={
                "metadata": {
                    "test_case_id": message.test_case_id,
                    "project_id": message.project_id,
                }
            },
        )

        try:
            existing = await self.store.get(execution_id)
            if existing is not None and is_terminal(existing.status):
                self.logger.warning(
                    f"Execution {execution_id} already {existing.status.value}, skipping redelivered message"
                )
                return ExecutionOutcome(
                    execution=existing,
                    success=existing.result == ExecutionVerdict.PASS,
                )

            if existing is None:
                await self.store.put(
                    create_queued_record(
                        execution_id,
                        message.test_case,
                        message.project_id,
                        message.metadata.triggered_by,
                        message.metadata.environment,
                        message.suite_execution_id,
                    )
                )
            await self.store.update_status(execution_id, ExecutionStatus.RUNNING)

            outcome = await self.executor.execute_test_case(
                execution_id=execution_id,
                test_case=message.test_case,
                project_id=message.project_id,
                triggered_by=message.metadata.triggered_by,
                environment=message.metadata.environment,
                suite_execution_id=message.suite_execution_id,
            )
            await self.store.put(outcome.execution)

        except Exception as e:
            self.logger.error(f"Execution {execution_id} failed: {e}")
            await self._mark_error(execution_id, str(e) or type(e).__name__)
            await self._refresh_suite_safe(message.suite_execution_id)
            raise

        await self._refresh_suite_safe(message.suite_execution_id)
        self.logger.info(
            f"Execution {execution_id} stored",
            extra={"metadata": outcome.execution.to_summary()},
        )
        return outcome

    async def _mark_error(self, execution_id: str, error_message: str) -> None:
        try:
            record = await self.store.get(execution_id)
            if record is None or record.status in (
                ExecutionStatus.COMPLETED,
                ExecutionStatus.ERROR,
            ):
                return
            ensure_transition(record.status, ExecutionStatus.ERROR)
            now = utc_now()
            await self.store.put(
                record.model_copy(
                    update={
                        "status": ExecutionStatus.ERROR,
                        "result": ExecutionVerdict.ERROR,
                        "end_time": isoformat(now),
                        "error_message": error_message,
                        "updated_at": isoformat(now),
                    }
                )
            )
            self.logger.info(f"Execution {execution_id} marked as error")
        except Exception as e:
            self.logger.error(f"Failed to update execution with error status: {e}")

    async def _refresh_suite_safe(self, suite_execution_id: Optional[str]) -> None:
        if not suite_execution_id:
            return
        try:
            await self.refresh_suite(suite_execution_id)
        except Exception as e:
            self.logger.error(
                f"Failed to update suite execution {suite_execution_id}: {e}"
            )

    async def refresh_suite(self, suite_execution_id: str) -> Dict[str, Any]:
        """Recompute a suite's status, result and statistics from its children."""
        executions = await self.store.query_by_suite(suite_execution_id)
        stats = calculate_suite_stats(executions)
        status = determine_suite_status(executions)
        result = determine_suite_result(status, stats)

        self.logger.info(
            f"Suite {suite_execution_id} status: {status.value}, "
            f"{stats.passed}/{stats.total} passed, {stats.failed} failed, "
            f"{stats.errors} errors"
        )
        return {
            "suiteExecutionId": suite_execution_id,
            "status": status.value,
            "result": result.value if result else None,
            "stats": stats.to_dict(),
        }
