"""
Test case executor.

Runs one test case end to end: acquires a browser session when any step
needs one, executes steps strictly in order until the first failure,
aggregates a verdict and always releases the session. The public entry
point never raises; every outcome is reported through the execution record.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Sequence

from ..browser.http_client import HttpClient
from ..browser.session import SessionManager
from ..core.config import Config
from ..core.exceptions import StepExecutionError
from ..core.logging_config import get_logger, log_performance
from .artifacts import ArtifactStore, LocalArtifactStore, ScreenshotCapturer
from .models import (
    ExecutionMetadata,
    ExecutionOutcome,
    ExecutionRecord,
    ExecutionStatus,
    ExecutionVerdict,
    StepResult,
    StepStatus,
    TestCase,
    TestStep,
    isoformat,
    utc_now,
)
from .status import (
    collect_screenshots,
    determine_verdict,
    ensure_transition,
    is_terminal,
    is_valid_transition,
)
from .steps import StepExecutor


@dataclass
class _RunState:
    step_results: List[StepResult] = field(default_factory=list)
    browser_version: Optional[str] = None


class TestCaseExecutor:
    """
    Orchestrates the execution of complete test cases.

    Only one browser-requiring execution may be in flight per executor (and
    per process, since each run launches its own browser); callers must
    serialize runs or use separate worker processes.
    """

    __test__ = False

    def __init__(
        self,
        config: Config,
        session_manager: Optional[SessionManager] = None,
        step_executor: Optional[StepExecutor] = None,
        artifact_store: Optional[ArtifactStore] = None,
        http_client: Optional[HttpClient] = None,
    ):
        """
        Initialize the test case executor.

        Args:
            config: Step Runner configuration
            session_manager: Optional session manager, one is created if omitted
            step_executor: Optional step executor, one is created if omitted
            artifact_store: Store for failure screenshots, defaults to local disk
            http_client: HTTP client for api-call steps
        """
        self.config = config
        self.session_manager = session_manager or SessionManager(config)

        if step_executor is None:
            capturer = ScreenshotCapturer(artifact_store or LocalArtifactStore(config))
            step_executor = StepExecutor(config, capturer, http_client)
        self.step_executor = step_executor

    async def iter_step_results(
        self, page, steps: Sequence[TestStep]
    ) -> AsyncIterator[StepResult]:
        """
        Yield one result per step, in order, stopping after the first failure.

        An exception escaping a step is re-raised as ``StepExecutionError``
        carrying an ``error`` result for that step.
        """
        for index, step in enumerate(steps):
            start = time.monotonic()
            try:
                result = await self.step_executor.execute_step(page, step, index)
            except Exception as e:
                message = str(e) or type(e).__name__
                error_result = StepResult(
                    step_index=index,
                    action=step.action,
                    status=StepStatus.ERROR,
                    duration=max(0, int((time.monotonic() - start) * 1000)),
                    error_message=message,
                )
                raise StepExecutionError(
                    f"Unexpected error in step {index + 1}: {message}",
                    result=error_result,
                    step_index=index,
                ) from e

            yield result

            if result.is_failure:
                return

    async def _run_steps(
        self, test_case: TestCase, requires_browser: bool, state: _RunState, logger
    ) -> None:
        page = None
        if requires_browser:
            logger.info("Initializing browser for UI test...")
            session = await self.session_manager.initialize()
            state.browser_version = self.session_manager.get_browser_version()
            page = session.page

        async for result in self.iter_step_results(page, test_case.steps):
            state.step_results.append(result)
            if result.is_failure:
                logger.info(
                    f"Step {result.step_index + 1} {result.status.value}, stopping execution"
                )

    async def execute_test_case(
        self,
        execution_id: str,
        test_case: TestCase,
        project_id: str,
        triggered_by: str,
        environment: Optional[str] = None,
        suite_execution_id: Optional[str] = None,
        timeout_ms: Optional[int] = None,
    ) -> ExecutionOutcome:
        """
        Execute a complete test case and build its execution record.

        Args:
            execution_id: Identifier of this run
            test_case: Fully materialized test case
            project_id: Owning project
            triggered_by: User or system that triggered the run
            environment: Optional environment tag
            suite_execution_id: Suite run this execution belongs to, if any
            timeout_ms: Optional wall-clock limit for the whole run

        Returns:
            The execution record and whether the verdict is ``pass``

        Cancellation is converted into an ``error`` record and not re-raised:
        a caller that cancels this coroutine, directly or through an outer
        timeout scope, receives the record instead of ``CancelledError``.
        Callers that need a deadline should pass ``timeout_ms``.
        """
        logger = get_logger(__name__, execution_id=execution_id)
        self.step_executor.execution_id = execution_id

        started_at = utc_now()
        start = time.monotonic()
        state = _RunState()
        status = ExecutionStatus.RUNNING
        result: Optional[ExecutionVerdict] = None
        error_message: Optional[str] = None
        requires_browser = test_case.requires_browser

        logger.info(
            f"Starting execution {execution_id} for test case {test_case.test_case_id}",
            extra={
                "metadata": {
                    "steps": len(test_case.steps),
                    "requires_browser": requires_browser,
                    "project_id": project_id,
                }
            },
        )

        try:
            run = self._run_steps(test_case, requires_browser, state, logger)
            if timeout_ms:
                await asyncio.wait_for(run, timeout=timeout_ms / 1000)
            else:
                await run

            result = determine_verdict(state.step_results)
            if not state.step_results:
                error_message = "No steps were executed"
            status = ensure_transition(status, ExecutionStatus.COMPLETED)
            logger.info(f"Execution completed with result: {result.value}")

        except StepExecutionError as e:
            state.step_results.append(e.result)
            status, result = ExecutionStatus.ERROR, ExecutionVerdict.ERROR
            error_message = e.message
            logger.error(f"Execution failed: {error_message}", exc_info=True)

        except asyncio.TimeoutError as e:
            status, result = ExecutionStatus.ERROR, ExecutionVerdict.ERROR
            if timeout_ms:
                error_message = f"Execution timed out after {timeout_ms}ms"
            else:
                error_message = str(e) or type(e).__name__
            logger.error(error_message)

        except asyncio.CancelledError:
            status, result = ExecutionStatus.ERROR, ExecutionVerdict.ERROR
            error_message = "Execution was cancelled"
            logger.error(error_message)

        except Exception as e:
            status, result = ExecutionStatus.ERROR, ExecutionVerdict.ERROR
            error_message = str(e) or type(e).__name__
            logger.error(f"Execution failed with error: {error_message}", exc_info=True)

        finally:
            if requires_browser and self.session_manager.has_active():
                logger.info("Cleaning up browser resources...")
                await self.session_manager.force_cleanup()

        ended_at = utc_now()
        duration = max(0, int((time.monotonic() - start) * 1000))

        execution = ExecutionRecord(
            execution_id=execution_id,
            project_id=project_id,
            test_case_id=test_case.test_case_id,
            test_suite_id=test_case.suite_id,
            suite_execution_id=suite_execution_id,
            status=status,
            result=result,
            start_time=isoformat(started_at),
            end_time=isoformat(ended_at),
            duration=duration,
            steps=state.step_results,
            screenshots=collect_screenshots(state.step_results),
            error_message=error_message,
            metadata=ExecutionMetadata(
                triggered_by=triggered_by,
                environment=environment,
                browser_version=state.browser_version,
            ),
            created_at=isoformat(started_at),
            updated_at=isoformat(ended_at),
        )

        log_performance(
            logger,
            f"execution_{execution_id}",
            duration,
            **execution.to_summary(),
        )

        return ExecutionOutcome(
            execution=execution, success=result == ExecutionVerdict.PASS
        )

    def is_valid_status_transition(self, current_status, new_status) -> bool:
        return is_valid_transition(current_status, new_status)

    def is_terminal_status(self, status) -> bool:
        return is_terminal(status)
