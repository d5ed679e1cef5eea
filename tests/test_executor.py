"""
Unit tests for the test case executor.

Runs complete test cases against a fake Playwright launcher and checks the
resulting execution records end to end.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock, AsyncMock
import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from steprunner.browser.http_client import HttpResponse
from steprunner.browser.session import SessionManager
from steprunner.execution.executor import TestCaseExecutor
from steprunner.execution.models import (
    ExecutionStatus,
    ExecutionVerdict,
    StepStatus,
    TestCase,
    TestStep,
)


@pytest.fixture
def session_manager(temp_config, mock_launcher):
    return SessionManager(temp_config, launcher=mock_launcher)


@pytest.fixture
def mock_http_client():
    client = MagicMock()
    client.request = AsyncMock(return_value=HttpResponse(status_code=200, reason="OK", body="{}"))
    return client


@pytest.fixture
def executor(temp_config, session_manager, mock_http_client):
    return TestCaseExecutor(
        temp_config, session_manager=session_manager, http_client=mock_http_client
    )


def _three_step_case():
    return TestCase(
        test_case_id="tc-3",
        suite_id="suite-1",
        steps=[
            TestStep(step_number=1, action="navigate", target="https://app.example.com"),
            TestStep(step_number=2, action="click", target="#missing"),
            TestStep(step_number=3, action="assert", target="#done"),
        ],
    )


async def _run(executor, test_case, **kwargs):
    return await executor.execute_test_case(
        execution_id="exec-1",
        test_case=test_case,
        project_id="proj-1",
        triggered_by="user-1",
        **kwargs,
    )


def _parse_timestamp(value):
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)


def _assert_consistent_timing(record):
    start = _parse_timestamp(record.start_time)
    end = _parse_timestamp(record.end_time)
    elapsed_ms = (end - start).total_seconds() * 1000

    assert end >= start
    assert abs(record.duration - elapsed_ms) < 1000


class TestExecuteTestCase:
    """End-to-end executions."""

    @pytest.mark.asyncio
    async def test_all_steps_pass(self, executor, session_manager, mock_playwright):
        outcome = await _run(executor, _three_step_case(), environment="staging")
        record = outcome.execution

        assert outcome.success is True
        assert record.status == ExecutionStatus.COMPLETED
        assert record.result == ExecutionVerdict.PASS
        assert len(record.steps) == 3
        assert [s.step_index for s in record.steps] == [0, 1, 2]
        assert record.screenshots == []
        assert record.error_message is None
        assert record.end_time is not None
        assert record.duration >= 0
        assert record.test_suite_id == "suite-1"
        assert record.metadata.triggered_by == "user-1"
        assert record.metadata.environment == "staging"
        assert record.metadata.browser_version == "120.0.6099.28"
        assert session_manager.has_active() is False
        mock_playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stops_after_first_failure(self, executor, mock_page, temp_config):
        mock_page.click = AsyncMock(
            side_effect=PlaywrightTimeoutError("Timeout 10000ms exceeded waiting for #missing")
        )

        outcome = await _run(executor, _three_step_case())
        record = outcome.execution

        assert outcome.success is False
        assert record.status == ExecutionStatus.COMPLETED
        assert record.result == ExecutionVerdict.FAIL
        assert len(record.steps) == 2
        assert record.steps[1].status == StepStatus.FAIL
        assert record.steps[1].screenshot
        assert record.screenshots == [record.steps[1].screenshot]
        assert (temp_config.artifacts_dir / record.steps[1].screenshot).exists()
        mock_page.wait_for_selector.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_step_error_outranks_earlier_pass(self, executor, mock_page):
        test_case = TestCase(
            test_case_id="tc-err",
            steps=[
                TestStep(step_number=1, action="navigate", target="https://app.example.com"),
                TestStep(step_number=2, action="hover", target="#menu"),
                TestStep(step_number=3, action="click", target="#item"),
            ],
        )

        outcome = await _run(executor, test_case)
        record = outcome.execution

        assert record.status == ExecutionStatus.COMPLETED
        assert record.result == ExecutionVerdict.ERROR
        assert len(record.steps) == 2
        assert "Unknown action type" in record.steps[1].error_message
        mock_page.click.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_only_case_skips_browser(self, executor, api_test_case, mock_launcher, mock_http_client):
        outcome = await _run(executor, api_test_case)

        assert outcome.success is True
        assert outcome.execution.metadata.browser_version is None
        mock_launcher.assert_not_called()
        mock_http_client.request.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "value,expected_result",
        [('{"headers": ["x"]}', None), (None, "GE T")],
    )
    async def test_malformed_api_call_is_step_error(
        self, executor, mock_http_client, value, expected_result
    ):
        test_case = TestCase(
            test_case_id="tc-bad-api",
            steps=[
                TestStep(
                    step_number=1,
                    action="api-call",
                    target="https://api.example.com/health",
                    value=value,
                    expected_result=expected_result,
                )
            ],
        )

        outcome = await _run(executor, test_case)
        record = outcome.execution

        assert record.status == ExecutionStatus.COMPLETED
        assert record.result == ExecutionVerdict.ERROR
        assert record.steps[0].status == StepStatus.ERROR
        assert record.error_message is None
        mock_http_client.request.assert_not_awaited()


class TestExecutionTiming:
    """Start, end and duration agree with each other."""

    @pytest.mark.asyncio
    async def test_timing_on_pass(self, executor):
        outcome = await _run(executor, _three_step_case())

        assert outcome.execution.result == ExecutionVerdict.PASS
        _assert_consistent_timing(outcome.execution)

    @pytest.mark.asyncio
    async def test_timing_on_early_termination(self, executor, mock_page):
        mock_page.click = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout exceeded"))

        outcome = await _run(executor, _three_step_case())

        assert outcome.execution.result == ExecutionVerdict.FAIL
        assert len(outcome.execution.steps) == 2
        _assert_consistent_timing(outcome.execution)

    @pytest.mark.asyncio
    async def test_timing_on_unexpected_error(self, executor, mock_page):
        mock_page.click = AsyncMock(side_effect=RuntimeError("driver exploded"))

        outcome = await _run(executor, _three_step_case())

        assert outcome.execution.status == ExecutionStatus.ERROR
        _assert_consistent_timing(outcome.execution)


class TestExecuteTestCaseEdgeCases:
    """Runs that leave the ordinary step flow."""

    @pytest.mark.asyncio
    async def test_zero_steps_is_error(self, executor, mock_launcher):
        outcome = await _run(executor, TestCase(test_case_id="tc-empty"))
        record = outcome.execution

        assert outcome.success is False
        assert record.status == ExecutionStatus.COMPLETED
        assert record.result == ExecutionVerdict.ERROR
        assert record.steps == []
        assert record.error_message == "No steps were executed"
        mock_launcher.assert_not_called()

    @pytest.mark.asyncio
    async def test_browser_launch_failure(self, executor, mock_playwright):
        mock_playwright.chromium.launch = AsyncMock(side_effect=Exception("Executable doesn't exist"))

        outcome = await _run(executor, _three_step_case())
        record = outcome.execution

        assert record.status == ExecutionStatus.ERROR
        assert record.result == ExecutionVerdict.ERROR
        assert record.steps == []
        assert "Browser initialization failed" in record.error_message

    @pytest.mark.asyncio
    async def test_unexpected_step_exception(self, executor, mock_page, session_manager):
        mock_page.click = AsyncMock(side_effect=RuntimeError("driver exploded"))

        outcome = await _run(executor, _three_step_case())
        record = outcome.execution

        assert record.status == ExecutionStatus.ERROR
        assert record.result == ExecutionVerdict.ERROR
        assert len(record.steps) == 2
        assert record.steps[1].status == StepStatus.ERROR
        assert record.steps[1].error_message == "driver exploded"
        assert "driver exploded" in record.error_message
        assert session_manager.has_active() is False

    @pytest.mark.asyncio
    async def test_timeout(self, executor, mock_page, session_manager):
        async def hang(ms):
            await asyncio.sleep(5)

        mock_page.wait_for_timeout = AsyncMock(side_effect=hang)
        test_case = TestCase(
            test_case_id="tc-slow",
            steps=[TestStep(step_number=1, action="wait", target="5000")],
        )

        outcome = await _run(executor, test_case, timeout_ms=50)
        record = outcome.execution

        assert record.status == ExecutionStatus.ERROR
        assert record.error_message == "Execution timed out after 50ms"
        assert session_manager.has_active() is False

    @pytest.mark.asyncio
    async def test_cancellation_is_recorded(self, executor, mock_page):
        mock_page.goto = AsyncMock(side_effect=asyncio.CancelledError())

        outcome = await _run(executor, _three_step_case())

        assert outcome.execution.status == ExecutionStatus.ERROR
        assert outcome.execution.error_message == "Execution was cancelled"

    @pytest.mark.asyncio
    async def test_cancelled_task_returns_record(self, executor, mock_page, session_manager):
        started = asyncio.Event()

        async def hang(*args, **kwargs):
            started.set()
            await asyncio.Event().wait()

        mock_page.goto = AsyncMock(side_effect=hang)

        task = asyncio.ensure_future(_run(executor, _three_step_case()))
        await started.wait()
        task.cancel()
        outcome = await task

        assert outcome.execution.status == ExecutionStatus.ERROR
        assert outcome.execution.result == ExecutionVerdict.ERROR
        assert outcome.execution.error_message == "Execution was cancelled"
        assert session_manager.has_active() is False

    @pytest.mark.asyncio
    async def test_cleanup_failure_does_not_change_verdict(self, executor, mock_page):
        mock_page.close = AsyncMock(side_effect=Exception("already closed"))

        outcome = await _run(executor, _three_step_case())

        assert outcome.success is True
        assert outcome.execution.status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_suite_execution_id_is_recorded(self, executor, api_test_case):
        outcome = await _run(executor, api_test_case, suite_execution_id="suite-run-7")

        assert outcome.execution.suite_execution_id == "suite-run-7"


class TestIterStepResults:
    """Test cases for the step iterator."""

    @pytest.mark.asyncio
    async def test_yields_until_first_failure(self, executor, mock_page):
        mock_page.click = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout exceeded"))

        results = [r async for r in executor.iter_step_results(mock_page, _three_step_case().steps)]

        assert [r.status for r in results] == [StepStatus.PASS, StepStatus.FAIL]


class TestStatusHelpers:
    def test_transition_predicates(self, executor):
        assert executor.is_valid_status_transition("queued", "running") is True
        assert executor.is_valid_status_transition("completed", "running") is False
        assert executor.is_terminal_status("error") is True
        assert executor.is_terminal_status("running") is False
