"""
Unit tests for test case and execution record models.
"""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from steprunner.execution.models import (
    ExecutionMessage,
    ExecutionMetadata,
    ExecutionRecord,
    ExecutionStatus,
    ExecutionVerdict,
    StepDetails,
    StepResult,
    StepStatus,
    TestCase,
    TestStep,
    isoformat,
)


def _record(**overrides):
    data = dict(
        execution_id="exec-1",
        project_id="proj-1",
        test_case_id="tc-1",
        status=ExecutionStatus.COMPLETED,
        result=ExecutionVerdict.PASS,
        start_time="2024-01-15T10:30:00.000Z",
        end_time="2024-01-15T10:30:02.500Z",
        duration=2500,
        metadata=ExecutionMetadata(triggered_by="user-1"),
        created_at="2024-01-15T10:30:00.000Z",
        updated_at="2024-01-15T10:30:02.500Z",
    )
    data.update(overrides)
    return ExecutionRecord(**data)


class TestTestCase:
    """Test cases for TestCase and TestStep parsing."""

    def test_parse_wire_format(self):
        test_case = TestCase.model_validate(
            {
                "testCaseId": "tc-1",
                "suiteId": "suite-1",
                "steps": [
                    {"stepNumber": 1, "action": "navigate", "target": "https://example.com"},
                    {
                        "stepNumber": 2,
                        "action": "assert",
                        "target": "h1",
                        "expectedResult": "visible",
                    },
                ],
            }
        )

        assert test_case.test_case_id == "tc-1"
        assert test_case.suite_id == "suite-1"
        assert test_case.steps[1].expected_result == "visible"
        assert test_case.requires_browser is True

    def test_api_only_case_needs_no_browser(self, api_test_case):
        assert api_test_case.requires_browser is False

    def test_wait_step_needs_browser(self):
        test_case = TestCase(
            test_case_id="tc-wait",
            steps=[TestStep(step_number=1, action="wait", target="100")],
        )

        assert test_case.requires_browser is True

    def test_missing_target_becomes_empty(self):
        step = TestStep.model_validate({"stepNumber": 1, "action": "click", "target": None})

        assert step.target == ""

    def test_empty_action_rejected(self):
        with pytest.raises(ValidationError, match="Step action cannot be empty"):
            TestStep(step_number=1, action="  ")

    def test_step_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            TestStep(step_number=0, action="click")

    def test_steps_are_immutable(self):
        step = TestStep(step_number=1, action="click", target="#a")

        with pytest.raises(ValidationError):
            step.target = "#b"


class TestStepResult:
    """Test cases for StepResult."""

    def test_to_dict_uses_wire_names(self):
        result = StepResult(
            step_index=0,
            action="click",
            status=StepStatus.FAIL,
            duration=120,
            error_message="Element not found",
            screenshot="screenshots/exec-1/step-0.png",
            details=StepDetails(selector="#submit"),
        )

        data = result.to_dict()

        assert data == {
            "stepIndex": 0,
            "action": "click",
            "status": "fail",
            "duration": 120,
            "errorMessage": "Element not found",
            "screenshot": "screenshots/exec-1/step-0.png",
            "details": {"selector": "#submit"},
        }
        assert result.is_failure is True

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            StepResult(step_index=0, action="wait", status=StepStatus.PASS, duration=-1)


class TestExecutionRecord:
    """Test cases for ExecutionRecord lifecycle validation."""

    def test_completed_record(self):
        record = _record()

        assert record.is_success is True
        data = record.to_dict()
        assert data["executionId"] == "exec-1"
        assert data["result"] == "pass"
        assert data["metadata"] == {"triggeredBy": "user-1"}

    def test_running_record_cannot_carry_result(self):
        with pytest.raises(ValidationError, match="must be absent"):
            _record(status=ExecutionStatus.RUNNING, end_time=None)

    def test_queued_record_without_result(self):
        record = _record(status=ExecutionStatus.QUEUED, result=None, end_time=None, duration=None)

        assert record.result is None

    def test_completed_record_requires_result(self):
        with pytest.raises(ValidationError, match="must carry result"):
            _record(result=None)

    def test_duplicate_screenshots_rejected(self):
        with pytest.raises(ValidationError, match="duplicates"):
            _record(screenshots=["a.png", "a.png"])

    def test_to_summary(self):
        summary = _record(error_message=None).to_summary()

        assert summary["status"] == "completed"
        assert summary["result"] == "pass"
        assert summary["steps_executed"] == 0
        assert summary["has_error"] is False


class TestExecutionMessage:
    def test_parse(self):
        message = ExecutionMessage.model_validate(
            {
                "executionId": "exec-1",
                "testCaseId": "tc-1",
                "projectId": "proj-1",
                "suiteExecutionId": "suite-run-1",
                "testCase": {"testCaseId": "tc-1", "steps": []},
                "metadata": {"triggeredBy": "scheduler", "environment": "staging"},
            }
        )

        assert message.suite_execution_id == "suite-run-1"
        assert message.metadata.environment == "staging"


def test_isoformat_millisecond_precision():
    moment = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)

    assert isoformat(moment) == "2024-01-15T10:30:00.123Z"
