"""
Data models for test cases, step results and execution records.

Defines Pydantic models for the test-case input accepted by the engine and
the execution record it produces. Field names are snake_case in Python and
camelCase on the wire.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator, validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO-8601 timestamp with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class StepAction(Enum):
    """Action kinds a test step can perform."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    ASSERT = "assert"
    WAIT = "wait"
    API_CALL = "api-call"


class StepStatus(Enum):
    """Outcome of a single executed step."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class ExecutionStatus(Enum):
    """Lifecycle status of an execution."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class ExecutionVerdict(Enum):
    """Aggregated result of an execution."""

    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


class AssertionKind(Enum):
    """Assertions an assert step can evaluate."""

    VISIBLE = "visible"
    TEXT = "text"
    VALUE = "value"


class WireModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with wire names, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TestStep(WireModel):
    """One atomic action within a test case."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    step_number: int = Field(..., ge=1, alias="stepNumber", description="1-based step number")
    action: str = Field(..., description="Action kind, e.g. navigate or api-call")
    target: str = Field("", description="URL, selector or duration depending on action")
    value: Optional[str] = Field(None, description="Text to type or request payload")
    expected_result: Optional[str] = Field(
        None, alias="expectedResult", description="Assertion kind or HTTP method"
    )

    @validator("action")
    def validate_action(cls, v):
        if not v or not v.strip():
            raise ValueError("Step action cannot be empty")
        return v.strip()

    @validator("target", pre=True)
    def validate_target(cls, v):
        return "" if v is None else str(v)


class TestCase(WireModel):
    """Fully materialized test case handed to the engine."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    test_case_id: str = Field(..., alias="testCaseId", description="Test case identifier")
    suite_id: Optional[str] = Field(None, alias="suiteId")
    project_id: Optional[str] = Field(None, alias="projectId")
    name: Optional[str] = Field(None)
    description: Optional[str] = Field(None)
    steps: List[TestStep] = Field(default_factory=list, description="Ordered steps")

    @validator("test_case_id")
    def validate_test_case_id(cls, v):
        if not v or not v.strip():
            raise ValueError("Test case id cannot be empty")
        return v.strip()

    @property
    def requires_browser(self) -> bool:
        """Whether any step needs a live page."""
        ui_actions = {
            StepAction.NAVIGATE.value,
            StepAction.CLICK.value,
            StepAction.TYPE.value,
            StepAction.ASSERT.value,
            StepAction.WAIT.value,
        }
        return any(step.action in ui_actions for step in self.steps)


class APIRequestDetails(WireModel):
    method: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class APIResponseDetails(WireModel):
    status_code: int = Field(..., alias="statusCode")
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    duration: int = Field(..., ge=0, description="Response time in milliseconds")


class StepDetails(WireModel):
    """Diagnostic payload attached to a step result."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    url: Optional[str] = None
    selector: Optional[str] = None
    value: Optional[str] = None
    assertion: Optional[str] = None
    api_request: Optional[APIRequestDetails] = Field(None, alias="apiRequest")
    api_response: Optional[APIResponseDetails] = Field(None, alias="apiResponse")


class StepResult(WireModel):
    """Outcome of one executed step. Immutable once created."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    step_index: int = Field(..., ge=0, alias="stepIndex", description="Zero-based index")
    action: str = Field(..., description="Echoed action kind")
    status: StepStatus = Field(..., description="pass, fail or error")
    duration: int = Field(..., ge=0, description="Duration in milliseconds")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    screenshot: Optional[str] = Field(None, description="Artifact store key")
    details: StepDetails = Field(default_factory=StepDetails)

    @property
    def is_failure(self) -> bool:
        return self.status in (StepStatus.FAIL, StepStatus.ERROR)


class ExecutionMetadata(WireModel):
    triggered_by: str = Field(..., alias="triggeredBy")
    environment: Optional[str] = None
    browser_version: Optional[str] = Field(None, alias="browserVersion")


class ExecutionRecord(WireModel):
    """Replayable record of one execution of one test case."""

    execution_id: str = Field(..., alias="executionId")
    project_id: str = Field(..., alias="projectId")
    test_case_id: Optional[str] = Field(None, alias="testCaseId")
    test_suite_id: Optional[str] = Field(None, alias="testSuiteId")
    suite_execution_id: Optional[str] = Field(None, alias="suiteExecutionId")
    status: ExecutionStatus = Field(...)
    result: Optional[ExecutionVerdict] = Field(None)
    start_time: str = Field(..., alias="startTime")
    end_time: Optional[str] = Field(None, alias="endTime")
    duration: Optional[int] = Field(None, ge=0, description="Milliseconds")
    steps: List[StepResult] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    error_message: Optional[str] = Field(None, alias="errorMessage")
    metadata: ExecutionMetadata = Field(...)
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")

    @model_validator(mode="after")
    def validate_lifecycle_fields(self):
        if self.status in (ExecutionStatus.QUEUED, ExecutionStatus.RUNNING):
            if self.result is not None or self.end_time is not None:
                raise ValueError(
                    f"result and endTime must be absent while status is {self.status.value}"
                )
        if self.status == ExecutionStatus.COMPLETED:
            if self.result is None or self.end_time is None:
                raise ValueError("completed executions must carry result and endTime")
        if len(set(self.screenshots)) != len(self.screenshots):
            raise ValueError("screenshots must not contain duplicates")
        return self

    @property
    def is_success(self) -> bool:
        return self.result == ExecutionVerdict.PASS

    def to_summary(self) -> Dict[str, Any]:
        """Create a summary dictionary for logging."""
        return {
            "execution_id": self.execution_id,
            "test_case_id": self.test_case_id,
            "status": self.status.value,
            "result": self.result.value if self.result else None,
            "duration": self.duration,
            "steps_executed": len(self.steps),
            "screenshots_count": len(self.screenshots),
            "has_error": bool(self.error_message),
        }


class ExecutionOutcome(BaseModel):
    """Execution record plus a pass/fail convenience flag."""

    execution: ExecutionRecord
    success: bool


class MessageMetadata(WireModel):
    triggered_by: str = Field(..., alias="triggeredBy")
    environment: Optional[str] = None


class ExecutionMessage(WireModel):
    """Work-intake message carrying a fully materialized test case."""

    execution_id: str = Field(..., alias="executionId")
    test_case_id: str = Field(..., alias="testCaseId")
    project_id: str = Field(..., alias="projectId")
    suite_execution_id: Optional[str] = Field(None, alias="suiteExecutionId")
    test_case: TestCase = Field(..., alias="testCase")
    metadata: MessageMetadata


class SuiteExecutionStats(WireModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    errors: int = 0
    duration: int = 0
