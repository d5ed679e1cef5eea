"""
Base exception classes for Step Runner.

Provides a hierarchy of exceptions for the error types that can occur while
launching a browser session, validating steps and executing test cases.
"""

from typing import Optional, Dict, Any


class StepRunnerError(Exception):
    """Base exception class for all Step Runner errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class ValidationError(StepRunnerError):
    """Raised when configuration or input validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )


class SessionError(StepRunnerError):
    """Raised when a browser session cannot be launched or torn down."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message, "SESSION_FAILED")
        self.stage = stage
        self.context.update({"stage": stage})


class NoActiveSessionError(SessionError):
    """Raised when the current session is requested but none is active."""

    def __init__(
        self,
        message: str = "No active browser session. Call initialize() first.",
    ):
        super().__init__(message, stage="get_current")
        self.error_code = "NO_ACTIVE_SESSION"


class StepValidationError(StepRunnerError):
    """Raised when a step definition is malformed and cannot be executed."""

    def __init__(
        self,
        message: str,
        action: Optional[str] = None,
        step_index: Optional[int] = None,
    ):
        super().__init__(message, "STEP_VALIDATION_FAILED")
        self.action = action
        self.step_index = step_index
        self.context.update(
            {
                "action": action,
                "step_index": step_index,
            }
        )


class UnknownActionError(StepValidationError):
    """Raised when a step names an action kind the executor does not know."""

    def __init__(self, action: Optional[str], step_index: Optional[int] = None):
        super().__init__(
            f"Unknown action type: {action}", action=action, step_index=step_index
        )
        self.error_code = "UNKNOWN_ACTION"


class PageRequiredError(StepValidationError):
    """Raised when a UI step is executed without a live page."""

    def __init__(self, action: str, step_index: Optional[int] = None):
        super().__init__(
            f"Page is required for {action} action",
            action=action,
            step_index=step_index,
        )
        self.error_code = "PAGE_REQUIRED"


class AssertionMismatchError(StepRunnerError):
    """Raised when an assert step observes something other than expected."""

    def __init__(
        self,
        message: str,
        selector: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ):
        super().__init__(message, "ASSERTION_MISMATCH")
        self.selector = selector
        self.expected = expected
        self.actual = actual
        self.context.update(
            {
                "selector": selector,
                "expected": expected,
                "actual": actual,
            }
        )


class InvalidStatusTransitionError(StepRunnerError):
    """Raised when an execution status change breaks the state machine."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            f"Invalid status transition: {current_status} -> {new_status}",
            "INVALID_STATUS_TRANSITION",
        )
        self.current_status = current_status
        self.new_status = new_status
        self.context.update(
            {
                "current_status": current_status,
                "new_status": new_status,
            }
        )


class ArtifactStoreError(StepRunnerError):
    """Raised when an artifact cannot be written to the artifact store."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, "ARTIFACT_STORE_FAILED")
        self.key = key
        self.context.update({"key": key})


class MessageFormatError(StepRunnerError):
    """Raised when a work-intake message cannot be parsed."""

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message, "INVALID_MESSAGE")
        self.body = body
        self.context.update({"body": body})


class StepExecutionError(StepRunnerError):
    """Raised when a step fails with an exception the executor did not anticipate."""

    def __init__(self, message: str, result=None, step_index: Optional[int] = None):
        super().__init__(message, "STEP_EXECUTION_FAILED")
        self.result = result
        self.step_index = step_index
        self.context.update({"step_index": step_index})
