"""Core components for Step Runner."""

from .config import Config
from .exceptions import (
    StepRunnerError,
    ValidationError,
    SessionError,
    NoActiveSessionError,
    StepValidationError,
    UnknownActionError,
    PageRequiredError,
    AssertionMismatchError,
    InvalidStatusTransitionError,
    ArtifactStoreError,
    MessageFormatError,
    StepExecutionError,
)
from .logging_config import setup_logging, get_logger
from .retry import (
    RetryOptions,
    RetryResult,
    retry_with_backoff,
    retry_with_backoff_safe,
    make_retryable,
)

__all__ = [
    "Config",
    "StepRunnerError",
    "ValidationError",
    "SessionError",
    "NoActiveSessionError",
    "StepValidationError",
    "UnknownActionError",
    "PageRequiredError",
    "AssertionMismatchError",
    "InvalidStatusTransitionError",
    "ArtifactStoreError",
    "MessageFormatError",
    "StepExecutionError",
    "setup_logging",
    "get_logger",
    "RetryOptions",
    "RetryResult",
    "retry_with_backoff",
    "retry_with_backoff_safe",
    "make_retryable",
]
