"""
Step Runner - test execution engine

Executes structured test cases made of UI steps driven through Playwright
and HTTP API steps, and reports a replayable execution record per run.
"""

__version__ = "0.1.0"
__author__ = "Step Runner Team"

from .core.config import Config
from .core.exceptions import StepRunnerError
from .core.logging_config import setup_logging
from .execution.executor import TestCaseExecutor

__all__ = [
    "Config",
    "StepRunnerError",
    "setup_logging",
    "TestCaseExecutor",
]
