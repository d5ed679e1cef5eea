"""
Configuration management for Step Runner.

Handles environment variables, defaults, and configuration validation
for the browser session, step execution and logging components.
"""

import os
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
VALID_LOG_FORMATS = ["text", "json"]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class Config:
    """Configuration class for Step Runner with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Browser settings
    headless_mode: bool = field(default=True)
    viewport_width: int = field(default=1280)
    viewport_height: int = field(default=720)
    user_agent: str = field(default=DEFAULT_USER_AGENT)
    ignore_https_errors: bool = field(default=True)

    # Timeouts (milliseconds)
    default_timeout_ms: int = field(default=30000)
    navigation_timeout_ms: int = field(default=30000)
    action_timeout_ms: int = field(default=10000)
    api_timeout_ms: int = field(default=30000)

    # Step retry policy
    step_retry_attempts: int = field(default=3)
    step_retry_delay_ms: int = field(default=1000)
    step_retry_max_delay_ms: int = field(default=8000)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Directory paths
    artifacts_dir: Path = field(default_factory=lambda: Path.cwd() / "artifacts")
    logs_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    def __post_init__(self):
        """Post-initialization validation and environment overrides."""
        if os.getenv("CI", "").lower() == "true" and self.ci_mode is False:
            self.ci_mode = True

        headless_env = os.getenv("STEP_RUNNER_HEADLESS")
        if headless_env is not None:
            self.headless_mode = headless_env.lower() != "false"

        log_env = os.getenv("STEP_RUNNER_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        self.log_level = self.log_level.upper()
        if self.log_level == "WARN":
            self.log_level = "WARNING"
        if self.log_level not in VALID_LOG_LEVELS:
            self.log_level = "INFO"

        format_env = os.getenv("STEP_RUNNER_LOG_FORMAT")
        if format_env:
            self.log_format = format_env.lower()
        elif self.ci_mode and self.log_format == "text":
            self.log_format = "json"
        if self.log_format not in VALID_LOG_FORMATS:
            self.log_format = "text"

        artifacts_env = os.getenv("STEP_RUNNER_ARTIFACTS_DIR")
        if artifacts_env:
            self.artifacts_dir = Path(artifacts_env)
        logs_env = os.getenv("STEP_RUNNER_LOGS_DIR")
        if logs_env:
            self.logs_dir = Path(logs_env)
        self.artifacts_dir = Path(self.artifacts_dir)
        self.logs_dir = Path(self.logs_dir)

        timeout = _env_int("STEP_RUNNER_DEFAULT_TIMEOUT_MS", self.default_timeout_ms)
        if timeout > 0:
            self.default_timeout_ms = timeout
            self.navigation_timeout_ms = max(self.navigation_timeout_ms, timeout)

        attempts = _env_int("STEP_RUNNER_STEP_RETRY_ATTEMPTS", self.step_retry_attempts)
        if attempts >= 1:
            self.step_retry_attempts = attempts

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}

    def get_screenshots_dir(self) -> Path:
        """Get the root directory for stored screenshots."""
        return self.artifacts_dir / "screenshots"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "headless_mode": self.headless_mode,
            "viewport": self.viewport,
            "default_timeout_ms": self.default_timeout_ms,
            "navigation_timeout_ms": self.navigation_timeout_ms,
            "action_timeout_ms": self.action_timeout_ms,
            "api_timeout_ms": self.api_timeout_ms,
            "step_retry_attempts": self.step_retry_attempts,
            "step_retry_delay_ms": self.step_retry_delay_ms,
            "step_retry_max_delay_ms": self.step_retry_max_delay_ms,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "artifacts_dir": str(self.artifacts_dir),
            "logs_dir": str(self.logs_dir),
        }

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        return cls(
            ci_mode=ci,
            log_format="json" if ci else "text",
            step_retry_delay_ms=_env_int("STEP_RUNNER_STEP_RETRY_DELAY_MS", 1000),
            api_timeout_ms=_env_int("STEP_RUNNER_API_TIMEOUT_MS", 30000),
        )

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.viewport_width <= 0 or self.viewport_height <= 0:
            errors.append(
                f"Viewport must be positive, got {self.viewport_width}x{self.viewport_height}"
            )

        for name in (
            "default_timeout_ms",
            "navigation_timeout_ms",
            "action_timeout_ms",
            "api_timeout_ms",
        ):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if self.step_retry_attempts < 1:
            errors.append("step_retry_attempts must be at least 1")

        if self.step_retry_delay_ms < 0 or self.step_retry_max_delay_ms < 0:
            errors.append("Retry delays must not be negative")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
