"""
Logging configuration for Step Runner.

Every record emitted while a test case runs can carry execution and step
context (``execution_id``, ``step_index``, ``action``, ``status``,
``duration``). The JSON formatter lifts that context into top-level keys so
log shippers can filter one execution; the text formatter folds it into a
short suffix for local runs. Outside CI a rotating log file mirrors stdout.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import Config


CONTEXT_FIELDS = ["execution_id", "step_index", "action", "duration", "status"]

LOG_FILE_NAME = "step-runner.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _timestamp(with_millis: bool = True) -> str:
    now = datetime.now(timezone.utc)
    if with_millis:
        return now.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return now.strftime("%Y-%m-%d %H:%M:%S")


def _record_context(
    record: logging.LogRecord, execution_id: Optional[str]
) -> Dict[str, Any]:
    """Context fields set on the record, falling back to the run's execution id."""
    context = {
        name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)
    }
    if execution_id and not context.get("execution_id"):
        context["execution_id"] = execution_id
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, context fields at the top level."""

    def __init__(self, execution_id: Optional[str] = None):
        super().__init__()
        self.execution_id = execution_id

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        entry.update(_record_context(record, self.execution_id))

        if getattr(record, "metadata", None) is not None:
            entry["metadata"] = record.metadata
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for local runs."""

    def __init__(self, execution_id: Optional[str] = None):
        super().__init__()
        self.execution_id = execution_id

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record, self.execution_id)
        line = f"[{_timestamp(False)}] {record.levelname:8} {record.name:28} | {record.getMessage()}"

        if "step_index" in context:
            line += f" [step {context['step_index'] + 1}"
            if context.get("action"):
                line += f" {context['action']}"
            line += "]"
        if context.get("execution_id"):
            line += f" (execution: {str(context['execution_id'])[:8]})"

        metadata = getattr(record, "metadata", None)
        if metadata:
            line += " | " + " | ".join(f"{k}={v}" for k, v in metadata.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _build_handlers(config: Config, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    # CI collects stdout, so only local runs keep a log file
    if not config.is_ci_mode:
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.logs_dir / LOG_FILE_NAME,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(config: Config, execution_id: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger for one process or one CLI run.

    Args:
        config: Configuration object with logging settings
        execution_id: Execution stamped on records that carry none of their own

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(getattr(logging, config.log_level))

    formatter_cls = StructuredFormatter if config.log_format == "json" else TextFormatter
    for handler in _build_handlers(config, formatter_cls(execution_id)):
        root_logger.addHandler(handler)

    logging.getLogger("steprunner.logging").debug(
        "Logging configured",
        extra={
            "metadata": {
                "log_level": config.log_level,
                "log_format": config.log_format,
                "ci_mode": config.is_ci_mode,
            }
        },
    )
    return root_logger


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter that merges its context into every record's extras."""

    def process(self, msg, kwargs):
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        for key, value in self.extra.items():
            kwargs["extra"].setdefault(key, value)
        return msg, kwargs


def get_logger(name: str, **context) -> logging.Logger:
    """
    Get a logger, wrapped in a ``ContextAdapter`` when context is given.

    Args:
        name: Logger name (typically module name)
        **context: Fields added to every record, e.g. ``execution_id``
    """
    logger = logging.getLogger(name)
    if context:
        return ContextAdapter(logger, context)
    return logger


def log_performance(
    logger: logging.Logger, operation: str, duration_ms: int, **metadata
):
    """Log how long an operation took, in milliseconds."""
    logger.info(
        f"Performance: {operation} completed in {duration_ms}ms",
        extra={
            "metadata": {"operation": operation, "duration_ms": duration_ms, **metadata}
        },
    )


def log_step_outcome(
    logger: logging.Logger,
    step_index: int,
    action: str,
    status: str,
    duration_ms: int,
    error_message: Optional[str] = None,
):
    """
    Log the outcome of a single executed step.

    Passing steps are logged at INFO, failures at WARNING and errors at ERROR.
    """
    if status == "pass":
        level = logging.INFO
    elif status == "fail":
        level = logging.WARNING
    else:
        level = logging.ERROR

    message = f"Step {step_index + 1} ({action}) {status} in {duration_ms}ms"
    if error_message:
        message += f": {error_message}"

    logger.log(
        level,
        message,
        extra={
            "step_index": step_index,
            "action": action,
            "status": status,
            "duration": duration_ms,
        },
    )
