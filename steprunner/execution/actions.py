"""
Typed action variants for test steps.

A raw ``TestStep`` carries its action as a string. Before execution it is
turned into one of the frozen variants below, each holding only the fields
its action needs. Unknown action strings and malformed step fields are
rejected here, so the executor only ever dispatches on known variants.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from ..core.exceptions import StepValidationError, UnknownActionError
from .models import AssertionKind, StepAction, TestStep


UI_ACTIONS = frozenset(
    {
        StepAction.NAVIGATE,
        StepAction.CLICK,
        StepAction.TYPE,
        StepAction.WAIT,
        StepAction.ASSERT,
    }
)

# UI actions that capture a screenshot when they fail
SCREENSHOT_ACTIONS = frozenset(
    {
        StepAction.NAVIGATE,
        StepAction.CLICK,
        StepAction.TYPE,
        StepAction.ASSERT,
    }
)

DEFAULT_WAIT_MS = 1000

# RFC 7230 token characters
HTTP_METHOD_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


@dataclass(frozen=True)
class NavigateAction:
    url: str
    kind: StepAction = field(default=StepAction.NAVIGATE, init=False)


@dataclass(frozen=True)
class ClickAction:
    selector: str
    kind: StepAction = field(default=StepAction.CLICK, init=False)


@dataclass(frozen=True)
class TypeAction:
    selector: str
    text: Optional[str]
    kind: StepAction = field(default=StepAction.TYPE, init=False)


@dataclass(frozen=True)
class WaitAction:
    duration_ms: int
    kind: StepAction = field(default=StepAction.WAIT, init=False)


@dataclass(frozen=True)
class AssertAction:
    selector: str
    assertion: AssertionKind
    expected: str = ""
    kind: StepAction = field(default=StepAction.ASSERT, init=False)


@dataclass(frozen=True)
class ApiCallAction:
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    kind: StepAction = field(default=StepAction.API_CALL, init=False)


Action = Union[
    NavigateAction, ClickAction, TypeAction, WaitAction, AssertAction, ApiCallAction
]


def resolve_action_kind(raw: str, step_index: Optional[int] = None) -> StepAction:
    """Map a raw action string to ``StepAction`` or raise ``UnknownActionError``."""
    try:
        return StepAction(raw)
    except ValueError:
        raise UnknownActionError(raw, step_index=step_index) from None


def requires_page(kind: StepAction) -> bool:
    return kind in UI_ACTIONS


def parse_wait_duration(step: TestStep, step_index: Optional[int] = None) -> int:
    """Wait duration in ms from the target, falling back to the value."""
    raw = (step.target or step.value or "").strip()
    if not raw:
        return DEFAULT_WAIT_MS

    try:
        duration = int(raw)
    except ValueError:
        duration = -1

    if duration < 0:
        raise StepValidationError(
            f"Wait action requires a valid duration in milliseconds, got '{raw}'",
            action=StepAction.WAIT.value,
            step_index=step_index,
        )
    return duration


def parse_assertion_kind(
    expected_result: Optional[str], step_index: Optional[int] = None
) -> AssertionKind:
    """Assertion kind named by the expected-result token, ``visible`` by default."""
    token = (expected_result or "").strip().lower()
    if not token:
        return AssertionKind.VISIBLE

    for kind in AssertionKind:
        if kind.value in token:
            return kind

    raise StepValidationError(
        f"Unknown assertion type: {expected_result}. "
        f"Must be one of {[k.value for k in AssertionKind]}",
        action=StepAction.ASSERT.value,
        step_index=step_index,
    )


def parse_request_payload(value: Optional[str], step_index: Optional[int] = None):
    """
    Split an api-call step value into headers and body.

    A JSON object is read as ``{"headers": ..., "body": ...}``; anything else
    is sent verbatim as the request body.

    Raises:
        StepValidationError: ``headers`` is present but not a JSON object
    """
    if not value:
        return {}, None

    try:
        parsed = json.loads(value)
    except ValueError:
        return {}, value

    if not isinstance(parsed, dict):
        return {}, value

    headers = parsed.get("headers") or {}
    if not isinstance(headers, dict):
        raise StepValidationError(
            f"API call headers must be a JSON object, got {type(headers).__name__}",
            action=StepAction.API_CALL.value,
            step_index=step_index,
        )
    return {str(k): str(v) for k, v in headers.items()}, parsed.get("body")


def parse_http_method(raw: Optional[str], step_index: Optional[int] = None) -> str:
    """HTTP method named by the expected-result field, ``GET`` by default."""
    method = (raw or "").strip().upper() or "GET"
    if not HTTP_METHOD_PATTERN.match(method):
        raise StepValidationError(
            f"Invalid HTTP method: '{raw}'",
            action=StepAction.API_CALL.value,
            step_index=step_index,
        )
    return method


def parse_action(step: TestStep, step_index: Optional[int] = None) -> Action:
    """
    Build the typed variant for a step.

    Raises:
        UnknownActionError: the action string names no known action
        StepValidationError: a field the action needs is malformed
    """
    kind = resolve_action_kind(step.action, step_index)

    if kind == StepAction.NAVIGATE:
        return NavigateAction(url=step.target)

    if kind == StepAction.CLICK:
        return ClickAction(selector=step.target)

    if kind == StepAction.TYPE:
        return TypeAction(selector=step.target, text=step.value)

    if kind == StepAction.WAIT:
        return WaitAction(duration_ms=parse_wait_duration(step, step_index))

    if kind == StepAction.ASSERT:
        return AssertAction(
            selector=step.target,
            assertion=parse_assertion_kind(step.expected_result, step_index),
            expected=step.value or "",
        )

    headers, body = parse_request_payload(step.value, step_index)
    return ApiCallAction(
        url=step.target,
        method=parse_http_method(step.expected_result, step_index),
        headers=headers,
        body=body,
    )
