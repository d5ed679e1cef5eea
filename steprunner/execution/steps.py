"""
Step executor.

Performs exactly one step against a live page or an HTTP endpoint and
normalizes what happened into a ``StepResult``. Anticipated outcomes
(timeouts, missing elements, assertion mismatches, non-2xx responses,
malformed steps) come back as results; anything else propagates to the
caller.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, List, Optional

import aiohttp
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..browser.http_client import HttpClient
from ..core.config import Config
from ..core.exceptions import (
    AssertionMismatchError,
    PageRequiredError,
    StepValidationError,
)
from ..core.logging_config import get_logger, log_step_outcome
from ..core.retry import RetryOptions, retry_with_backoff
from .actions import (
    SCREENSHOT_ACTIONS,
    ApiCallAction,
    AssertAction,
    ClickAction,
    NavigateAction,
    TypeAction,
    WaitAction,
    parse_action,
    requires_page,
    resolve_action_kind,
)
from .artifacts import ScreenshotCapturer
from .models import (
    APIRequestDetails,
    APIResponseDetails,
    AssertionKind,
    StepDetails,
    StepResult,
    StepStatus,
    TestStep,
)


NAVIGATION_RETRYABLE_ERRORS = ["timeout", "net::err", "navigation"]
ELEMENT_RETRYABLE_ERRORS = ["timeout", "not found", "not visible", "detached"]
API_RETRYABLE_ERRORS = [
    "timeout",
    "etimedout",
    "econnreset",
    "econnrefused",
    "enotfound",
    "network",
    "cannot connect",
    "connection reset",
    "connection refused",
    "server disconnected",
]


@dataclass
class StepOutcome:
    """What an action handler observed, before timing and screenshots."""

    status: StepStatus
    details: StepDetails
    error_message: Optional[str] = None

    @classmethod
    def passed(cls, details: StepDetails) -> "StepOutcome":
        return cls(StepStatus.PASS, details)

    @classmethod
    def failed(cls, message: str, details: StepDetails) -> "StepOutcome":
        return cls(StepStatus.FAIL, details, message)

    @classmethod
    def errored(cls, message: str, details: StepDetails) -> "StepOutcome":
        return cls(StepStatus.ERROR, details, message)


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.monotonic() - start) * 1000))


class StepExecutor:
    """
    Executes single test steps.

    One executor serves one execution at a time; ``execution_id`` names the
    screenshots it captures.
    """

    def __init__(
        self,
        config: Config,
        capturer: Optional[ScreenshotCapturer] = None,
        http_client: Optional[HttpClient] = None,
        execution_id: str = "",
    ):
        self.config = config
        self.capturer = capturer
        self.http_client = http_client or HttpClient(config.api_timeout_ms)
        self.execution_id = execution_id
        self.logger = get_logger(__name__)

        self._handlers = {
            NavigateAction: self._execute_navigate,
            ClickAction: self._execute_click,
            TypeAction: self._execute_type,
            WaitAction: self._execute_wait,
            AssertAction: self._execute_assert,
            ApiCallAction: self._execute_api_call,
        }

    def _retry_options(self, retryable_errors: List[str]) -> RetryOptions:
        return RetryOptions(
            max_attempts=self.config.step_retry_attempts,
            initial_delay_ms=self.config.step_retry_delay_ms,
            max_delay_ms=self.config.step_retry_max_delay_ms,
            retryable_errors=retryable_errors,
        )

    async def execute_step(
        self, page, step: TestStep, step_index: int
    ) -> StepResult:
        """
        Execute one step and return its result.

        Unknown actions, UI actions without a page and malformed step fields
        yield an ``error`` result without touching the page. Failed navigate,
        click, type and assert steps carry a screenshot key when capture
        succeeds.
        """
        self.logger.info(
            f"Executing step {step_index + 1}: {step.action}",
            extra={"metadata": {"step_index": step_index, "target": step.target}},
        )

        try:
            kind = resolve_action_kind(step.action, step_index)
            if requires_page(kind) and page is None:
                raise PageRequiredError(kind.value, step_index)
            action = parse_action(step, step_index)
        except StepValidationError as e:
            result = StepResult(
                step_index=step_index,
                action=step.action,
                status=StepStatus.ERROR,
                duration=0,
                error_message=e.message,
            )
            self._log_result(result)
            return result

        start = time.monotonic()
        outcome = await self._handlers[type(action)](page, action)
        duration = _elapsed_ms(start)

        screenshot = None
        if outcome.status == StepStatus.FAIL and kind in SCREENSHOT_ACTIONS:
            screenshot = await self._capture(page, step_index)

        result = StepResult(
            step_index=step_index,
            action=kind.value,
            status=outcome.status,
            duration=duration,
            error_message=outcome.error_message,
            screenshot=screenshot,
            details=outcome.details,
        )
        self._log_result(result)
        return result

    async def _capture(self, page, step_index: int) -> Optional[str]:
        if self.capturer is None:
            return None
        return await self.capturer.capture_safe(page, self.execution_id, step_index)

    def _log_result(self, result: StepResult) -> None:
        log_step_outcome(
            self.logger,
            result.step_index,
            result.action,
            result.status.value,
            result.duration,
            result.error_message,
        )

    async def _execute_navigate(self, page, action: NavigateAction) -> StepOutcome:
        details = StepDetails(url=action.url)
        if not action.url:
            return StepOutcome.failed("Navigate action requires a target URL", details)

        try:
            await retry_with_backoff(
                lambda: page.goto(
                    action.url,
                    timeout=self.config.navigation_timeout_ms,
                    wait_until="domcontentloaded",
                ),
                self._retry_options(NAVIGATION_RETRYABLE_ERRORS),
            )
        except PlaywrightError as e:
            return StepOutcome.failed(_error_text(e), details)

        return StepOutcome.passed(details)

    async def _execute_click(self, page, action: ClickAction) -> StepOutcome:
        details = StepDetails(selector=action.selector)
        if not action.selector:
            return StepOutcome.failed("Click action requires a target selector", details)

        try:
            await retry_with_backoff(
                lambda: page.click(action.selector, timeout=self.config.action_timeout_ms),
                self._retry_options(ELEMENT_RETRYABLE_ERRORS),
            )
        except PlaywrightError as e:
            return StepOutcome.failed(_error_text(e), details)

        return StepOutcome.passed(details)

    async def _execute_type(self, page, action: TypeAction) -> StepOutcome:
        details = StepDetails(selector=action.selector, value=action.text)
        if not action.selector:
            return StepOutcome.failed("Type action requires a target selector", details)
        if action.text is None:
            return StepOutcome.failed("Type action requires a value to input", details)

        try:
            await retry_with_backoff(
                lambda: page.fill(
                    action.selector, action.text, timeout=self.config.action_timeout_ms
                ),
                self._retry_options(ELEMENT_RETRYABLE_ERRORS),
            )
        except PlaywrightError as e:
            return StepOutcome.failed(_error_text(e), details)

        return StepOutcome.passed(details)

    async def _execute_wait(self, page, action: WaitAction) -> StepOutcome:
        await page.wait_for_timeout(action.duration_ms)
        return StepOutcome.passed(StepDetails(value=str(action.duration_ms)))

    async def _execute_assert(self, page, action: AssertAction) -> StepOutcome:
        details = StepDetails(selector=action.selector, assertion=action.assertion.value)
        if not action.selector:
            return StepOutcome.failed("Assert action requires a target selector", details)

        try:
            await retry_with_backoff(
                lambda: self._evaluate_assertion(page, action),
                self._retry_options(ELEMENT_RETRYABLE_ERRORS),
            )
        except (AssertionMismatchError, PlaywrightTimeoutError) as e:
            return StepOutcome.failed(_error_text(e), details)
        except Exception as e:
            return StepOutcome.errored(
                f"Assertion evaluation failed: {_error_text(e)}", details
            )

        return StepOutcome.passed(details)

    async def _evaluate_assertion(self, page, action: AssertAction) -> None:
        element = await page.wait_for_selector(
            action.selector,
            timeout=self.config.action_timeout_ms,
            state="attached",
        )
        if element is None:
            raise AssertionMismatchError(
                f"Element not found: {action.selector}", selector=action.selector
            )

        if action.assertion == AssertionKind.VISIBLE:
            if not await element.is_visible():
                raise AssertionMismatchError(
                    f"Element is not visible: {action.selector}",
                    selector=action.selector,
                )
            return

        if action.assertion == AssertionKind.TEXT:
            actual = await element.text_content()
            label = "text"
        else:
            actual = await element.input_value()
            label = "value"

        if actual != action.expected:
            raise AssertionMismatchError(
                f'Expected {label} "{action.expected}", got "{actual}"',
                selector=action.selector,
                expected=action.expected,
                actual=actual,
            )

    async def _execute_api_call(self, page, action: ApiCallAction) -> StepOutcome:
        if not action.url:
            return StepOutcome.errored(
                "API call action requires a target URL", StepDetails(url=action.url)
            )

        start = time.monotonic()
        try:
            response = await retry_with_backoff(
                lambda: self.http_client.request(
                    action.method, action.url, action.headers, action.body
                ),
                self._retry_options(API_RETRYABLE_ERRORS),
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            return StepOutcome.errored(_error_text(e), StepDetails(url=action.url))

        duration = _elapsed_ms(start)

        details = StepDetails(
            api_request=APIRequestDetails(
                method=action.method,
                url=action.url,
                headers=action.headers,
                body=_serialize_body(action.body),
            ),
            api_response=APIResponseDetails(
                status_code=response.status_code,
                headers=response.headers,
                body=response.body,
                duration=duration,
            ),
        )

        if not response.ok:
            return StepOutcome.failed(
                f"HTTP {response.status_code}: {response.reason}".rstrip(), details
            )
        return StepOutcome.passed(details)


def _serialize_body(body: Any) -> Optional[str]:
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body)
