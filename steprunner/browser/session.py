"""
Browser session lifecycle management.

Owns at most one live Playwright session (browser, context and page). The
session manager is an explicit object owned by whoever runs an execution;
running two browser-requiring executions at once in the same process is the
caller's responsibility to prevent.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from playwright.async_api import async_playwright

from ..core.config import Config
from ..core.exceptions import NoActiveSessionError, SessionError
from ..core.logging_config import get_logger


@dataclass
class BrowserSession:
    """A live browser, its context and the single page steps act on."""

    browser: Any
    context: Any
    page: Any
    playwright: Any = None

    @property
    def browser_version(self) -> str:
        return self.browser.version


class SessionManager:
    """
    Launches, hands out and tears down a single browser session.

    Usage:
        manager = SessionManager(config)
        async with manager.session() as session:
            await session.page.goto(url)
    """

    def __init__(self, config: Config, launcher=None):
        """
        Args:
            config: Browser and timeout settings
            launcher: Optional zero-argument factory returning an object with an
                async ``start()`` yielding a Playwright instance. Defaults to
                ``playwright.async_api.async_playwright``.
        """
        self.config = config
        self.launcher = launcher or async_playwright
        self.logger = get_logger(__name__)
        self._current: Optional[BrowserSession] = None

    async def initialize(self) -> BrowserSession:
        """Launch a headless browser, open a context and a page."""
        if self._current is not None:
            raise SessionError(
                "A browser session is already active; clean it up first",
                stage="initialize",
            )

        self.logger.info("Initializing browser session...")
        playwright = browser = context = None

        try:
            playwright = await self.launcher().start()
            browser = await playwright.chromium.launch(
                headless=self.config.headless_mode
            )
            self.logger.debug("Browser launched")

            context = await browser.new_context(
                viewport=self.config.viewport,
                user_agent=self.config.user_agent,
                ignore_https_errors=self.config.ignore_https_errors,
            )
            page = await context.new_page()

            page.set_default_timeout(self.config.default_timeout_ms)
            page.set_default_navigation_timeout(self.config.navigation_timeout_ms)

        except Exception as e:
            self.logger.error(f"Failed to initialize browser: {e}")
            # Release whatever was created before the failure
            partial = BrowserSession(
                browser=browser, context=context, page=None, playwright=playwright
            )
            await self._close_all(partial)
            raise SessionError(
                f"Browser initialization failed: {e}", stage="initialize"
            ) from e

        self._current = BrowserSession(
            browser=browser, context=context, page=page, playwright=playwright
        )
        self.logger.info(
            "Browser session ready",
            extra={"metadata": {"browser_version": self._current.browser_version}},
        )
        return self._current

    def get_current(self) -> BrowserSession:
        """Return the active session or raise ``NoActiveSessionError``."""
        if self._current is None:
            raise NoActiveSessionError()
        return self._current

    def has_active(self) -> bool:
        return self._current is not None

    def get_browser_version(self) -> str:
        if self._current is None:
            return "No active session"
        try:
            return self._current.browser_version
        except Exception as e:
            self.logger.warning(f"Failed to get browser version: {e}")
            return "Unknown"

    async def _close_all(self, session: BrowserSession) -> Optional[BaseException]:
        """Close page, context, browser and Playwright; return the first error."""
        first_error = None

        steps = [
            ("page", session.page, "close"),
            ("context", session.context, "close"),
            ("browser", session.browser, "close"),
            ("playwright", session.playwright, "stop"),
        ]
        for name, resource, method in steps:
            if resource is None:
                continue
            try:
                if name == "page" and resource.is_closed():
                    continue
                if name == "browser" and not resource.is_connected():
                    continue
                await getattr(resource, method)()
                self.logger.debug(f"{name.capitalize()} closed")
            except Exception as e:
                self.logger.warning(f"Error closing {name}: {e}")
                if first_error is None:
                    first_error = e

        return first_error

    async def cleanup(self) -> None:
        """
        Tear down the active session in page, context, browser order.

        Teardown continues past individual close errors and the session is
        always cleared; the first error is raised afterwards.
        """
        if self._current is None:
            self.logger.debug("No active browser session to clean up")
            return

        session = self._current
        try:
            first_error = await self._close_all(session)
        finally:
            self._current = None

        if first_error is not None:
            raise SessionError(
                f"Browser cleanup failed: {first_error}", stage="cleanup"
            ) from first_error

        self.logger.info("Browser cleanup completed")

    async def force_cleanup(self) -> None:
        """Clean up without ever raising."""
        try:
            await self.cleanup()
        except Exception as e:
            self.logger.warning(f"Force cleanup encountered error (suppressed): {e}")
            self._current = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        """Acquire a session for the duration of the block."""
        session = await self.initialize()
        try:
            yield session
        finally:
            await self.force_cleanup()
