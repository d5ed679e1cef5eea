"""
Pytest configuration and shared fixtures for Step Runner tests.

Provides test configuration, fake Playwright objects and sample test cases
for all test modules.
"""

from unittest.mock import MagicMock, AsyncMock
import pytest

from steprunner.core.config import Config
from steprunner.execution.models import TestCase, TestStep


@pytest.fixture
def temp_config(tmp_path):
    """Create a configuration writing into a temporary directory, without retry delays."""
    config = Config(
        artifacts_dir=tmp_path / "artifacts",
        logs_dir=tmp_path / "logs",
        step_retry_attempts=1,
        step_retry_delay_ms=0,
        step_retry_max_delay_ms=0,
    )
    config.log_level = "DEBUG"
    config.ci_mode = False
    return config


@pytest.fixture
def mock_element():
    """Create a fake Playwright element handle."""
    element = MagicMock()
    element.is_visible = AsyncMock(return_value=True)
    element.text_content = AsyncMock(return_value="Welcome")
    element.input_value = AsyncMock(return_value="user@example.com")
    return element


@pytest.fixture
def mock_page(mock_element):
    """Create a fake Playwright page."""
    page = MagicMock()
    page.goto = AsyncMock(return_value=None)
    page.click = AsyncMock(return_value=None)
    page.fill = AsyncMock(return_value=None)
    page.wait_for_timeout = AsyncMock(return_value=None)
    page.wait_for_selector = AsyncMock(return_value=mock_element)
    page.screenshot = AsyncMock(return_value=b"\x89PNG fake screenshot")
    page.is_closed = MagicMock(return_value=False)
    page.close = AsyncMock()
    return page


@pytest.fixture
def mock_playwright(mock_page):
    """Create a fake Playwright driver whose chromium launches a fake browser."""
    context = MagicMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.close = AsyncMock()

    browser = MagicMock()
    browser.version = "120.0.6099.28"
    browser.new_context = AsyncMock(return_value=context)
    browser.is_connected = MagicMock(return_value=True)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    return playwright


@pytest.fixture
def mock_launcher(mock_playwright):
    """Create a launcher factory in the shape of ``async_playwright``."""
    starter = MagicMock()
    starter.start = AsyncMock(return_value=mock_playwright)
    return MagicMock(return_value=starter)


@pytest.fixture
def login_test_case():
    """A UI test case: navigate, type, click, assert."""
    return TestCase(
        test_case_id="tc-login",
        suite_id="suite-auth",
        project_id="proj-1",
        name="User can log in",
        steps=[
            TestStep(step_number=1, action="navigate", target="https://app.example.com/login"),
            TestStep(step_number=2, action="type", target="#email", value="user@example.com"),
            TestStep(step_number=3, action="click", target="#submit"),
            TestStep(
                step_number=4,
                action="assert",
                target="#welcome",
                value="Welcome",
                expected_result="text",
            ),
        ],
    )


@pytest.fixture
def api_test_case():
    """An API-only test case."""
    return TestCase(
        test_case_id="tc-health",
        steps=[
            TestStep(
                step_number=1,
                action="api-call",
                target="https://api.example.com/health",
                expected_result="GET",
            ),
        ],
    )
