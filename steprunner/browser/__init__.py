"""
Browser and HTTP collaborators for Step Runner.

Provides the Playwright session lifecycle used by UI steps and the HTTP
client used by api-call steps.
"""

from .session import BrowserSession, SessionManager
from .http_client import HttpClient, HttpResponse

__all__ = [
    "BrowserSession",
    "SessionManager",
    "HttpClient",
    "HttpResponse",
]
