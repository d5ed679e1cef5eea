"""
HTTP client used by api-call steps.

Thin wrapper over ``aiohttp`` that returns every response, whatever its
status code, together with headers, body and timing. Network errors are
left to propagate so callers can retry or classify them.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from ..core.logging_config import get_logger


@dataclass
class HttpResponse:
    status_code: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpClient:
    """Issues one outbound HTTP request per call."""

    def __init__(self, timeout_ms: int = 30000):
        self.timeout_ms = timeout_ms
        self.logger = get_logger(__name__)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> HttpResponse:
        """
        Send a request and capture the response.

        Dicts and lists are sent as JSON; anything else as raw data.
        """
        kwargs: Dict[str, Any] = {"headers": headers or {}}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = body if isinstance(body, (str, bytes)) else json.dumps(body)

        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
        start = time.monotonic()

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text(errors="replace")
                duration_ms = int((time.monotonic() - start) * 1000)

                self.logger.debug(
                    f"{method} {url} -> {response.status} in {duration_ms}ms"
                )
                return HttpResponse(
                    status_code=response.status,
                    reason=response.reason or "",
                    headers={k: v for k, v in response.headers.items()},
                    body=text,
                    duration_ms=duration_ms,
                )
