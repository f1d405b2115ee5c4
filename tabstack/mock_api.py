"""
Mock transport for testing without network access or API credits.

Provides:
- MockResponse: the subset of requests.Response the clients use
- MockSession: a requests.Session stand-in with scripted responses and a
  call log
- default_mock_session(): answers every Tabstack endpoint successfully with
  deterministic content, used by the CLI --mock flag

Thread Safety:
- MockSession guards its script and call log with a lock, so it can be shared
  by batch worker threads
"""

import hashlib
import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import requests

logger = logging.getLogger(__name__)

HTTP_REASONS: Dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    404: "Not Found",
    408: "Request Timeout",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Unavailable",
}


@dataclass
class MockResponse:
    """Canned HTTP response."""

    status_code: int = 200
    body: Any = None  # dict/list are JSON-encoded, str is used as-is

    @property
    def text(self) -> str:
        if self.body is None:
            return ""
        if isinstance(self.body, str):
            return self.body
        return json.dumps(self.body)

    @property
    def reason(self) -> str:
        return HTTP_REASONS.get(self.status_code, "Unknown")

    def json(self) -> Any:
        return json.loads(self.text)

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(
                f"{self.status_code} {self.reason}", response=self  # type: ignore[arg-type]
            )


@dataclass
class MockCall:
    """One recorded request."""

    method: str
    url: str
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        data = self.kwargs.get("data")
        return json.loads(data) if data else None


ScriptItem = Union[MockResponse, BaseException]
Handler = Callable[[str, str, Dict[str, Any]], ScriptItem]


class MockSession:
    """
    requests.Session stand-in.

    Responses are taken from the script in order; once it is empty the
    handler (if any) answers, otherwise every call returns 200 with an empty
    JSON object. Scripted exceptions are raised instead of returned.
    """

    def __init__(
        self,
        responses: Optional[List[ScriptItem]] = None,
        handler: Optional[Handler] = None,
    ) -> None:
        self._script: Deque[ScriptItem] = deque(responses or [])
        self._handler = handler
        self._calls: List[MockCall] = []
        self._lock = threading.Lock()

    def _request(self, method: str, url: str, **kwargs: Any) -> MockResponse:
        with self._lock:
            self._calls.append(MockCall(method=method, url=url, kwargs=kwargs))
            item: Optional[ScriptItem] = (
                self._script.popleft() if self._script else None
            )
        if item is None:
            item = (
                self._handler(method, url, kwargs)
                if self._handler
                else MockResponse(200, {})
            )
        logger.debug(f"Mock {method} {url} -> {item!r}")
        if isinstance(item, BaseException):
            raise item
        return item

    def get(self, url: str, **kwargs: Any) -> MockResponse:
        return self._request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> MockResponse:
        return self._request("POST", url, **kwargs)

    @property
    def calls(self) -> List[MockCall]:
        with self._lock:
            return list(self._calls)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self._calls)


def _tabstack_handler(method: str, url: str, kwargs: Dict[str, Any]) -> MockResponse:
    payload = json.loads(kwargs["data"]) if kwargs.get("data") else {}
    page_url = payload.get("url", "")
    digest = hashlib.sha256(page_url.encode("utf-8")).hexdigest()[:8]

    if method == "GET":
        return MockResponse(200, {"status": "ok"})
    if url.endswith("/extract/markdown"):
        return MockResponse(200, f"# Mock page {digest}\n\nContent of {page_url}\n")
    if url.endswith("/extract/json"):
        properties = payload.get("json_schema", {}).get("properties", {})
        data: Dict[str, Any] = {name: f"mock-{name}-{digest}" for name in properties}
        return MockResponse(200, data or {"title": f"Mock page {digest}"})
    return MockResponse(404, {"error": "not found"})


def default_mock_session() -> MockSession:
    """Session answering the Tabstack endpoints with deterministic content."""
    return MockSession(handler=_tabstack_handler)
