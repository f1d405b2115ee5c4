"""
SearXNG web search client.

Provides:
- RateLimiter: keeps at least MIN_SEARCH_DELAY_MS between two searches, across
  processes, by storing the last request time in a small state file
- search(): one JSON query against {SEARXNG_URL}/search
- parse_options(): the CLI's optional JSON options argument
- format_result() / format_results(): ranked plain-text output

Every failure is raised as SearchError with a user-facing message; the CLI
prints it and exits with status 1.
"""

import json
import logging
import os
import re
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .config import (
    DEFAULT_LANGUAGE,
    DEFAULT_NUM_RESULTS,
    DEFAULT_SEARXNG_URL,
    MIN_SEARCH_DELAY_MS,
    RATE_LIMIT_FILE,
    SEARCH_CONNECT_TIMEOUT_MS,
    SEARCH_TIMEOUT_MS,
    SEARXNG_URL_ENV_VAR,
    SNIPPET_MAX_LENGTH,
)
from .error_handler import SearchError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def get_searxng_url(environ: Optional[Mapping] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get(SEARXNG_URL_ENV_VAR) or DEFAULT_SEARXNG_URL


class RateLimiter:
    """
    Minimum delay between searches, shared through a state file.

    The file holds the epoch-millisecond time of the last successful request.
    """

    def __init__(
        self,
        state_file: str | Path = RATE_LIMIT_FILE,
        min_delay_ms: int = MIN_SEARCH_DELAY_MS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.state_file = Path(state_file)
        self.min_delay_ms = min_delay_ms
        self._clock = clock
        self._sleep = sleep

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def last_request_ms(self) -> Optional[int]:
        if not self.state_file.exists():
            return None
        try:
            return int(self.state_file.read_text(encoding="utf-8").strip())
        except (OSError, ValueError) as e:
            logger.debug(f"Ignoring unreadable rate limit file {self.state_file}: {e}")
            return None

    def wait(self) -> float:
        """
        Sleep until min_delay_ms has passed since the last request.

        Returns:
            Seconds slept (0.0 if no wait was needed)
        """
        last = self.last_request_ms()
        if last is None:
            return 0.0
        elapsed = self._now_ms() - last
        if elapsed >= self.min_delay_ms:
            return 0.0
        delay = (self.min_delay_ms - elapsed) / 1000
        logger.debug(f"Rate limited: sleeping {delay:.3f}s")
        self._sleep(delay)
        return delay

    def record(self) -> None:
        try:
            self.state_file.write_text(str(self._now_ms()), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not update rate limit file {self.state_file}: {e}")


def _http_error(status: int, reason: str) -> SearchError:
    if status == 429:
        return SearchError("Rate limited by SearXNG. Please wait a moment.", status)
    if status == 404:
        return SearchError("SearXNG endpoint not found. Check SEARXNG_URL.", status)
    if status >= 500:
        return SearchError(f"SearXNG server error ({status})", status)
    return SearchError(f"HTTP {status} - {reason}", status)


def search(
    query: str,
    options: Optional[Dict[str, Any]] = None,
    base_url: Optional[str] = None,
    session: Optional[Any] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> Dict[str, Any]:
    """
    Run one search and return the decoded SearXNG JSON response.

    Args:
        query: Search terms
        options: Extra SearXNG parameters (category, language, ...)
        base_url: Instance URL (defaults to SEARXNG_URL or localhost:8888)
        session: requests.Session-like transport
        rate_limiter: Limiter consulted before and updated after the request

    Raises:
        SearchError: On any HTTP, network or decoding failure
    """
    base_url = (base_url or get_searxng_url()).rstrip("/")
    session = session if session is not None else requests.Session()
    rate_limiter = rate_limiter or RateLimiter()
    params = {"q": query, "format": "json", **(options or {})}
    url = f"{base_url}/search"

    rate_limiter.wait()
    logger.debug(f"GET {url} params={params}")
    try:
        response = session.get(
            url,
            params=params,
            timeout=(SEARCH_CONNECT_TIMEOUT_MS / 1000, SEARCH_TIMEOUT_MS / 1000),
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else 0
        reason = e.response.reason if e.response is not None else str(e)
        raise _http_error(status, reason) from e
    except requests.Timeout as e:
        raise SearchError(
            f"Connection timeout. Is SearXNG running?\nTried to connect to: {base_url}"
        ) from e
    except requests.ConnectionError as e:
        raise SearchError(
            "Cannot connect to SearXNG.\n"
            f"Tried to connect to: {base_url}\n"
            "Check that SearXNG is running and SEARXNG_URL is correct."
        ) from e
    except requests.RequestException as e:
        raise SearchError(str(e)) from e

    rate_limiter.record()
    try:
        data = response.json()
    except ValueError as e:
        raise SearchError(f"Invalid JSON from SearXNG: {e}") from e
    if not isinstance(data, dict):
        raise SearchError("Unexpected response from SearXNG")
    return data


def parse_options(options_json: Optional[str]) -> Tuple[int, Dict[str, Any]]:
    """
    Split the CLI options JSON into (num_results, search params).

    `num_results` is removed from the params (default 5, must be a
    non-negative integer) and `language` defaults to "en".
    """
    options: Dict[str, Any] = {}
    if options_json:
        try:
            options = json.loads(options_json)
        except ValueError as e:
            raise SearchError("Invalid JSON options") from e
        if not isinstance(options, dict):
            raise SearchError("Invalid JSON options")

    params = dict(options)
    num_results = params.pop("num_results", None)
    if num_results is None:
        num_results = DEFAULT_NUM_RESULTS
    elif (
        isinstance(num_results, bool)
        or not isinstance(num_results, int)
        or num_results < 0
    ):
        raise SearchError("Invalid JSON options")
    if not params.get("language"):
        params["language"] = DEFAULT_LANGUAGE
    return num_results, params


def format_result(idx: int, result: Dict[str, Any]) -> str:
    """Render one result; `idx` is zero-based."""
    score = result.get("score")
    score_str = f"{score:.2f}" if isinstance(score, (int, float)) else "N/A"
    engines_str = ", ".join(result.get("engines") or [])
    content = _WHITESPACE_RE.sub(" ", result.get("content") or "").strip()

    lines = [
        "",
        f"{idx + 1}. {result.get('title') or ''} [Score: {score_str}]",
        f"   URL: {result.get('url') or ''}",
    ]
    snippet = content[:SNIPPET_MAX_LENGTH]
    if len(content) > SNIPPET_MAX_LENGTH:
        snippet += "..."
    lines.append(f"   {snippet}")
    text = "\n".join(lines) + "\n"
    if engines_str:
        text += f"   Engines: {engines_str}\n"
    return text


def format_results(data: Dict[str, Any], num_results: int) -> str:
    """Top `num_results` results by score, highest first."""
    results: List[Dict[str, Any]] = data.get("results") or []
    ranked = sorted(results, key=lambda r: r.get("score") or 0, reverse=True)
    ranked = ranked[:num_results]
    query = data.get("query")

    if not ranked:
        return f'No results found for: "{query}"'
    header = (
        f'Search Results for "{query}"\n'
        f"Found {data.get('number_of_results')} total results\n"
    )
    return header + "".join(format_result(i, r) for i, r in enumerate(ranked))
