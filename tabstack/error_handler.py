"""
Centralized failure classification for Tabstack tools.

Provides:
- FailureKind enum for classifying extraction failures
- ExtractionFailure tagged value returned by the extraction client
- is_retryable() / always_retry() retry predicates
- BatchErrorTracker for aggregating failures across batch tasks
- SearchError exception raised by the SearXNG client

DESIGN NOTES:
- The extraction client never raises across its boundary; every failure is
  returned as an ExtractionFailure so callers can branch on its kind
- BatchErrorTracker is thread-safe for use from batch worker threads
- Stored events are bounded (max_events) to keep memory flat on large batches

DO NOT:
- Remove the tracker lock - batch workers record failures concurrently
- Hardcode kind checks elsewhere - use is_retryable() or the tables below
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Dict, Final, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS: Final[int] = 1000

# 4xx statuses that are still worth another attempt
RETRYABLE_CLIENT_STATUSES: Final[frozenset[int]] = frozenset({408, 429})


class FailureKind(Enum):
    """Classification of a failed extraction call."""

    NO_CREDENTIAL = auto()  # No API key configured - no request was sent
    TIMEOUT = auto()  # Request deadline exceeded or server returned 408
    API_ERROR = auto()  # Any other non-200 response
    UNKNOWN = auto()  # Unexpected exception (bad JSON, I/O failure, ...)


FAILURE_DESCRIPTIONS: Final[Dict[FailureKind, str]] = {
    FailureKind.NO_CREDENTIAL: "No API key configured",
    FailureKind.TIMEOUT: "Request timed out",
    FailureKind.API_ERROR: "Tabstack API returned an error",
    FailureKind.UNKNOWN: "Unexpected error",
}


@dataclass(frozen=True)
class ExtractionFailure:
    """
    Tagged failure value returned by ExtractionClient.

    `status` and `body` are only set for API_ERROR (and for a 408 TIMEOUT).
    """

    kind: FailureKind
    message: str = ""
    status: Optional[int] = None
    body: Optional[str] = None

    @classmethod
    def no_credential(cls) -> "ExtractionFailure":
        return cls(FailureKind.NO_CREDENTIAL, "No API key configured")

    @classmethod
    def timeout(cls, message: str, status: Optional[int] = None) -> "ExtractionFailure":
        return cls(FailureKind.TIMEOUT, message, status=status)

    @classmethod
    def api_error(cls, status: int, body: str) -> "ExtractionFailure":
        return cls(FailureKind.API_ERROR, f"HTTP {status}", status=status, body=body)

    @classmethod
    def unknown(cls, message: str) -> "ExtractionFailure":
        return cls(FailureKind.UNKNOWN, message)

    def describe(self) -> str:
        """One-line description suitable for printing."""
        if self.kind == FailureKind.API_ERROR:
            return f"Error: {self.status} {self.body or ''}".rstrip()
        base = get_failure_description(self.kind)
        if self.message and self.message != base:
            return f"{base}: {self.message}"
        return base


def get_failure_description(kind: FailureKind) -> str:
    return FAILURE_DESCRIPTIONS.get(kind, "Unknown error")


def is_retryable(failure: ExtractionFailure) -> bool:
    """
    Default retry predicate.

    Timeouts and unexpected errors are retried. API errors are retried unless
    they are client errors (4xx) other than 408 and 429, which will not change
    on a second attempt. A missing credential is never retried.
    """
    if failure.kind == FailureKind.NO_CREDENTIAL:
        return False
    if failure.kind == FailureKind.API_ERROR and failure.status is not None:
        if 400 <= failure.status < 500:
            return failure.status in RETRYABLE_CLIENT_STATUSES
    return True


def always_retry(failure: ExtractionFailure) -> bool:  # noqa: ARG001
    """Retry every failure kind identically (the original policy)."""
    return True


@dataclass
class FailureEvent:
    """Single failed URL in a batch."""

    url: str
    failure: ExtractionFailure
    timestamp: datetime = field(default_factory=datetime.now)


class BatchErrorTracker:
    """
    Tracks failures across a batch run for summary reporting.

    Thread-safe for use from ThreadPoolExecutor workers.
    """

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._max_events = max_events
        self._events: List[FailureEvent] = []
        self._counts: Dict[FailureKind, int] = {}
        self._success_count = 0
        self._lock = threading.Lock()

    def record_failure(self, url: str, failure: ExtractionFailure) -> None:
        with self._lock:
            self._counts[failure.kind] = self._counts.get(failure.kind, 0) + 1
            if len(self._events) >= self._max_events:
                # Drop oldest event (FIFO); counts stay exact
                self._events.pop(0)
            self._events.append(FailureEvent(url=url, failure=failure))
        logger.debug(f"Failure recorded: {failure.kind.name} for {url}")

    def record_success(self) -> None:
        with self._lock:
            self._success_count += 1

    def get_summary(self) -> Dict[FailureKind, int]:
        """Count of failures by kind (a copy)."""
        with self._lock:
            return dict(self._counts)

    def failed_urls(self) -> List[str]:
        with self._lock:
            return [e.url for e in self._events]

    @property
    def total_failures(self) -> int:
        with self._lock:
            return sum(self._counts.values())

    @property
    def success_count(self) -> int:
        with self._lock:
            return self._success_count

    def summary_line(self) -> str:
        """E.g. '7 succeeded, 3 failed (TIMEOUT: 2, API_ERROR: 1)'."""
        summary = self.get_summary()
        failed = sum(summary.values())
        line = f"{self.success_count} succeeded, {failed} failed"
        if summary:
            parts = ", ".join(
                f"{kind.name}: {count}"
                for kind, count in sorted(summary.items(), key=lambda kv: kv[0].value)
            )
            line += f" ({parts})"
        return line


class SearchError(Exception):
    """
    Raised by the SearXNG client for any failed search.

    The message is user-facing; the search CLI prints it and exits with 1.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
