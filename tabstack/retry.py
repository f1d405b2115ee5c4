"""
Fixed-delay retry around ExtractionClient.extract_json().

The predicate decides which failures are worth another attempt. The default,
is_retryable(), stops early on permanent client errors (4xx other than 408
and 429) and on a missing API key. Pass retryable=always_retry to retry every
failure identically.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from .client import ExtractionClient, ExtractionResult
from .config import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY_MS, DEFAULT_TIMEOUT_MS
from .error_handler import ExtractionFailure, is_retryable
from .terminal_utils import Symbols, echo, print_status

logger = logging.getLogger(__name__)


def extract_with_retry(
    client: ExtractionClient,
    url: str,
    schema: Dict[str, Any],
    max_retries: int = DEFAULT_MAX_RETRIES,
    delay_ms: int = DEFAULT_RETRY_DELAY_MS,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    retryable: Callable[[ExtractionFailure], bool] = is_retryable,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[ExtractionResult]:
    """
    Extract JSON, retrying failed attempts after a fixed delay.

    At most max_retries + 1 requests are made.

    Returns:
        The extraction result, or None once retries are exhausted or the
        failure is not retryable
    """
    retries = 0
    while True:
        outcome = client.extract_json(url, schema, timeout_ms=timeout_ms)
        if not isinstance(outcome, ExtractionFailure):
            if retries:
                logger.info(f"Extraction of {url} succeeded after {retries} retries")
            return outcome

        logger.debug(f"Attempt {retries + 1} for {url} failed: {outcome.kind.name}")

        if not retryable(outcome):
            print_status(
                Symbols.FAILED, f"Not retrying permanent failure: {outcome.describe()}"
            )
            return None

        if retries >= max_retries:
            echo("Max retries reached")
            return None

        retries += 1
        print_status(Symbols.RETRY, f"Retry {retries}/{max_retries}...")
        sleep(delay_ms / 1000)
