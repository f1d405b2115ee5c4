"""
Batch extraction over a list of URLs sharing one schema.

URLs are split into consecutive sub-batches of `batch_size`. Each sub-batch
runs on a thread pool of `concurrency` workers, so at most `concurrency`
requests are in flight regardless of the sub-batch size. Sub-batches run one
after another. Output follows input order; failed URLs are dropped and every
result carries the URL it came from in `source_url`.
"""

import concurrent.futures
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, TypeVar, Union

from .client import ExtractionClient, ExtractionResult
from .config import DEFAULT_BATCH_SIZE, DEFAULT_CONCURRENCY, DEFAULT_TIMEOUT_MS
from .error_handler import BatchErrorTracker, ExtractionFailure
from .terminal_utils import Symbols, print_status, truncate_url

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive groups of `size` items; the last may be shorter."""
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def read_urls_file(path: Union[str, Path]) -> List[str]:
    """One URL per line; blank lines and surrounding whitespace are ignored."""
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def batch_extract(
    client: ExtractionClient,
    urls: Sequence[str],
    schema: Dict[str, Any],
    concurrency: int = DEFAULT_CONCURRENCY,
    batch_size: int = DEFAULT_BATCH_SIZE,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    tracker: Optional[BatchErrorTracker] = None,
) -> List[ExtractionResult]:
    """
    Extract JSON from every URL, `concurrency` requests at a time.

    Args:
        client: Extraction client shared by all workers
        urls: URLs to process, in output order
        schema: Parsed JSON schema used for every URL
        concurrency: Maximum simultaneous requests
        batch_size: URLs per sub-batch
        timeout_ms: Per-request timeout
        tracker: Optional failure tracker (a fresh one is used otherwise)

    Returns:
        Successful results decorated with `source_url`
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    tracker = tracker if tracker is not None else BatchErrorTracker()

    batches = list(chunked(urls, batch_size))
    logger.info(
        f"Batch extraction: {len(urls)} URLs in {len(batches)} sub-batches "
        f"(batch_size={batch_size}, concurrency={concurrency})"
    )

    results: List[ExtractionResult] = []
    for batch_no, batch in enumerate(batches, start=1):
        logger.debug(f"Sub-batch {batch_no}/{len(batches)}: {len(batch)} URLs")
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(concurrency, len(batch))
        ) as executor:
            # map() yields in submission order, keeping output in input order
            outcomes = list(
                executor.map(
                    lambda url: client.extract_json(url, schema, timeout_ms=timeout_ms),
                    batch,
                )
            )

        for url, outcome in zip(batch, outcomes):
            if isinstance(outcome, ExtractionFailure):
                tracker.record_failure(url, outcome)
                print_status(
                    Symbols.FAILED, f"{truncate_url(url)}: {outcome.describe()}"
                )
                continue
            tracker.record_success()
            results.append({**outcome, "source_url": url})

    logger.info(f"Batch extraction finished: {tracker.summary_line()}")
    return results
