"""
File-based cache for JSON extraction results.

Each entry is a JSON file {"timestamp": <epoch ms>, "data": <result>} named by
the SHA-256 digest of "<url>::<schema path>". An entry is trusted only while
now - timestamp < ttl. Expired entries are ignored and left on disk; a new
successful extraction overwrites them wholesale.

Writes go through a temp file and os.replace(), so a reader never sees a
partially written entry. Two writers for the same key race and the last one
wins, which is harmless since they store the same content.
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .client import ExtractionClient, ExtractionResult
from .config import (
    CACHE_DIR,
    CACHE_FILE_SUFFIX,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_TIMEOUT_MS,
)
from .error_handler import ExtractionFailure
from .terminal_utils import Symbols, print_status

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(url: str, schema_path: Union[str, Path]) -> str:
    return f"{url}::{schema_path}"


class ResultCache:
    """Read and write cache entries under a single directory."""

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else CACHE_DIR
        self._clock = clock

    def path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}{CACHE_FILE_SUFFIX}"

    def lookup(self, key: str, max_age_ms: int) -> Optional[ExtractionResult]:
        """
        Return the cached result for `key` if it is younger than max_age_ms.

        Missing, expired and unreadable entries all return None.
        """
        path = self.path_for(key)
        if not path.exists():
            logger.debug(f"Cache miss for {key}")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            timestamp = int(entry["timestamp"])
            data = entry["data"]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path}: {e}")
            return None

        age = self._clock() - timestamp
        if age >= max_age_ms:
            logger.debug(f"Cache entry for {key} expired ({age} ms >= {max_age_ms} ms)")
            return None
        return data

    def store(self, key: str, data: ExtractionResult) -> Path:
        """Write `data` for `key`, replacing any previous entry."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        entry: Dict[str, Any] = {"timestamp": self._clock(), "data": data}

        temp_fd, temp_path = tempfile.mkstemp(
            suffix=".tmp", prefix="entry_", dir=self.cache_dir
        )
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(entry, f)
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.debug(f"Cached result for {key} at {path}")
        return path


def extract_with_cache(
    client: ExtractionClient,
    url: str,
    schema_path: Union[str, Path],
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS,
    cache: Optional[ResultCache] = None,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> Optional[ExtractionResult]:
    """
    Extract JSON, serving a fresh cached result when one exists.

    A cache miss makes a single (non-retrying) request; only successful
    results are stored.
    """
    cache = cache or ResultCache()
    key = cache_key(url, schema_path)

    cached = cache.lookup(key, cache_ttl_ms)
    if cached is not None:
        print_status(Symbols.CACHE, "Using cached result")
        return cached

    outcome = client.extract_json_file(url, schema_path, timeout_ms=timeout_ms)
    if isinstance(outcome, ExtractionFailure):
        return None

    try:
        cache.store(key, outcome)
    except (OSError, TypeError, ValueError) as e:
        # The result is still good, only persisting it failed
        logger.warning(f"Could not write cache entry for {url}: {e}")
    return outcome
