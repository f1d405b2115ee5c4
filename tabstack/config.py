"""
Configuration Module for Tabstack tools.

Provides:
- Centralized constants for endpoints, timeouts, retries, cache and batch limits
- YAML/JSON configuration file support for the extraction CLI
- Default settings management with CLI override precedence
- URL validation helpers for batch input files

DESIGN NOTES:
- All magic numbers should be defined here as constants
- Durations are in milliseconds, matching the command-line options
- The API key is NOT part of TabstackConfig: it is resolved from the
  environment or the EDN credential file by tabstack.credentials

DO NOT:
- Scatter timeout/retry values throughout the codebase
- Store the API key in YAML configuration files
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Final, List, Tuple, Type
from urllib.parse import urlparse

import yaml

logger = logging.getLogger(__name__)


# =============================================================================
# CENTRALIZED CONSTANTS - Single source of truth for all configuration values
# =============================================================================

# --- Tabstack API ---
BASE_URL: Final[str] = "https://api.tabstack.ai/v1"
API_KEY_ENV_VAR: Final[str] = "TABSTACK_API_KEY"
# EDN map such as {:api-key "..."}, only read when the env var is unset
CONFIG_FILE_PATH: Final[Path] = Path.home() / ".config" / "tabstack" / "config.edn"
CONFIG_API_KEY_FIELD: Final[str] = "api-key"

# --- Network Timeouts (milliseconds) ---
DEFAULT_TIMEOUT_MS: Final[int] = 45000  # Single extraction request
CONNECTION_TEST_TIMEOUT_MS: Final[int] = 10000  # GET / for the `test` command

# --- Retry Configuration ---
# Fixed delay between attempts, not exponential
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_RETRY_DELAY_MS: Final[int] = 1000

# --- Result Cache ---
CACHE_DIR: Final[Path] = Path.home() / ".cache" / "tabstack"
CACHE_FILE_SUFFIX: Final[str] = ".json"
DEFAULT_CACHE_TTL_MS: Final[int] = 24 * 60 * 60 * 1000  # 24 hours

# --- Batch Processing ---
DEFAULT_CONCURRENCY: Final[int] = 3  # Max simultaneous outbound requests
DEFAULT_BATCH_SIZE: Final[int] = 10  # URLs per sub-batch
MAX_SAFE_CONCURRENCY: Final[int] = 10  # Warn if more workers requested

# --- SearXNG Search ---
SEARXNG_URL_ENV_VAR: Final[str] = "SEARXNG_URL"
DEFAULT_SEARXNG_URL: Final[str] = "http://localhost:8888"
RATE_LIMIT_FILE: Final[str] = ".searxng-last-request"
MIN_SEARCH_DELAY_MS: Final[int] = 1000  # Minimum gap between two searches
SEARCH_TIMEOUT_MS: Final[int] = 30000
SEARCH_CONNECT_TIMEOUT_MS: Final[int] = 5000
DEFAULT_NUM_RESULTS: Final[int] = 5
DEFAULT_LANGUAGE: Final[str] = "en"
SNIPPET_MAX_LENGTH: Final[int] = 200

# --- Logging ---
LOG_FORMAT: Final[str] = "%(asctime)s - %(levelname)s - %(message)s"
LOG_LEVELS: Final[frozenset[str]] = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)


@dataclass
class TabstackConfig:
    """
    Settings for the extraction CLI.

    Supports loading from YAML files, JSON files, or direct instantiation.
    """

    base_url: str = BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    # Retry settings
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    # Cache settings
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    cache_dir: str | None = None  # None means CACHE_DIR

    # Batch settings
    concurrency: int = DEFAULT_CONCURRENCY
    batch_size: int = DEFAULT_BATCH_SIZE

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self) -> None:
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be non-negative")
        if self.cache_ttl_ms <= 0:
            raise ValueError("cache_ttl_ms must be positive")
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.concurrency > MAX_SAFE_CONCURRENCY:
            logger.warning(
                f"concurrency={self.concurrency} is very high. "
                "This may cause rate limiting issues."
            )
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(LOG_LEVELS)}, got {self.log_level}"
            )

    @property
    def cache_path(self) -> Path | None:
        """Configured cache directory, or None for the default ~/.cache/tabstack."""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TabstackConfig":
        """Create config from dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {unknown}")
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "TabstackConfig":
        """
        Load a YAML settings file. An empty file gives the defaults.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the YAML is invalid or not a mapping
        """
        return cls.from_dict(_read_mapping(Path(path), "YAML"))

    @classmethod
    def from_json(cls, path: str | Path) -> "TabstackConfig":
        return cls.from_dict(_read_mapping(Path(path), "JSON"))

    def save_yaml(self, path: str | Path) -> None:
        Path(path).write_text(
            yaml.safe_dump(self.to_dict(), sort_keys=False), encoding="utf-8"
        )


# Parser and the exception it raises on bad input, by format
_PARSERS: Final[Dict[str, Tuple[Callable[[str], Any], Type[Exception]]]] = {
    "YAML": (yaml.safe_load, yaml.YAMLError),
    "JSON": (json.loads, json.JSONDecodeError),
}

_SUFFIX_FORMATS: Final[Dict[str, str]] = {
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
}


def _read_mapping(path: Path, fmt: str) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    parse, parse_error = _PARSERS[fmt]
    try:
        data = parse(path.read_text(encoding="utf-8"))
    except parse_error as e:
        raise ValueError(f"Invalid {fmt} in configuration file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a {fmt} mapping")
    return data


def load_config(
    config_path: str | Path | None = None,
    cli_overrides: Dict[str, Any] | None = None,
) -> TabstackConfig:
    """
    Build the effective settings: CLI overrides > config file > defaults.

    Overrides whose value is None are treated as not given.
    """
    settings: Dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        fmt = _SUFFIX_FORMATS.get(path.suffix.lower())
        if fmt is None:
            raise ValueError(
                f"Unsupported config file format: {path.suffix}. "
                "Use .yaml, .yml, or .json"
            )
        settings.update(_read_mapping(path, fmt))

    settings.update({k: v for k, v in (cli_overrides or {}).items() if v is not None})
    return TabstackConfig.from_dict(settings)


def generate_example_config(path: str | Path = "tabstack_config.yaml") -> None:
    """Write an example configuration file with comments."""
    example_yaml = f"""# Tabstack Configuration File
# ===========================
# All settings are optional - defaults will be used if not specified.
# The API key is NOT read from this file. Use the {API_KEY_ENV_VAR}
# environment variable or {CONFIG_FILE_PATH}.

# base_url: Tabstack API endpoint
base_url: {BASE_URL}

# timeout_ms: Per-request timeout in milliseconds
timeout_ms: {DEFAULT_TIMEOUT_MS}

# max_retries: Extra attempts made by json-retry after the first one
max_retries: {DEFAULT_MAX_RETRIES}

# retry_delay_ms: Fixed delay between attempts
retry_delay_ms: {DEFAULT_RETRY_DELAY_MS}

# cache_ttl_ms: Maximum age of a cached json-cache result
cache_ttl_ms: {DEFAULT_CACHE_TTL_MS}

# cache_dir: Where cached results are stored (null = ~/.cache/tabstack)
cache_dir: null

# concurrency: Maximum simultaneous requests in batch mode
concurrency: {DEFAULT_CONCURRENCY}

# batch_size: URLs per sub-batch in batch mode
batch_size: {DEFAULT_BATCH_SIZE}

# log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
log_level: WARNING
"""

    path = Path(path)
    path.write_text(example_yaml, encoding="utf-8")
    logger.info(f"Example configuration saved to: {path}")


def validate_url(url: str) -> bool:
    """True for an absolute http(s) URL with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_urls(urls: List[str]) -> List[str]:
    """Keep the valid URLs in order, logging each one dropped."""
    valid = []
    for url in urls:
        if validate_url(url):
            valid.append(url)
        else:
            logger.warning(f"Skipping invalid URL: {url}")
    return valid
