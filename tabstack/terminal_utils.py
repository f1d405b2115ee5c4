"""
Terminal output helpers shared by the extraction and search tools.

Provides:
- A shared Rich console for user-facing progress and diagnostics
- Status symbols with ASCII fallbacks for terminals without emoji
- Middle elision of long URLs for batch progress lines
"""

import locale
import logging
import os
import sys
from typing import Any, Final, Tuple

from rich.console import Console

logger = logging.getLogger(__name__)

URL_TRUNCATE_MAX_LENGTH: Final[int] = 60

# highlight=False keeps Rich from colouring numbers and URLs in plain messages
console = Console(highlight=False)


class Symbols:
    """
    Terminal symbols with ASCII fallbacks.

    Use Symbols.get() to get the appropriate symbol based on terminal capabilities.
    """

    COMPLETE = ("✅", "[OK]")
    FAILED = ("❌", "[X!]")
    WARNING = ("⚠️ ", "[!]")
    CLOCK = ("⏱️ ", "[T]")
    RETRY = ("🔄", "[~~]")
    CACHE = ("📦", "[C]")

    _use_ascii: bool = False

    @classmethod
    def set_ascii_mode(cls, use_ascii: bool) -> None:
        """Set whether to use ASCII fallbacks"""
        cls._use_ascii = use_ascii

    @classmethod
    def get(cls, symbol_tuple: Tuple[str, str]) -> str:
        """Get the appropriate symbol based on current mode"""
        return symbol_tuple[1] if cls._use_ascii else symbol_tuple[0]


def detect_emoji_support() -> bool:
    """
    Check if the terminal likely supports emoji and configure Symbols.

    This is heuristic-based since there's no reliable detection method.
    """
    supported = _check_unicode_support()
    if supported and (os.environ.get("SSH_CLIENT") or os.environ.get("SSH_TTY")):
        # SSH sessions may not render emoji well
        supported = False
    if os.environ.get("TERM", "").lower() == "dumb":
        supported = False

    Symbols.set_ascii_mode(not supported)
    logger.debug(f"Terminal emoji support: {supported}")
    return supported


def _check_unicode_support() -> bool:
    try:
        if "utf" in locale.getpreferredencoding(False).lower():
            return True
    except (ValueError, LookupError) as e:
        logger.debug(f"Could not get preferred encoding: {e}")

    if "utf" in os.environ.get("LANG", "").lower():
        return True

    encoding = getattr(sys.stdout, "encoding", None)
    return bool(encoding and "utf" in encoding.lower())


def echo(message: str = "", **kwargs: Any) -> None:
    """Print plain text: no Rich markup, emoji codes or line wrapping."""
    kwargs.setdefault("markup", False)
    kwargs.setdefault("soft_wrap", True)
    kwargs.setdefault("emoji", False)
    console.print(message, **kwargs)


def print_status(symbol: Tuple[str, str], message: str, **kwargs: Any) -> None:
    """Print a message prefixed with a status symbol."""
    echo(f"{Symbols.get(symbol)} {message}", **kwargs)


def truncate_url(url: str, max_length: int = URL_TRUNCATE_MAX_LENGTH) -> str:
    """Shorten `url` to max_length by replacing its middle with '...'."""
    if len(url) <= max_length:
        return url
    keep = max(max_length - 3, 2)
    tail = keep // 2
    return f"{url[: keep - tail]}...{url[-tail:]}"
