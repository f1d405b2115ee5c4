"""
API key resolution for the Tabstack extraction client.

The key comes from the TABSTACK_API_KEY environment variable, falling back to
the `:api-key` field of ~/.config/tabstack/config.edn. A missing key is not an
error: resolve_api_key() returns None and callers skip the network call.

A missing config file is logged at DEBUG, a present but unreadable or
malformed one at WARNING. Both resolve to None.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Optional

import edn_format

from .config import API_KEY_ENV_VAR, CONFIG_API_KEY_FIELD, CONFIG_FILE_PATH
from .terminal_utils import Symbols, echo, print_status

logger = logging.getLogger(__name__)


def _read_config_key(config_path: Path) -> Optional[str]:
    if not config_path.exists():
        logger.debug(f"No credential file at {config_path}")
        return None

    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read credential file {config_path}: {e}")
        return None

    try:
        data = edn_format.loads(text)
    except Exception as e:
        # edn_format surfaces lexer and parser problems as several exception types
        logger.warning(f"Malformed credential file {config_path}: {e}")
        return None

    if not isinstance(data, Mapping):
        logger.warning(
            f"Credential file {config_path} must contain an EDN map, "
            f"got {type(data).__name__}"
        )
        return None

    value = data.get(edn_format.Keyword(CONFIG_API_KEY_FIELD))
    if not isinstance(value, str) or not value.strip():
        logger.warning(f"Credential file {config_path} has no :{CONFIG_API_KEY_FIELD}")
        return None
    return value.strip()


def resolve_api_key(
    environ: Optional[Mapping] = None,
    config_path: Optional[Path] = None,
) -> Optional[str]:
    """
    Determine the API key from the environment or the EDN config file.

    Args:
        environ: Environment mapping (defaults to os.environ)
        config_path: Credential file (defaults to ~/.config/tabstack/config.edn)

    Returns:
        The API key, or None when neither source provides one
    """
    env = os.environ if environ is None else environ
    env_key = env.get(API_KEY_ENV_VAR)
    if env_key and env_key.strip():
        logger.debug(f"Using API key from {API_KEY_ENV_VAR}")
        return env_key.strip()

    return _read_config_key(Path(config_path or CONFIG_FILE_PATH))


def check_api_key(
    environ: Optional[Mapping] = None,
    config_path: Optional[Path] = None,
) -> Optional[str]:
    """Resolve the API key, printing setup instructions when it is missing."""
    api_key = resolve_api_key(environ, config_path)
    if not api_key:
        print_status(Symbols.WARNING, f"Warning: {API_KEY_ENV_VAR} not configured")
        echo(f'Set it with: export {API_KEY_ENV_VAR}="your_api_key_here"')
        echo(
            f"Or create {CONFIG_FILE_PATH} with {{:{CONFIG_API_KEY_FIELD} \"...\"}}"
        )
    return api_key


def build_headers(api_key: Optional[str]) -> Optional[Dict[str, str]]:
    """Request headers for a Tabstack call, or None without a key."""
    if not api_key:
        return None
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
