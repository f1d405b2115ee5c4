"""
HTTP client for the Tabstack extraction API.

Every public call returns either its payload or an ExtractionFailure; no
exception escapes the client. The credential is resolved once per call so a
key exported mid-session is picked up, and a missing key short-circuits
before the transport is touched.

The transport is any object with requests.Session-style get()/post()
methods. Tests and the CLI --mock flag pass tabstack.mock_api.MockSession.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import requests

from .config import BASE_URL, CONNECTION_TEST_TIMEOUT_MS, DEFAULT_TIMEOUT_MS
from .credentials import build_headers, check_api_key
from .error_handler import ExtractionFailure
from .terminal_utils import Symbols, echo, print_status

logger = logging.getLogger(__name__)

ExtractionResult = Dict[str, Any]
JsonOutcome = Union[ExtractionResult, ExtractionFailure]
MarkdownOutcome = Union[str, ExtractionFailure]


@dataclass(frozen=True)
class ExtractionRequest:
    """A URL plus the JSON schema the extracted object must follow."""

    url: str
    schema: Dict[str, Any] = field(hash=False)
    schema_path: Optional[str] = None


def load_schema(schema_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON schema file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON object
    """
    with open(schema_path, "r", encoding="utf-8") as f:
        schema = json.load(f)
    if not isinstance(schema, dict):
        raise ValueError(f"Schema file {schema_path} must contain a JSON object")
    return schema


def load_request(url: str, schema_path: Union[str, Path]) -> ExtractionRequest:
    return ExtractionRequest(
        url=url, schema=load_schema(schema_path), schema_path=str(schema_path)
    )


class ExtractionClient:
    """Thin wrapper over the /extract endpoints with response classification."""

    def __init__(
        self,
        api_key_resolver: Callable[[], Optional[str]] = check_api_key,
        session: Optional[Any] = None,
        base_url: str = BASE_URL,
    ) -> None:
        self._resolve_api_key = api_key_resolver
        self.session = session if session is not None else requests.Session()
        self.base_url = base_url.rstrip("/")

    def headers(self) -> Optional[Dict[str, str]]:
        return build_headers(self._resolve_api_key())

    def test_connection(self) -> bool:
        """Check that the API answers GET / with 200 using the configured key."""
        echo("Testing Tabstack API connection...")
        headers = self.headers()
        if headers is None:
            print_status(Symbols.FAILED, "No API key configured")
            return False

        try:
            response = self.session.get(
                f"{self.base_url}/",
                headers=headers,
                timeout=CONNECTION_TEST_TIMEOUT_MS / 1000,
            )
        except Exception as e:
            logger.debug(f"Connection test raised {type(e).__name__}: {e}")
            print_status(Symbols.FAILED, f"Connection error: {e}")
            return False

        if response.status_code == 200:
            print_status(Symbols.COMPLETE, "Tabstack API connection successful")
            return True
        logger.debug(f"Connection test returned HTTP {response.status_code}")
        print_status(Symbols.FAILED, "Tabstack API connection failed")
        return False

    def _post(
        self, path: str, payload: Dict[str, Any], timeout_ms: int
    ) -> Union[requests.Response, ExtractionFailure]:
        """POST to the API and classify everything except a 200 response."""
        headers = self.headers()
        if headers is None:
            print_status(Symbols.FAILED, "No API key configured")
            return ExtractionFailure.no_credential()

        url = f"{self.base_url}{path}"
        logger.debug(f"POST {url} (timeout {timeout_ms} ms)")
        try:
            response = self.session.post(
                url,
                headers=headers,
                data=json.dumps(payload),
                timeout=timeout_ms / 1000,
            )
        except requests.Timeout as e:
            print_status(Symbols.CLOCK, f"Request timeout: {e}")
            return ExtractionFailure.timeout(str(e))
        except Exception as e:
            # Boundary: connection errors, invalid URLs and transport bugs alike
            logger.debug(f"POST {url} raised {type(e).__name__}: {e}")
            echo(f"Error: {e}")
            return ExtractionFailure.unknown(str(e))

        if response.status_code == 200:
            return response

        if response.status_code == 408:
            message = (
                f"Timeout after {timeout_ms}ms - try simpler schema or increase timeout"
            )
            print_status(Symbols.CLOCK, message)
            return ExtractionFailure.timeout(message, status=408)

        echo(f"Error: {response.status_code} {response.text}")
        return ExtractionFailure.api_error(response.status_code, response.text)

    def extract_markdown(
        self, url: str, timeout_ms: int = DEFAULT_TIMEOUT_MS
    ) -> MarkdownOutcome:
        """Convert the page at `url` to markdown text."""
        echo(f"Extracting markdown from: {url}")
        outcome = self._post("/extract/markdown", {"url": url}, timeout_ms)
        if isinstance(outcome, ExtractionFailure):
            return outcome
        return outcome.text

    def extract_json(
        self,
        url: str,
        schema: Dict[str, Any],
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> JsonOutcome:
        """
        Extract a JSON object matching `schema` from the page at `url`.

        Args:
            url: Page to extract from
            schema: Parsed JSON schema sent as `json_schema`
            timeout_ms: Request timeout

        Returns:
            The parsed response object, or an ExtractionFailure
        """
        echo(f"Extracting JSON from: {url}")
        outcome = self._post(
            "/extract/json", {"url": url, "json_schema": schema}, timeout_ms
        )
        if isinstance(outcome, ExtractionFailure):
            return outcome

        try:
            data = outcome.json()
        except ValueError as e:
            echo(f"Error: invalid JSON in response: {e}")
            return ExtractionFailure.unknown(f"Invalid JSON in response: {e}")

        if not isinstance(data, dict):
            message = f"Expected a JSON object, got {type(data).__name__}"
            echo(f"Error: {message}")
            return ExtractionFailure.unknown(message)
        return data

    def extract_json_file(
        self,
        url: str,
        schema_path: Union[str, Path],
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> JsonOutcome:
        """Like extract_json(), loading the schema from a file first."""
        echo(f"Using schema: {schema_path}")
        try:
            request = load_request(url, schema_path)
        except (OSError, ValueError) as e:
            echo(f"Error: {e}")
            return ExtractionFailure.unknown(str(e))
        return self.extract_json(request.url, request.schema, timeout_ms=timeout_ms)
