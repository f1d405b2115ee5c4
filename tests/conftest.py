"""
Pytest configuration for tabstack tests.

This conftest.py provides:
1. Environment isolation: no test sees a real TABSTACK_API_KEY, credential
   file, cache directory or SearXNG rate limit file
2. Mock transport fixtures so no test touches the network
3. Small file fixtures (schema, URL list)
"""

import json
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, List, Optional

import pytest

from tabstack.client import ExtractionClient
from tabstack.mock_api import MockResponse, MockSession

TEST_API_KEY = "test-key-123"


@pytest.fixture(autouse=True)  # type: ignore[misc]
def isolated_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Point every default path at tmp_path and drop real credentials."""
    monkeypatch.delenv("TABSTACK_API_KEY", raising=False)
    monkeypatch.delenv("SEARXNG_URL", raising=False)
    monkeypatch.setattr(
        "tabstack.credentials.CONFIG_FILE_PATH", tmp_path / "missing" / "config.edn"
    )
    monkeypatch.setattr("tabstack.cache.CACHE_DIR", tmp_path / "cache")
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture  # type: ignore[misc]
def schema_file(tmp_path: Path) -> Path:
    """A small JSON schema on disk."""
    path = tmp_path / "schema.json"
    path.write_text(
        json.dumps(
            {
                "type": "object",
                "properties": {"title": {"type": "string"}},
                "required": ["title"],
            }
        )
    )
    return path


@pytest.fixture  # type: ignore[misc]
def make_client() -> Callable[..., ExtractionClient]:
    """
    Factory for clients backed by a MockSession.

    Usage:
        client = make_client([MockResponse(200, {"title": "x"})])
        client = make_client(api_key=None)  # no credential
    """

    def _make(
        responses: Optional[List[Any]] = None,
        api_key: Optional[str] = TEST_API_KEY,
        handler: Any = None,
    ) -> ExtractionClient:
        session = MockSession(responses=responses, handler=handler)
        return ExtractionClient(
            api_key_resolver=lambda: api_key,
            session=session,
            base_url="https://api.test/v1",
        )

    return _make


@pytest.fixture  # type: ignore[misc]
def ok_response() -> MockResponse:
    return MockResponse(200, {"title": "x"})
