"""
End-to-end tests for the tabstack and tabstack-search command lines.

Extraction commands run against the --mock transport; search is patched.
"""

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from tabstack import cli
from tabstack.error_handler import SearchError


@pytest.fixture(autouse=True)  # type: ignore[misc]
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep run() from reconfiguring the root logger under pytest."""
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


@pytest.fixture  # type: ignore[misc]
def urls_file(tmp_path: Path) -> Path:
    path = tmp_path / "urls.txt"
    path.write_text("https://a.com\nnot-a-url\n\nhttps://b.com\n")
    return path


def _json_output(out: str) -> Any:
    """Parse the JSON document printed after the progress lines."""
    start = min(i for i in (out.find("{"), out.find("[")) if i != -1)
    return json.loads(out[start:])


class TestExtractCli:
    def test_no_command_prints_help(self, capsys) -> None:
        assert cli.run([]) == 0
        assert "usage: tabstack" in capsys.readouterr().out

    def test_unknown_command_is_usage_error(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.run(["frobnicate"])
        assert exc_info.value.code == 2

    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit):
            cli.run(["--version"])
        assert "tabstack version" in capsys.readouterr().out

    def test_mock_json(self, schema_file: Path, capsys) -> None:
        assert cli.run(["--mock", "json", "https://example.com", str(schema_file)]) == 0
        data = _json_output(capsys.readouterr().out.split("Extracting JSON from:")[1])
        assert set(data) == {"title"}

    def test_mock_markdown(self, capsys) -> None:
        assert cli.run(["--mock", "markdown", "https://example.com"]) == 0
        assert "Content of https://example.com" in capsys.readouterr().out

    def test_mock_test_command(self) -> None:
        assert cli.run(["--mock", "test"]) == 0

    def test_missing_key_exits_nonzero(self, schema_file: Path, capsys) -> None:
        assert cli.run(["json", "https://example.com", str(schema_file)]) == 1
        out = capsys.readouterr().out
        assert "TABSTACK_API_KEY not configured" in out

    def test_missing_key_test_command(self) -> None:
        assert cli.run(["test"]) == 1

    def test_missing_schema_file(self, tmp_path: Path) -> None:
        assert cli.run(["--mock", "json-retry", "https://a.com", str(tmp_path / "x.json")]) == 1

    def test_mock_json_retry(self, schema_file: Path) -> None:
        argv = ["--mock", "json-retry", "https://a.com", str(schema_file), "--delay-ms", "0"]
        assert cli.run(argv) == 0

    def test_mock_json_cache_writes_entry(self, schema_file: Path, tmp_path: Path) -> None:
        argv = ["--mock", "json-cache", "https://a.com", str(schema_file)]
        assert cli.run(argv) == 0
        assert cli.run(argv) == 0
        assert len(list((tmp_path / "cache").glob("*.json"))) == 1

    def test_mock_batch(self, urls_file: Path, schema_file: Path, capsys) -> None:
        argv = ["--mock", "batch", str(urls_file), str(schema_file), "--concurrency", "2"]
        assert cli.run(argv) == 0
        out = capsys.readouterr().out
        results = _json_output(out[out.index("[") :])
        assert [r["source_url"] for r in results] == ["https://a.com", "https://b.com"]

    def test_batch_with_only_invalid_urls_fails(
        self, tmp_path: Path, schema_file: Path, capsys
    ) -> None:
        urls = tmp_path / "bad-urls.txt"
        urls.write_text("example.com\nfoo\n")
        assert cli.run(["--mock", "batch", str(urls), str(schema_file)]) == 1
        assert _json_output(capsys.readouterr().out) == []

    def test_batch_with_empty_file_succeeds(self, tmp_path: Path, schema_file: Path) -> None:
        urls = tmp_path / "empty.txt"
        urls.write_text("\n\n")
        assert cli.run(["--mock", "batch", str(urls), str(schema_file)]) == 0

    def test_batch_without_key_fails(self, urls_file: Path, schema_file: Path) -> None:
        assert cli.run(["batch", str(urls_file), str(schema_file)]) == 1

    def test_invalid_config_file(self, tmp_path: Path, capsys) -> None:
        config = tmp_path / "bad.yaml"
        config.write_text("concurrency: 0\n")
        assert cli.run(["-c", str(config), "--mock", "test"]) == 1
        assert "concurrency must be at least 1" in capsys.readouterr().out

    def test_generate_config(self, tmp_path: Path) -> None:
        assert cli.run(["--generate-config"]) == 0
        assert (tmp_path / "tabstack_config.yaml").exists()


class TestSearchCli:
    def test_no_arguments(self, capsys) -> None:
        assert cli.run_search([]) == 1
        assert "Usage:" in capsys.readouterr().out

    def test_prints_ranked_results(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        seen: Dict[str, Any] = {}

        def fake_search(query: str, params: Dict[str, Any]) -> Dict[str, Any]:
            seen.update(query=query, params=params)
            return {
                "query": query,
                "number_of_results": 2,
                "results": [
                    {"title": "B", "url": "https://b", "score": 1.0},
                    {"title": "A", "url": "https://a", "score": 2.0},
                ],
            }

        monkeypatch.setattr(cli, "search", fake_search)
        assert cli.run_search(["nixos", '{"num_results": 1, "categories": "it"}']) == 0

        out = capsys.readouterr().out
        assert seen == {
            "query": "nixos",
            "params": {"categories": "it", "language": "en"},
        }
        assert "1. A [Score: 2.00]" in out
        assert "B" not in out.split("Found 2 total results")[1]

    def test_search_error_exits_nonzero(
        self, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        def failing(query: str, params: Dict[str, Any]) -> Dict[str, Any]:
            raise SearchError("Rate limited by SearXNG. Please wait a moment.", 429)

        monkeypatch.setattr(cli, "search", failing)
        assert cli.run_search(["q"]) == 1
        assert "Error: Rate limited by SearXNG" in capsys.readouterr().out

    @pytest.mark.parametrize("options", ["{bad", '{"num_results": "ten"}'])
    def test_invalid_options(self, options: str, capsys) -> None:
        assert cli.run_search(["q", options]) == 1
        assert "Error: Invalid JSON options" in capsys.readouterr().out
