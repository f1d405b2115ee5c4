"""
Tests for the file-based result cache.
"""

import hashlib
import json
from pathlib import Path

import pytest

from tabstack.cache import ResultCache, cache_key, extract_with_cache
from tabstack.mock_api import MockResponse


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path: Path, clock: FakeClock) -> ResultCache:
    return ResultCache(tmp_path / "entries", clock=clock)


class TestResultCache:
    def test_store_then_lookup(self, cache: ResultCache) -> None:
        cache.store("k", {"title": "x"})
        assert cache.lookup("k", 1000) == {"title": "x"}

    def test_missing_entry(self, cache: ResultCache) -> None:
        assert cache.lookup("absent", 1000) is None

    def test_entry_file_named_by_sha256(self, cache: ResultCache) -> None:
        path = cache.store("https://a::schema.json", {"a": 1})
        digest = hashlib.sha256(b"https://a::schema.json").hexdigest()
        assert path.name == f"{digest}.json"
        entry = json.loads(path.read_text())
        assert entry == {"timestamp": 1_000_000, "data": {"a": 1}}

    def test_expiry_boundary(self, cache: ResultCache, clock: FakeClock) -> None:
        path = cache.store("k", {"a": 1})
        clock.now += 999
        assert cache.lookup("k", 1000) == {"a": 1}
        clock.now += 1  # age == ttl
        assert cache.lookup("k", 1000) is None
        assert path.exists()  # expired entries stay on disk

    def test_store_overwrites(self, cache: ResultCache, clock: FakeClock) -> None:
        cache.store("k", {"v": 1})
        clock.now += 5000
        cache.store("k", {"v": 2})
        assert cache.lookup("k", 1000) == {"v": 2}

    def test_no_temp_files_left(self, cache: ResultCache) -> None:
        cache.store("k", {"a": 1})
        assert [p.suffix for p in cache.cache_dir.iterdir()] == [".json"]

    @pytest.mark.parametrize("content", ["{broken", "[]", '{"data": 1}'])
    def test_unreadable_entry_is_miss(self, cache: ResultCache, content: str, caplog) -> None:
        path = cache.path_for("k")
        path.parent.mkdir(parents=True)
        path.write_text(content)
        assert cache.lookup("k", 1000) is None
        assert "unreadable cache entry" in caplog.text

    def test_default_directory(self, tmp_path: Path) -> None:
        """conftest redirects the default cache directory into tmp_path."""
        assert ResultCache().cache_dir == tmp_path / "cache"


class TestExtractWithCache:
    def test_miss_then_hit(self, make_client, cache: ResultCache, schema_file: Path, capsys) -> None:
        client = make_client([MockResponse(200, {"title": "x"})])

        first = extract_with_cache(client, "https://a", schema_file, 60000, cache=cache)
        second = extract_with_cache(client, "https://a", schema_file, 60000, cache=cache)

        assert first == second == {"title": "x"}
        assert client.session.call_count == 1
        assert "Using cached result" in capsys.readouterr().out

    def test_expired_entry_refetches(
        self, make_client, cache: ResultCache, clock: FakeClock, schema_file: Path
    ) -> None:
        client = make_client(
            [MockResponse(200, {"v": 1}), MockResponse(200, {"v": 2})]
        )
        extract_with_cache(client, "https://a", schema_file, 1000, cache=cache)
        clock.now += 1000
        assert extract_with_cache(client, "https://a", schema_file, 1000, cache=cache) == {
            "v": 2
        }
        assert client.session.call_count == 2

    def test_key_includes_schema_path(
        self, make_client, cache: ResultCache, schema_file: Path, tmp_path: Path
    ) -> None:
        other = tmp_path / "other.json"
        other.write_text(schema_file.read_text())
        client = make_client()

        extract_with_cache(client, "https://a", schema_file, 60000, cache=cache)
        extract_with_cache(client, "https://a", other, 60000, cache=cache)

        assert client.session.call_count == 2
        assert cache.path_for(cache_key("https://a", other)).exists()

    def test_failures_are_not_cached(
        self, make_client, cache: ResultCache, schema_file: Path
    ) -> None:
        client = make_client([MockResponse(500, "down"), MockResponse(200, {"a": 1})])

        assert extract_with_cache(client, "https://a", schema_file, 60000, cache=cache) is None
        assert not cache.path_for(cache_key("https://a", schema_file)).exists()
        assert extract_with_cache(client, "https://a", schema_file, 60000, cache=cache) == {
            "a": 1
        }

    def test_no_retry_on_miss(self, make_client, cache: ResultCache, schema_file: Path) -> None:
        client = make_client(handler=lambda *_: MockResponse(503, ""))
        assert extract_with_cache(client, "https://a", schema_file, 60000, cache=cache) is None
        assert client.session.call_count == 1

    def test_store_failure_still_returns_result(
        self, make_client, schema_file: Path, tmp_path: Path, caplog
    ) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        cache = ResultCache(blocker)
        client = make_client([MockResponse(200, {"a": 1})])

        assert extract_with_cache(client, "https://a", schema_file, 60000, cache=cache) == {
            "a": 1
        }
        assert "Could not write cache entry" in caplog.text
