"""
Tests for terminal output helpers.
"""

from collections.abc import Generator

import pytest

from tabstack.terminal_utils import (
    Symbols,
    detect_emoji_support,
    echo,
    print_status,
    truncate_url,
)


@pytest.fixture(autouse=True)  # type: ignore[misc]
def restore_symbol_mode() -> Generator[None, None, None]:
    yield
    Symbols.set_ascii_mode(False)


class TestSymbols:
    def test_ascii_fallback(self) -> None:
        Symbols.set_ascii_mode(True)
        assert Symbols.get(Symbols.FAILED) == "[X!]"

    def test_dumb_terminal_uses_ascii(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TERM", "dumb")
        assert detect_emoji_support() is False
        assert Symbols.get(Symbols.COMPLETE) == "[OK]"

    def test_print_status_prefix(self, capsys) -> None:
        Symbols.set_ascii_mode(True)
        print_status(Symbols.RETRY, "Retry 1/3...")
        assert capsys.readouterr().out == "[~~] Retry 1/3...\n"


class TestEcho:
    def test_markup_is_not_interpreted(self, capsys) -> None:
        echo("[bold]literal[/bold] :smile:")
        assert capsys.readouterr().out == "[bold]literal[/bold] :smile:\n"

    def test_long_lines_are_not_wrapped(self, capsys) -> None:
        line = "x" * 300
        echo(line)
        assert capsys.readouterr().out == line + "\n"


class TestTruncateUrl:
    def test_short_url_unchanged(self) -> None:
        assert truncate_url("https://a.com/x") == "https://a.com/x"

    def test_long_url_keeps_both_ends(self) -> None:
        url = "https://example.com/" + "a" * 40 + "/" + "b" * 40 + "/end"
        result = truncate_url(url, max_length=60)
        assert len(result) == 60
        assert result.startswith("https://example.com/")
        assert result.endswith("/end")
        assert "..." in result

    @pytest.mark.parametrize("max_length", [40, 41])
    def test_exact_length(self, max_length: int) -> None:
        result = truncate_url("https://" + "d" * 80 + ".com/page", max_length)
        assert len(result) == max_length
        assert result.endswith(".com/page")
