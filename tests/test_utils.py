import asyncio
from pathlib import Path

import pytest

from url_checker.errors import SetupError
from url_checker.utils import count_lines, describe_error, is_ignored, load_ignore_patterns


def test_count_lines(tmp_path: Path):
    path = tmp_path / "urls.txt"
    path.write_text("https://a/\nhttps://b/\nhttps://c/\n", encoding="utf-8")

    assert count_lines(path) == 3


def test_count_lines_missing_file(tmp_path: Path):
    with pytest.raises(SetupError):
        count_lines(tmp_path / "missing.txt")


def test_load_ignore_patterns_skips_comments_and_blanks(tmp_path: Path):
    path = tmp_path / "ignore.txt"
    path.write_text("# session links\n\n/logout\n\\.pdf$\n", encoding="utf-8")

    patterns = load_ignore_patterns(path)

    assert [p.pattern for p in patterns] == ["/logout", r"\.pdf$"]
    assert is_ignored("https://example.com/logout?next=/", patterns)
    assert is_ignored("https://example.com/files/report.pdf", patterns)
    assert not is_ignored("https://example.com/files/report.pdf.html", patterns)


def test_invalid_ignore_pattern_is_fatal(tmp_path: Path):
    path = tmp_path / "ignore.txt"
    path.write_text("ok\n([unclosed\n", encoding="utf-8")

    with pytest.raises(SetupError, match=":2:"):
        load_ignore_patterns(path)


def test_nothing_ignored_without_patterns():
    assert not is_ignored("https://example.com/", [])


def test_describe_error():
    assert describe_error(ValueError("bad url")) == "ValueError: bad url"
    assert describe_error(asyncio.TimeoutError()) == "TimeoutError"
