import re
from pathlib import Path
from typing import Iterable

from .errors import SetupError

_CHUNK = 32 * 1024


def describe_error(exc: BaseException) -> str:
    """
    Human-readable error text for the output's `error` column.

    Timeouts and some connector errors carry no message, so the exception
    type name alone is used for those.
    """
    msg = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {msg}" if msg else name


def count_lines(path: str | Path) -> int:
    """Count newline bytes in a file, used as the progress total."""
    count = 0
    try:
        with open(path, "rb") as fh:
            while chunk := fh.read(_CHUNK):
                count += chunk.count(b"\n")
    except OSError as e:
        raise SetupError("read URL source", describe_error(e)) from e
    return count


def load_ignore_patterns(path: str | Path) -> list[re.Pattern[str]]:
    """
    Compile ignore rules from a text file, one regular expression per line.

    Blank lines and lines starting with '#' are skipped.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise SetupError("read ignore rules", describe_error(e)) from e

    patterns = []
    for lineno, line in enumerate(raw.splitlines(), start=1):
        rule = line.strip()
        if not rule or rule.startswith("#"):
            continue
        try:
            patterns.append(re.compile(rule))
        except re.error as e:
            raise SetupError("read ignore rules", f"{path}:{lineno}: invalid pattern {rule!r} ({e})") from e
    return patterns


def is_ignored(url: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.search(url) for p in patterns)
