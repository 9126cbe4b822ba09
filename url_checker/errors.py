"""
Exception hierarchy for url_checker.

Only setup-phase failures escape to the caller. Per-URL failures are
recorded on the Resource and never raised.
"""


class CheckerError(Exception):
    """Base exception for all url_checker errors."""


class SetupError(CheckerError):
    """Raised when a run cannot start: unreadable input, output or policy sources."""

    def __init__(self, what: str, detail: str):
        super().__init__(f"cannot {what}: {detail}")


class ChannelClosed(CheckerError):
    """Raised when sending into a closed channel."""
