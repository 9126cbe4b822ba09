from dataclasses import dataclass

ROBOTS_ALLOWED = "allowed"
ROBOTS_DISALLOWED = "disallowed"

STATUS_REDIRECT_LIMIT = "-1"
STATUS_NO_RESPONSE = "err"


@dataclass
class Resource:
    """
    Per-URL outcome, filled in by exactly one worker and then handed to the sink.

    Fields:
        url                : The URL as read from the input, never rewritten.
        status             : Final HTTP status code as text, "-1" when the
                             redirect limit was hit, empty when no response
                             was obtained (written out as "err").
        redirects_followed : Number of 301/302 hops traversed.
        final_url          : Last URL requested, only when a redirect happened.
        robots_status      : "allowed" / "disallowed", empty without a policy.
        error              : Failure description, or "bot-header" soft marker.
    """
    url: str
    status: str = ""
    redirects_followed: int = 0
    final_url: str = ""
    robots_status: str = ""
    error: str = ""

    def reset_probe_state(self) -> None:
        """Forget everything a previous probe attempt recorded."""
        self.status = ""
        self.redirects_followed = 0
        self.final_url = ""
        self.error = ""
