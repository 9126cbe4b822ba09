import csv
import logging
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import pandas as pd

from .channel import Channel
from .resource import Resource, STATUS_NO_RESPONSE

if TYPE_CHECKING:
    from .pipeline import OutstandingTasks

logger = logging.getLogger(__name__)

CSV_HEADER = ["url", "status", "redirects number", "final URL", "allowed by robots.txt", "error"]


def resource_row(r: Resource) -> list[str]:
    """Flatten a Resource into CSV fields, in CSV_HEADER order."""
    status = r.status or STATUS_NO_RESPONSE
    return [r.url, status, str(r.redirects_followed), r.final_url, r.robots_status, r.error]


class CsvResultSink:
    """
    The only writer of the output file.

    Drains the completed-results channel, writes one row per Resource and
    marks it done on the outstanding-task barrier. csv.writer does not
    tolerate interleaved writers, so exactly one sink exists per run.
    """

    def __init__(self, out: TextIO):
        self._out = out
        self._writer = csv.writer(out, lineterminator="\n")
        self.written = 0

    def write_header(self) -> None:
        self._writer.writerow(CSV_HEADER)

    def write(self, r: Resource) -> None:
        self._writer.writerow(resource_row(r))
        self.written += 1

    def flush(self) -> None:
        self._out.flush()

    async def consume(self, outbox: Channel[Resource], outstanding: "OutstandingTasks") -> None:
        self.write_header()
        async for r in outbox:
            self.write(r)
            outstanding.done()


def load_results(path: str | Path) -> pd.DataFrame:
    """Read an output CSV back with every column kept as text."""
    return pd.read_csv(path, dtype=str, keep_default_na=False)


def status_breakdown(df: pd.DataFrame) -> dict[str, int]:
    """Row count per status value, most frequent first."""
    if df.empty:
        return {}
    return {str(k): int(v) for k, v in df["status"].value_counts().items()}
