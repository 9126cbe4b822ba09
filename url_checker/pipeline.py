"""
Dispatch loop and run coordination.

    URL source -> dispatch -> inbox -> N x Requester.run -> outbox -> sink

Both channels are unbuffered, so a slow sink stalls the workers, which in
turn stall dispatch. A stop event short-circuits everything: dispatch halts,
the sink's file is flushed, in-flight work is abandoned.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, TextIO

from .channel import Channel
from .resource import Resource
from .robots import RobotsFilter
from .settings import CheckConfig
from .storage import CsvResultSink
from .utils import is_ignored
from .worker import Prober, Requester

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    dispatched: int = 0
    ignored: int = 0
    written: int = 0
    interrupted: bool = False


class OutstandingTasks:
    """Count of dispatched-but-unwritten URLs; wait() returns when it drops to zero."""

    def __init__(self) -> None:
        self._count = 0
        self._idle = asyncio.Event()
        self._idle.set()

    def __len__(self) -> int:
        return self._count

    def add(self) -> None:
        self._count += 1
        self._idle.clear()

    def done(self) -> None:
        if self._count <= 0:
            raise RuntimeError("done() called more times than add()")
        self._count -= 1
        if self._count == 0:
            self._idle.set()

    async def wait(self) -> None:
        await self._idle.wait()


async def dispatch(
    urls: Iterable[str],
    inbox: Channel[Resource],
    outstanding: OutstandingTasks,
    summary: RunSummary,
    ignore: Iterable[re.Pattern[str]] = (),
    on_progress: Callable[[int], object] | None = None,
) -> None:
    """Feed every non-ignored URL into the pipeline, then wait for all of them to be written."""
    ignore = list(ignore)

    for line in urls:
        url = line.rstrip("\r\n")

        if not url.strip() or is_ignored(url, ignore):
            summary.ignored += 1
        else:
            outstanding.add()
            await inbox.send(Resource(url=url))
            summary.dispatched += 1

        if on_progress is not None:
            on_progress(1)

    logger.info("dispatch finished, waiting for %d outstanding", len(outstanding))
    await outstanding.wait()
    logger.info("all %d dispatched URLs written", summary.dispatched)


async def _cancel_all(tasks: Iterable[asyncio.Task]) -> None:
    tasks = list(tasks)
    for t in tasks:
        t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


async def run_checks(
    urls: Iterable[str],
    out: TextIO,
    prober: Prober,
    config: CheckConfig,
    *,
    robots: RobotsFilter | None = None,
    ignore: Iterable[re.Pattern[str]] = (),
    on_progress: Callable[[int], object] | None = None,
    stop: asyncio.Event | None = None,
    requester: Requester | None = None,
) -> RunSummary:
    """
    Check every URL from `urls` and write one CSV row per URL to `out`.

    Returns normally once every dispatched URL has been written, or as soon as
    `stop` is set. In the latter case rows for URLs still in flight are lost;
    whatever was written so far is flushed.
    """
    stop = stop or asyncio.Event()
    requester = requester or Requester(prober, config, robots)
    summary = RunSummary()

    inbox: Channel[Resource] = Channel()
    outbox: Channel[Resource] = Channel()
    outstanding = OutstandingTasks()
    sink = CsvResultSink(out)

    workers = [
        asyncio.create_task(requester.run(inbox, outbox, i), name=f"worker-{i}")
        for i in range(max(1, config.workers))
    ]
    sink_task = asyncio.create_task(sink.consume(outbox, outstanding), name="sink")
    feed = asyncio.create_task(
        dispatch(urls, inbox, outstanding, summary, ignore, on_progress), name="dispatch"
    )
    stopped = asyncio.create_task(stop.wait(), name="stop-watcher")

    logger.info("started %d workers", len(workers))
    try:
        await asyncio.wait({feed, stopped, sink_task, *workers}, return_when=asyncio.FIRST_COMPLETED)

        if stopped.done():
            summary.interrupted = True
            logger.warning("stop requested, abandoning %d in-flight URLs", len(outstanding))
        elif feed.done():
            feed.result()
            inbox.close()
            await asyncio.gather(*workers)
            outbox.close()
            await sink_task
        else:
            # a worker or the sink ended while dispatch was still running
            for t in (sink_task, *workers):
                if t.done():
                    t.result()
            raise RuntimeError(f"{len(outstanding)} URLs outstanding but a pipeline task has exited")
    finally:
        inbox.close()
        outbox.close()
        await _cancel_all([feed, stopped, sink_task, *workers])
        sink.flush()

    summary.written = sink.written
    return summary
