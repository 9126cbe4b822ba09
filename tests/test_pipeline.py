import asyncio
import csv
import io
import random
import re
from collections import Counter

import pytest

from url_checker.pipeline import OutstandingTasks, run_checks
from url_checker.resource import Resource
from url_checker.robots import RobotsFilter
from url_checker.settings import CheckConfig
from url_checker.storage import CSV_HEADER
from url_checker.worker import Requester


class MapProber:
    """Status per URL, with a little random latency so completion order shuffles."""

    def __init__(self, statuses: dict[str, str], default: str = "200"):
        self.statuses = statuses
        self.default = default
        self.probed: list[str] = []

    async def probe(self, r: Resource, user_agent: str) -> Resource:
        r.reset_probe_state()
        self.probed.append(r.url)
        await asyncio.sleep(random.random() / 1000)
        r.status = self.statuses.get(r.url, self.default)
        if r.status == "":
            r.error = "ClientConnectorError"
        return r


def read_rows(out: io.StringIO) -> list[list[str]]:
    return list(csv.reader(io.StringIO(out.getvalue())))


URLS = [f"https://site{i}.example.com/page" for i in range(40)]


@pytest.mark.asyncio
async def test_one_row_per_url():
    out = io.StringIO()
    prober = MapProber({URLS[3]: "404", URLS[7]: ""})

    summary = await run_checks([u + "\n" for u in URLS], out, prober, CheckConfig(workers=4))

    rows = read_rows(out)
    assert rows[0] == CSV_HEADER
    assert sorted(r[0] for r in rows[1:]) == sorted(URLS)
    assert summary.dispatched == summary.written == len(URLS)
    assert not summary.interrupted

    by_url = {r[0]: r for r in rows[1:]}
    assert by_url[URLS[3]][1] == "404"
    assert by_url[URLS[7]][1] == "err"
    assert by_url[URLS[7]][5] == "ClientConnectorError"


@pytest.mark.asyncio
async def test_header_written_even_without_urls():
    out = io.StringIO()

    summary = await run_checks([], out, MapProber({}), CheckConfig())

    assert read_rows(out) == [CSV_HEADER]
    assert summary.written == 0


@pytest.mark.asyncio
async def test_ignored_urls_skip_output_but_advance_progress():
    out = io.StringIO()
    progress = []
    prober = MapProber({})
    urls = ["https://example.com/a\n", "https://example.com/logout\n", "\n", "https://example.com/b\r\n"]

    summary = await run_checks(
        urls, out, prober, CheckConfig(workers=2),
        ignore=[re.compile(r"/logout$")], on_progress=progress.append,
    )

    rows = read_rows(out)[1:]
    assert sorted(r[0] for r in rows) == ["https://example.com/a", "https://example.com/b"]
    assert "https://example.com/logout" not in prober.probed
    assert sum(progress) == 4
    assert summary.ignored == 2
    assert summary.dispatched == 2


@pytest.mark.asyncio
async def test_same_rows_for_any_worker_count():
    statuses = {u: random.choice(["200", "301", "404", "500", ""]) for u in URLS}
    results = []

    for workers in (1, 4, 16):
        out = io.StringIO()
        await run_checks(URLS, out, MapProber(statuses), CheckConfig(workers=workers))
        results.append(Counter(tuple(r) for r in read_rows(out)[1:]))

    assert results[0] == results[1] == results[2]
    assert sum(results[0].values()) == len(URLS)


@pytest.mark.asyncio
async def test_stop_event_flushes_and_abandons_in_flight():
    out = io.StringIO()
    stop = asyncio.Event()

    class StallingProber(MapProber):
        async def probe(self, r, user_agent):
            if "slow" in r.url:
                stop.set()
                await asyncio.Event().wait()
            r.status = "200"
            return r

    urls = ["https://a.example.com/", "https://slow.example.com/", "https://b.example.com/"]
    summary = await asyncio.wait_for(
        run_checks(urls, out, StallingProber({}), CheckConfig(workers=1), stop=stop),
        timeout=5,
    )

    rows = read_rows(out)
    assert summary.interrupted
    assert rows == [CSV_HEADER, ["https://a.example.com/", "200", "0", "", "", ""]]
    assert summary.written == 1


@pytest.mark.asyncio
async def test_outstanding_wait_returns_when_drained():
    pending = OutstandingTasks()
    await asyncio.wait_for(pending.wait(), timeout=1)

    pending.add()
    pending.add()
    waiter = asyncio.create_task(pending.wait())
    await asyncio.sleep(0)
    pending.done()
    await asyncio.sleep(0)
    assert not waiter.done()

    pending.done()
    await asyncio.wait_for(waiter, timeout=1)
    assert len(pending) == 0


def test_outstanding_done_without_add_is_a_bug():
    with pytest.raises(RuntimeError):
        OutstandingTasks().done()


@pytest.mark.asyncio
async def test_malformed_url_with_robots_still_gets_a_row():
    out = io.StringIO()
    robots = RobotsFilter("User-agent: *\nDisallow: /private/\n", "*")
    urls = ["https://example.com/a", "http://[::1", "https://example.com/private/b"]

    summary = await asyncio.wait_for(
        run_checks(urls, out, MapProber({"http://[::1": ""}), CheckConfig(workers=2), robots=robots),
        timeout=5,
    )

    by_url = {r[0]: r for r in read_rows(out)[1:]}
    assert sorted(by_url) == sorted(urls)
    assert by_url["http://[::1"][1] == "err"
    assert by_url["https://example.com/private/b"][4] == "disallowed"
    assert summary.written == 3


@pytest.mark.asyncio
async def test_unexpected_prober_failure_is_recorded():
    out = io.StringIO()

    class FailingProber(MapProber):
        async def probe(self, r, user_agent):
            if "bad" in r.url:
                raise RuntimeError("boom")
            return await super().probe(r, user_agent)

    urls = ["https://ok.example.com/", "https://bad.example.com/"]
    summary = await asyncio.wait_for(
        run_checks(urls, out, FailingProber({}), CheckConfig(workers=1)),
        timeout=5,
    )

    by_url = {r[0]: r for r in read_rows(out)[1:]}
    assert by_url["https://ok.example.com/"][1] == "200"
    assert by_url["https://bad.example.com/"][1] == "err"
    assert by_url["https://bad.example.com/"][5] == "RuntimeError: boom"
    assert summary.written == 2


@pytest.mark.asyncio
async def test_dead_worker_fails_the_run_instead_of_hanging():
    class BrokenRequester(Requester):
        async def run(self, inbox, outbox, worker_id=0):
            raise RuntimeError("worker down")

    prober = MapProber({})
    config = CheckConfig(workers=1)

    with pytest.raises(RuntimeError, match="worker down"):
        await asyncio.wait_for(
            run_checks(["https://example.com/"], io.StringIO(), prober, config,
                       requester=BrokenRequester(prober, config)),
            timeout=5,
        )
