import asyncio

import aiohttp
import pytest_asyncio

from url_checker.resource import Resource


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s


class FakeClock:
    """Monotonic clock that only moves when told to; sleep() advances it."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class ScriptedProber:
    """
    Stand-in for HttpProber.

    Returns statuses in order (the last one repeats), optionally advancing a
    FakeClock per call to simulate request latency.
    """

    def __init__(self, statuses, clock: FakeClock | None = None, latency_s: float = 0.0):
        self.statuses = list(statuses)
        self.clock = clock
        self.latency_s = latency_s
        self.user_agents: list[str] = []

    async def probe(self, r: Resource, user_agent: str) -> Resource:
        r.reset_probe_state()
        self.user_agents.append(user_agent)
        if self.clock is not None:
            self.clock.advance(self.latency_s)
        r.status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return r
