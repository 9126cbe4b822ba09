import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Protocol

from .channel import Channel
from .policy import next_backoff, should_retry
from .resource import Resource
from .robots import RobotsFilter
from .settings import CheckConfig
from .user_agents import random_user_agent
from .utils import describe_error

logger = logging.getLogger(__name__)


class Prober(Protocol):
    async def probe(self, r: Resource, user_agent: str) -> Resource: ...


class Requester:
    """
    Retry envelope around a prober, plus robots.txt tagging.

    - Re-runs the whole probe (fresh request, fresh redirect chain) while the
      outcome is a retriable status, sleeping per policy.next_backoff
    - Draws a new random user agent per attempt when configured to
    - Tags robots_status once, after a non-retried outcome
    - Stateless between resources; one instance serves every worker

    sleep/clock/rand are injectable so the loop can run without real waiting.
    """

    def __init__(
        self,
        prober: Prober,
        config: CheckConfig,
        robots: RobotsFilter | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ):
        self.prober = prober
        self.config = config
        self.robots = robots
        self._sleep = sleep
        self._clock = clock
        self._rand = rand

    def user_agent(self) -> str:
        if self.config.random_user_agent:
            return random_user_agent()
        return self.config.user_agent

    async def check(self, r: Resource) -> Resource:
        started = self._clock()
        attempt = 0

        while True:
            await self.prober.probe(r, self.user_agent())

            if not should_retry(r, self.config):
                if self.robots is not None:
                    r.robots_status = self.robots.status(r.url)
                return r

            wait = next_backoff(attempt, self._clock() - started, self.config, self._rand)
            if wait is None:
                logger.debug("giving up retries url=%s status=%s attempts=%d", r.url, r.status, attempt + 1)
                return r

            logger.debug("retry url=%s status=%s in %.3fs", r.url, r.status, wait)
            await self._sleep(wait)
            attempt += 1

    async def run(self, inbox: Channel[Resource], outbox: Channel[Resource], worker_id: int = 0) -> None:
        """Worker loop: one outbound Resource per inbound one, until inbox closes."""
        async for r in inbox:
            logger.debug("worker=%d checking url=%s", worker_id, r.url)
            try:
                await self.check(r)
            except Exception as e:
                # the row still gets written, with the failure as its error
                logger.warning("worker=%d unexpected failure url=%s", worker_id, r.url, exc_info=True)
                r.error = describe_error(e)
            await outbox.send(r)
        logger.debug("worker=%d done", worker_id)
