import asyncio
import logging
from typing import NamedTuple
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from .resource import Resource, STATUS_REDIRECT_LIMIT
from .settings import CheckConfig
from .utils import describe_error

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302})
BOT_HEADER_ERROR = "bot-header"
MAX_REDIRECTS_ERROR = "max redirects number reached"


class _Hop(NamedTuple):
    url: str
    status: int
    location: str | None
    bot_marked: bool


def resolve_location(location: str, current_url: str) -> str:
    """
    Turn a Location header into the next URL to request.

    Absolute targets are used as-is. Anything without a scheme takes the host
    of the request that produced the redirect and the https scheme; the path
    is rooted at "/" rather than joined onto the current path.

    Raises ValueError on a malformed target.
    """
    target = urlsplit(location)
    if target.scheme:
        return location

    current = urlsplit(current_url)
    # host and port only; credentials are not carried over
    host = current.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if current.port is not None:
        host = f"{host}:{current.port}"
    path = target.path
    if path and not path.startswith("/"):
        path = "/" + path
    return urlunsplit(("https", host, path, target.query, target.fragment))


class HttpProber:
    """
    Header-only status checker built on aiohttp.

    - Issues HEAD requests and never lets the transport follow redirects
    - Follows 301/302 itself, up to config.max_redirects hops
    - Flags responses carrying the bot-detection header
    - One session and config are shared read-only by every worker
    """

    def __init__(self, session: aiohttp.ClientSession, config: CheckConfig):
        self.session = session
        self.config = config
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout_s)

    async def _head(self, url: str, user_agent: str) -> _Hop:
        async with self.session.head(
            url, headers={"User-Agent": user_agent},
            timeout=self._timeout, allow_redirects=False
        ) as resp:
            return _Hop(
                url=url,
                status=resp.status,
                location=resp.headers.get("Location"),
                bot_marked=bool(resp.headers.get(self.config.bot_header)),
            )

    async def probe(self, r: Resource, user_agent: str) -> Resource:
        """
        Check r.url, filling status, redirects_followed, final_url and error.

        Transport failures and malformed redirect targets stop the probe
        with status left empty and the failure text in r.error.
        """
        r.reset_probe_state()

        try:
            hop = await self._head(r.url, user_agent)

            while hop.status in REDIRECT_STATUSES:
                r.redirects_followed += 1

                if r.redirects_followed > self.config.max_redirects:
                    r.error = MAX_REDIRECTS_ERROR
                    r.status = STATUS_REDIRECT_LIMIT
                    return r

                next_url = resolve_location(hop.location or "", hop.url)
                logger.debug("redirect %d: %s -> %s", r.redirects_followed, hop.url, next_url)
                hop = await self._head(next_url, user_agent)

                # some servers refuse HEAD once redirected
                if hop.status == 405:
                    break
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            r.error = describe_error(e)
            logger.debug("probe failed url=%s err=%s", r.url, r.error)
            return r

        if r.redirects_followed > 0:
            r.final_url = hop.url

        r.status = str(hop.status)

        if hop.bot_marked:
            r.error = BOT_HEADER_ERROR

        return r
