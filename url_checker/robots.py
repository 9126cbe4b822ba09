import asyncio
import logging
from pathlib import Path

import aiohttp
from protego import Protego

from .errors import SetupError
from .resource import ROBOTS_ALLOWED, ROBOTS_DISALLOWED
from .utils import describe_error

logger = logging.getLogger(__name__)


class RobotsFilter:
    """
    Read-only robots.txt evaluation against one already-fetched document.

    What this does:
    - Parses the document once, at construction, with Google's matching
      rules (`*` and `$` wildcards, longest matching rule wins)
    - Answers "may `agent` crawl this URL?" with no network access
    - Is shared by every worker; nothing mutates it after construction
    """

    def __init__(self, document: str, agent: str):
        self.agent = agent
        self._parser = Protego.parse(document)

    def allowed(self, url: str) -> bool:
        """A URL that cannot be parsed cannot be crawled either."""
        try:
            return self._parser.can_fetch(url, self.agent)
        except ValueError as e:
            logger.debug("robots check on unparseable url=%s err=%s", url, e)
            return False

    def status(self, url: str) -> str:
        return ROBOTS_ALLOWED if self.allowed(url) else ROBOTS_DISALLOWED


def build_robots_filter(document: str | None, agent: str) -> RobotsFilter | None:
    """No document (or an empty one) means robots evaluation is skipped entirely."""
    if not document:
        return None
    return RobotsFilter(document, agent)


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


async def load_robots_document(
    source: str,
    session: aiohttp.ClientSession | None = None,
    timeout_s: float = 10.0,
) -> str:
    """
    Acquire a robots.txt body from an http(s) URL or a local file.

    Any failure here is fatal for the run, so it is raised as SetupError
    rather than treated as "allow everything".
    """
    if not _is_url(source):
        try:
            return Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise SetupError("read robots.txt", describe_error(e)) from e

    if session is None:
        raise SetupError("fetch robots.txt", "no HTTP session available")

    try:
        async with session.get(source, timeout=aiohttp.ClientTimeout(total=timeout_s)) as resp:
            if resp.status >= 400:
                raise SetupError("fetch robots.txt", f"{source} answered HTTP {resp.status}")
            text = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
        raise SetupError("fetch robots.txt", describe_error(e)) from e

    logger.info("loaded robots.txt from %s (%d bytes)", source, len(text))
    return text
