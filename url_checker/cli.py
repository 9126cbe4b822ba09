"""
site-url-checker: bulk HEAD-check a list of URLs into a CSV report.

    site-url-checker --urls urls.txt --output output.csv --num-workers 8

Each output row holds the final status, the number of redirects followed,
the final URL, the robots.txt verdict (when --robots is given) and an error
column. Ctrl-C stops immediately, keeping the rows written so far.
"""

import argparse
import asyncio
import logging
import re
import signal
import sys
import time
from contextlib import ExitStack

import aiohttp
from pydantic import ValidationError
from tqdm import tqdm

from .errors import SetupError
from .http_prober import HttpProber
from .logging_setup import configure_logging
from .pipeline import RunSummary, run_checks
from .robots import build_robots_filter, load_robots_document
from .settings import CheckConfig, RunOptions, load_check_config
from .storage import load_results, status_breakdown
from .utils import count_lines, describe_error, load_ignore_patterns

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="site-url-checker",
        description="Check HTTP status, redirects and robots.txt verdict for a list of URLs.",
    )
    p.add_argument("--urls", default="urls.txt", help="path to file with URLs to check, one per line")
    p.add_argument("--output", default="output.csv", help="path to output CSV file; overwritten if it exists")
    p.add_argument("--num-workers", type=int, default=None, help="number of parallel workers making requests (default 1)")
    p.add_argument("--user-agent", default=None, help="user agent string sent with every request")
    p.add_argument(
        "--random-user-agent", action="store_true", default=None,
        help="send a random user agent with every request; --user-agent is then ignored",
    )
    p.add_argument("--robots", default=None, help="robots.txt to evaluate URLs against: an http(s) URL or a local file")
    p.add_argument("--robots-agent", default=None, help="user agent name looked up in robots.txt (default '*')")
    p.add_argument("--ignore", default=None, help="file with regular expressions, one per line; matching URLs are skipped")
    p.add_argument("--config", default=None, help="YAML config file (default: ./check_config.yaml if present)")
    p.add_argument("--log-level", default="INFO", help="logging level (default INFO)")
    p.add_argument("--log-file", default=None, help="write logs to this file instead of stderr")
    p.add_argument("--no-progress", action="store_true", help="do not show a progress bar")
    return p


def options_from_args(args: argparse.Namespace) -> RunOptions:
    try:
        return RunOptions(
            urls_path=args.urls,
            output_path=args.output,
            config_path=args.config,
            ignore_path=args.ignore,
            robots_source=args.robots,
            workers=args.num_workers,
            user_agent=args.user_agent,
            random_user_agent=args.random_user_agent,
            robots_agent=args.robots_agent,
        )
    except ValidationError as e:
        raise SetupError("parse options", str(e)) from e


def _install_stop_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        logger.warning("interrupt signal %s", signame)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        except (NotImplementedError, RuntimeError):
            # no loop signal support (Windows); KeyboardInterrupt still ends the run
            pass


async def run(
    options: RunOptions,
    config: CheckConfig,
    ignore: list[re.Pattern[str]],
    total: int,
    show_progress: bool = True,
) -> RunSummary:
    stop = asyncio.Event()
    _install_stop_handlers(stop)

    with ExitStack() as stack:
        try:
            out = stack.enter_context(open(options.output_path, "w", newline="", encoding="utf-8"))
        except OSError as e:
            raise SetupError("create output", describe_error(e)) from e
        try:
            urls = stack.enter_context(open(options.urls_path, encoding="utf-8", errors="replace"))
        except OSError as e:
            raise SetupError("read URL source", describe_error(e)) from e

        async with aiohttp.ClientSession() as session:
            robots = None
            if options.robots_source:
                document = await load_robots_document(options.robots_source, session, config.robots_fetch_timeout_s)
                robots = build_robots_filter(document, config.robots_agent)

            bar = stack.enter_context(tqdm(total=total, unit="url", disable=not show_progress))
            return await run_checks(
                urls, out, HttpProber(session, config), config,
                robots=robots, ignore=ignore, on_progress=bar.update, stop=stop,
            )


def _log_breakdown(options: RunOptions) -> None:
    counts = status_breakdown(load_results(options.output_path))
    for status, n in counts.items():
        logger.info("status %s: %d", status, n)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, to_file=args.log_file)

    try:
        options = options_from_args(args)
        config = options.resolve(load_check_config(options.config_path))
        ignore = load_ignore_patterns(options.ignore_path) if options.ignore_path else []
        total = count_lines(options.urls_path)
    except SetupError as e:
        logger.error("%s", e)
        return 1

    logger.info(
        "starting: urls=%s output=%s workers=%d random_ua=%s robots=%s",
        options.urls_path, options.output_path, config.workers,
        config.random_user_agent, options.robots_source or "-",
    )
    t0 = time.perf_counter()

    try:
        summary = asyncio.run(run(options, config, ignore, total, show_progress=not args.no_progress))
    except SetupError as e:
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("interrupted")
        return 0

    elapsed = time.perf_counter() - t0
    if summary.interrupted:
        logger.warning("stopped early: %d rows written to %s", summary.written, options.output_path)
        return 0

    logger.info(
        "done in %.1fs: %d checked, %d skipped, %d rows written",
        elapsed, summary.dispatched, summary.ignored, summary.written,
    )
    _log_breakdown(options)
    return 0


if __name__ == "__main__":
    sys.exit(main())
