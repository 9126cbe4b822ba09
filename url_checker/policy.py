"""
Retry policy: decides whether a probe outcome is worth another attempt and
how long to wait before it.

The schedule is a pure function of (attempt index, elapsed time) so the
retry loop can be driven by a fake clock in tests.
"""

import random
from typing import Callable

from .resource import Resource
from .settings import CheckConfig, DEFAULT_CHECK_CONFIG


def should_retry(r: Resource, config: CheckConfig | None = None) -> bool:
    cfg = config or DEFAULT_CHECK_CONFIG
    return r.status in cfg.retry_statuses


def base_interval(attempt: int, config: CheckConfig | None = None) -> float:
    """
    Un-jittered wait before retry number `attempt` (0-based).

    initial * multiplier**attempt, capped at backoff_max_interval_s. With the
    default multiplier of 0.5 this shrinks: 1s, 0.5s, 0.25s, ...
    """
    cfg = config or DEFAULT_CHECK_CONFIG
    interval = cfg.backoff_initial_interval_s * (cfg.backoff_multiplier ** attempt)
    return min(interval, cfg.backoff_max_interval_s)


def next_backoff(
    attempt: int,
    elapsed_s: float,
    config: CheckConfig | None = None,
    rand: Callable[[], float] = random.random,
) -> float | None:
    """
    Seconds to sleep before the next attempt, or None to stop retrying.

    The interval is jittered uniformly within ±backoff_randomization of
    base_interval(). Retrying stops once elapsed time plus that wait would
    exceed backoff_max_elapsed_s; there is no attempt cap.
    """
    cfg = config or DEFAULT_CHECK_CONFIG
    interval = base_interval(attempt, cfg)

    delta = cfg.backoff_randomization * interval
    low = interval - delta
    wait = low + rand() * (2 * delta)

    if elapsed_s + wait > cfg.backoff_max_elapsed_s:
        return None
    return wait
