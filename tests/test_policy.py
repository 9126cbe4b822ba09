from url_checker.policy import base_interval, next_backoff, should_retry
from url_checker.resource import Resource
from url_checker.settings import CheckConfig


def make_result(**overrides) -> Resource:
    """Helper: start from a plain 200 and override fields."""
    base = Resource(url="https://example.com", status="200")
    for k, v in overrides.items():
        setattr(base, k, v)
    return base


def test_success_is_not_retried():
    assert not should_retry(make_result())


def test_rate_limited_is_retried():
    assert should_retry(make_result(status="429"))


def test_method_not_allowed_is_retried():
    assert should_retry(make_result(status="405"))


def test_transport_error_is_not_retried():
    assert not should_retry(make_result(status="", error="ClientConnectorError"))


def test_redirect_limit_is_not_retried():
    assert not should_retry(make_result(status="-1"))


def test_retry_statuses_are_configurable():
    cfg = CheckConfig(retry_statuses=("503",))
    assert should_retry(make_result(status="503"), config=cfg)
    assert not should_retry(make_result(status="429"), config=cfg)


def test_default_intervals_shrink_after_first_step():
    # multiplier 0.5 narrows the delay instead of widening it
    assert [base_interval(n) for n in range(4)] == [1.0, 0.5, 0.25, 0.125]


def test_intervals_grow_and_cap_with_multiplier_above_one():
    cfg = CheckConfig(backoff_multiplier=2.0, backoff_max_interval_s=5.0)
    assert [base_interval(n, cfg) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_jitter_stays_within_half_interval():
    assert next_backoff(0, 0.0, rand=lambda: 0.0) == 0.5
    assert next_backoff(0, 0.0, rand=lambda: 0.5) == 1.0
    assert next_backoff(0, 0.0, rand=lambda: 1.0) == 1.5


def test_stops_when_wait_would_pass_elapsed_bound():
    assert next_backoff(0, 118.0, rand=lambda: 0.5) == 1.0
    assert next_backoff(0, 119.5, rand=lambda: 0.5) is None


def test_no_attempt_cap_within_elapsed_bound():
    assert next_backoff(500, 0.0, rand=lambda: 0.5) is not None
