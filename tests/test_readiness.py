from __future__ import annotations

import pytest

from deploycheck.readiness import probe_timeout, wait_until_ready
from deploycheck.types import HttpResponse, Ready, TimedOut


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _responder(statuses: list[int | None], clock: FakeClock, *, cost: float = 0.0):
    seen: list[float] = []

    def http_get(url: str, *, timeout_seconds: float) -> HttpResponse:
        seen.append(timeout_seconds)
        clock.now += cost
        status = statuses.pop(0) if statuses else None
        if status is None:
            return HttpResponse(url=url, status=None, error="Connection refused")
        return HttpResponse(url=url, status=status, body="{}")

    return http_get, seen


def test_probe_timeout_defaults_to_half_interval():
    assert probe_timeout(2.0, None) == 1.0
    assert probe_timeout(2.0, 0.5) == 0.5


@pytest.mark.parametrize("interval,request_timeout", [(0, None), (-1, None), (2.0, 2.0), (2.0, 3.0), (2.0, 0)])
def test_probe_timeout_rejects_bad_values(interval, request_timeout):
    with pytest.raises(ValueError):
        probe_timeout(interval, request_timeout)


def test_ready_on_first_probe_does_not_sleep():
    clock = FakeClock()
    http_get, _ = _responder([200], clock)
    outcome = wait_until_ready("http://gw/health", 60, 2, http_get=http_get, clock=clock, sleep=clock.sleep)
    assert outcome == Ready(elapsed_seconds=0.0)
    assert clock.sleeps == []


def test_ready_after_failures_polls_each_interval():
    clock = FakeClock()
    http_get, timeouts = _responder([None, 503, 200], clock)
    attempts: list[int] = []
    outcome = wait_until_ready(
        "http://gw/health",
        60,
        2,
        http_get=http_get,
        clock=clock,
        sleep=clock.sleep,
        on_attempt=lambda n, _resp: attempts.append(n),
    )
    assert isinstance(outcome, Ready)
    assert outcome.elapsed_seconds == pytest.approx(4.0)
    assert clock.sleeps == [2, 2]
    assert attempts == [1, 2, 3]
    assert all(t < 2 for t in timeouts)


def test_times_out_within_budget():
    clock = FakeClock()
    http_get, _ = _responder([], clock)
    outcome = wait_until_ready("http://gw/health", 5, 2, http_get=http_get, clock=clock, sleep=clock.sleep)
    assert isinstance(outcome, TimedOut)
    assert outcome.waited_seconds == pytest.approx(5.0)
    # Last sleep is clipped to the remaining budget.
    assert clock.sleeps == [2, 2, 1]


def test_zero_budget_probes_once():
    clock = FakeClock()
    http_get, _ = _responder([], clock)
    outcome = wait_until_ready("http://gw/health", 0, 2, http_get=http_get, clock=clock, sleep=clock.sleep)
    assert isinstance(outcome, TimedOut)
    assert clock.sleeps == []


def test_negative_budget_is_rejected():
    with pytest.raises(ValueError):
        wait_until_ready("http://gw/health", -1, 2)


def test_ready_against_real_server(product_api):
    base, _state = product_api
    outcome = wait_until_ready(f"{base}/health", 5, 0.2)
    assert isinstance(outcome, Ready)


def test_unhealthy_server_times_out(product_api):
    base, state = product_api
    state.healthy = False
    outcome = wait_until_ready(f"{base}/health", 0.3, 0.1)
    assert isinstance(outcome, TimedOut)
    assert outcome.waited_seconds >= 0.3


def test_non_http_listener_times_out(not_http_server: str):
    outcome = wait_until_ready(f"{not_http_server}/health", 0.5, 0.2)
    assert isinstance(outcome, TimedOut)
