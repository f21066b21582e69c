from __future__ import annotations

import time
from typing import Callable

from .capabilities import http_get as _default_http_get
from .types import HttpResponse, Ready, ReadinessOutcome, TimedOut

HttpGet = Callable[..., HttpResponse]


def probe_timeout(poll_interval_seconds: float, request_timeout_seconds: float | None) -> float:
    """Per-request timeout; always strictly shorter than the poll interval."""
    if poll_interval_seconds <= 0:
        raise ValueError(f"poll interval must be > 0, got {poll_interval_seconds}")
    if request_timeout_seconds is None:
        return poll_interval_seconds / 2.0
    if request_timeout_seconds <= 0:
        raise ValueError(f"request timeout must be > 0, got {request_timeout_seconds}")
    if request_timeout_seconds >= poll_interval_seconds:
        raise ValueError(
            f"request timeout ({request_timeout_seconds}s) must be shorter than the poll interval "
            f"({poll_interval_seconds}s)"
        )
    return request_timeout_seconds


def wait_until_ready(
    url: str,
    max_wait_seconds: float,
    poll_interval_seconds: float,
    *,
    request_timeout_seconds: float | None = None,
    http_get: HttpGet = _default_http_get,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Callable[[int, HttpResponse], None] | None = None,
) -> ReadinessOutcome:
    """Poll `url` until it answers 2xx or `max_wait_seconds` have elapsed.

    The first probe is issued immediately; afterwards one probe per poll interval.
    The last sleep is clipped to the remaining budget, so a `TimedOut` outcome is
    reported at roughly `max_wait_seconds` (plus at most one request timeout).
    """
    if max_wait_seconds < 0:
        raise ValueError(f"max wait must be >= 0, got {max_wait_seconds}")
    timeout = probe_timeout(poll_interval_seconds, request_timeout_seconds)

    started = clock()
    attempt = 0
    while True:
        attempt += 1
        resp = http_get(url, timeout_seconds=timeout)
        elapsed = clock() - started
        if on_attempt is not None:
            on_attempt(attempt, resp)
        if resp.ok:
            return Ready(elapsed_seconds=elapsed)
        remaining = max_wait_seconds - elapsed
        if remaining <= 0:
            return TimedOut(waited_seconds=elapsed)
        sleep(min(poll_interval_seconds, remaining))
