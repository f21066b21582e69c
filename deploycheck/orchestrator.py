from __future__ import annotations

import sys
from typing import Callable, Iterable

from .capabilities import Capabilities
from .dotenv import EnvReader
from .readiness import wait_until_ready
from .settings import HarnessConfig
from .suite import FAIL, Suite, SuiteTrace, run_suite
from .types import CheckResult, HttpResponse, ReadinessOutcome, RunReport, SuiteReport, TimedOut
from .validators import SUITES
from .validators.live_topology import running_containers

Poller = Callable[..., ReadinessOutcome]

NOT_RUNNING_NOTE = "integration suites skipped (services not running); start them with `make dev-up`"


def deployment_detected(config: HarnessConfig, caps: Capabilities) -> bool:
    """A deployment counts as live when a gateway container shows up in `docker ps`."""
    running, _err = running_containers(caps)
    if not running:
        return False
    prefix = config.container_name(config.gateway_service)
    return any(name.startswith(prefix) for name in running)


def await_gateway(config: HarnessConfig, caps: Capabilities, *, poll: Poller = wait_until_ready) -> ReadinessOutcome:
    print(
        f"INFO: waiting for {config.health_url} (up to {config.readiness_max_wait_seconds:g}s)",
        file=sys.stderr,
    )

    def progress(attempt: int, resp: HttpResponse) -> None:
        if not resp.ok:
            print(f"INFO: gateway not ready (attempt {attempt}: {resp.describe()})", file=sys.stderr)

    outcome = poll(
        config.health_url,
        config.readiness_max_wait_seconds,
        config.readiness_poll_interval_seconds,
        request_timeout_seconds=config.readiness_request_timeout_seconds,
        http_get=caps.http_get,
        on_attempt=progress,
    )
    if isinstance(outcome, TimedOut):
        print(f"ERROR: gateway not ready after {outcome.waited_seconds:.1f}s", file=sys.stderr)
    else:
        print(f"INFO: gateway ready after {outcome.elapsed_seconds:.1f}s", file=sys.stderr)
    return outcome


def run_one_suite(
    suite: Suite,
    config: HarnessConfig,
    caps: Capabilities,
    env: EnvReader,
    *,
    trace: SuiteTrace | None = None,
) -> SuiteReport:
    try:
        checks = suite.build(config, caps, env)
    except Exception as e:
        # The suite could not even enumerate its checks; count that as one failure.
        failed = CheckResult(name="suite setup", passed=False, message=f"{type(e).__name__}: {e}")
        report = SuiteReport(suite_name=suite.title, results=(failed,))
        if trace is not None:
            trace.suite_started(suite.title)
            trace.check_finished(failed, FAIL)
            trace.suite_finished(report)
        return report
    return run_suite(suite.title, checks, trace=trace)


def _ordered(suites: Iterable[Suite]) -> list[Suite]:
    order = {s.key: i for i, s in enumerate(SUITES)}
    return sorted(suites, key=lambda s: order.get(s.key, len(order)))


def run_suites(
    suites: Iterable[Suite],
    config: HarnessConfig,
    caps: Capabilities,
    env: EnvReader,
    *,
    trace: SuiteTrace | None = None,
    poll: Poller = wait_until_ready,
    report: RunReport | None = None,
) -> RunReport:
    """Run `suites` in the fixed order, gating the first live suite on gateway readiness.

    A readiness timeout aborts the run: the returned report keeps the suites already
    run, carries `fatal`, and no live suite is executed.
    """
    report = report if report is not None else RunReport()
    readiness_checked = False
    for suite in _ordered(suites):
        if suite.live and not readiness_checked:
            readiness_checked = True
            outcome = await_gateway(config, caps, poll=poll)
            if isinstance(outcome, TimedOut):
                return report.with_fatal(
                    f"gateway {config.health_url} not ready within {config.readiness_max_wait_seconds:g}s "
                    f"(waited {outcome.waited_seconds:.1f}s)"
                )
        report = report.with_suite(run_one_suite(suite, config, caps, env, trace=trace))
    return report


def run_everything(
    config: HarnessConfig,
    caps: Capabilities,
    env: EnvReader,
    *,
    trace: SuiteTrace | None = None,
    poll: Poller = wait_until_ready,
) -> RunReport:
    static = [s for s in SUITES if not s.live]
    live = [s for s in SUITES if s.live]

    report = run_suites(static, config, caps, env, trace=trace, poll=poll)
    if not deployment_detected(config, caps):
        print(f"INFO: {NOT_RUNNING_NOTE}", file=sys.stderr)
        return report.with_note(NOT_RUNNING_NOTE)
    return run_suites(live, config, caps, env, trace=trace, poll=poll, report=report)
