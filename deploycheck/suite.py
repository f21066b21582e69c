from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Protocol, Tuple, Union

from .types import CheckResult, SuiteReport

if TYPE_CHECKING:
    from .capabilities import Capabilities
    from .dotenv import EnvReader
    from .settings import HarnessConfig

PASS = "pass"
FAIL = "fail"
WARN = "warn"
SKIP = "skip"

CheckOutcome = Union[CheckResult, Tuple[bool, str]]


class SkipCheck(Exception):
    """Raised by a check whose precondition does not apply to this deployment."""


@dataclass(frozen=True)
class Check:
    name: str
    fn: Callable[[], CheckOutcome]
    # Advisory failures are reported as warnings and never counted as failures.
    advisory: bool = False


class SuiteTrace(Protocol):
    def suite_started(self, name: str) -> None: ...

    def check_finished(self, result: CheckResult, status: str) -> None: ...

    def suite_finished(self, report: SuiteReport) -> None: ...


def _coerce(name: str, outcome: CheckOutcome) -> CheckResult:
    if isinstance(outcome, CheckResult):
        return outcome
    if isinstance(outcome, tuple) and len(outcome) == 2:
        passed, message = outcome
        return CheckResult(name=name, passed=bool(passed), message=str(message or ""))
    raise TypeError(f"check returned {type(outcome).__name__}, expected (passed, message) or CheckResult")


def run_check(check: Check) -> tuple[CheckResult, str]:
    """Run one check and classify it; nothing raised by the check escapes."""
    try:
        result = _coerce(check.name, check.fn())
    except SkipCheck as e:
        return CheckResult(name=check.name, passed=True, message=str(e) or "skipped"), SKIP
    except Exception as e:
        result = CheckResult(name=check.name, passed=False, message=f"{type(e).__name__}: {e}")

    if result.passed:
        return result, PASS
    if check.advisory:
        return result, WARN
    return result, FAIL


def run_suite(name: str, checks: list[Check], *, trace: SuiteTrace | None = None) -> SuiteReport:
    if trace is not None:
        trace.suite_started(name)

    results: list[CheckResult] = []
    warnings: list[CheckResult] = []
    skipped: list[CheckResult] = []
    for check in checks:
        result, status = run_check(check)
        if status == WARN:
            warnings.append(result)
        elif status == SKIP:
            skipped.append(result)
        else:
            results.append(result)
        if trace is not None:
            trace.check_finished(result, status)

    report = SuiteReport(
        suite_name=name,
        results=tuple(results),
        warnings=tuple(warnings),
        skipped=tuple(skipped),
    )
    if trace is not None:
        trace.suite_finished(report)
    return report


SuiteBuilder = Callable[["HarnessConfig", "Capabilities", "EnvReader"], "list[Check]"]


@dataclass(frozen=True)
class Suite:
    key: str
    title: str
    build: SuiteBuilder
    # Live suites need a reachable deployment and are gated on readiness.
    live: bool = False
