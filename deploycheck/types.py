from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class CmdResult:
    cmd: str
    rc: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.rc == 0 and not self.timed_out


@dataclass(frozen=True)
class HttpResponse:
    """One HTTP exchange as seen by a check.

    `status` is None when no HTTP response was received at all (connection refused,
    DNS failure, timeout); `error` then carries the transport error text.
    """

    url: str
    status: int | None
    body: str = ""
    error: str | None = None

    @property
    def connected(self) -> bool:
        return self.status is not None

    @property
    def ok(self) -> bool:
        return self.status is not None and 200 <= self.status < 300

    def json(self) -> tuple[Any, str | None]:
        raw = (self.body or "").strip()
        if not raw:
            return None, "empty_body"
        try:
            return json.loads(raw), None
        except Exception as e:
            return None, f"invalid_json: {e}"

    def describe(self) -> str:
        if self.status is None:
            return f"no response ({self.error or 'unknown error'})"
        return f"status {self.status}"


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    message: str = ""


@dataclass(frozen=True)
class SuiteReport:
    suite_name: str
    results: tuple[CheckResult, ...] = ()
    # Failed advisory checks; reported but never counted.
    warnings: tuple[CheckResult, ...] = ()
    skipped: tuple[CheckResult, ...] = ()

    @property
    def pass_count(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def ok(self) -> bool:
        return self.fail_count == 0


@dataclass(frozen=True)
class RunReport:
    suites: tuple[SuiteReport, ...] = ()
    fatal: str | None = None
    notes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_pass(self) -> int:
        return sum(s.pass_count for s in self.suites)

    @property
    def total_fail(self) -> int:
        return sum(s.fail_count for s in self.suites)

    @property
    def total_checks(self) -> int:
        return sum(len(s.results) for s in self.suites)

    @property
    def exit_code(self) -> int:
        if self.fatal is not None:
            return 1
        return 0 if self.total_fail == 0 else 1

    def with_suite(self, suite: SuiteReport) -> RunReport:
        return RunReport(suites=(*self.suites, suite), fatal=self.fatal, notes=self.notes)

    def with_fatal(self, message: str) -> RunReport:
        return RunReport(suites=self.suites, fatal=message, notes=self.notes)

    def with_note(self, note: str) -> RunReport:
        return RunReport(suites=self.suites, fatal=self.fatal, notes=(*self.notes, note))


@dataclass(frozen=True)
class Ready:
    elapsed_seconds: float


@dataclass(frozen=True)
class TimedOut:
    waited_seconds: float


ReadinessOutcome = Union[Ready, TimedOut]
