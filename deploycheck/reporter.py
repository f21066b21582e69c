from __future__ import annotations

import sys
from typing import TextIO

from .suite import FAIL, PASS, SKIP, WARN
from .types import CheckResult, RunReport, SuiteReport

RULE = "=" * 42
THIN_RULE = "-" * 42

_MARKERS = {
    PASS: "[PASS]",
    FAIL: "[FAIL]",
    WARN: "[WARN]",
    SKIP: "[SKIP]",
}


def format_check_line(result: CheckResult, status: str) -> str:
    marker = _MARKERS.get(status, "[????]")
    if result.message:
        return f"{marker} {result.name}: {result.message}"
    return f"{marker} {result.name}"


class ConsoleTrace:
    """Suite-by-suite, check-by-check console trace."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def _print(self, text: str = "") -> None:
        print(text, file=self.out, flush=True)

    def suite_started(self, name: str) -> None:
        self._print(RULE)
        self._print(f"  {name}")
        self._print(RULE)

    def check_finished(self, result: CheckResult, status: str) -> None:
        self._print(format_check_line(result, status))

    def suite_finished(self, report: SuiteReport) -> None:
        self._print(THIN_RULE)
        line = f"{report.suite_name}: {len(report.results)} checks, {report.pass_count} passed, {report.fail_count} failed"
        extras: list[str] = []
        if report.warnings:
            extras.append(f"{len(report.warnings)} warnings")
        if report.skipped:
            extras.append(f"{len(report.skipped)} skipped")
        if extras:
            line += f" ({', '.join(extras)})"
        self._print(line)
        self._print()


def render_summary(report: RunReport, out: TextIO | None = None) -> None:
    out = out if out is not None else sys.stdout

    def _p(text: str = "") -> None:
        print(text, file=out, flush=True)

    _p(RULE)
    _p("  Overall Summary")
    _p(RULE)
    for suite in report.suites:
        status = "passed" if suite.ok else "failed"
        _p(f"{suite.suite_name}: {suite.pass_count}/{len(suite.results)} {status}")
    for note in report.notes:
        _p(f"Note: {note}")
    _p(f"Total checks: {report.total_checks}")
    _p(f"Passed: {report.total_pass}")
    _p(f"Failed: {report.total_fail}")
    if report.fatal:
        _p(f"FATAL: {report.fatal}")
    _p()
    if report.exit_code == 0:
        _p("All checks passed!")
    elif report.fatal:
        _p("Run aborted: deployment not ready.")
    else:
        _p("Some checks failed!")


def exit_code(report: RunReport) -> int:
    return report.exit_code
