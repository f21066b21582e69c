from __future__ import annotations

import subprocess
from pathlib import Path

from .types import CmdResult


STDIO_TAIL_CHARS = 8000
MESSAGE_TAIL_CHARS = 300


def tail(text: str, n: int) -> str:
    if len(text) <= n:
        return text
    return text[-n:]


def run_cmd_capture(
    cmd: str,
    cwd: Path,
    *,
    timeout_seconds: float | None = None,
) -> CmdResult:
    try:
        p = subprocess.run(
            cmd,
            cwd=str(cwd),
            shell=True,
            text=True,
            capture_output=True,
            timeout=timeout_seconds,
        )
        return CmdResult(
            cmd=cmd,
            rc=p.returncode,
            stdout=tail(p.stdout or "", STDIO_TAIL_CHARS),
            stderr=tail(p.stderr or "", STDIO_TAIL_CHARS),
            timed_out=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else (e.stdout or b"").decode(errors="replace")
        stderr = e.stderr if isinstance(e.stderr, str) else (e.stderr or b"").decode(errors="replace")
        return CmdResult(cmd=cmd, rc=124, stdout=stdout, stderr=stderr, timed_out=True)


def cmd_failure_detail(res: CmdResult) -> str:
    """One-line cause for a failed command, suitable for a check message."""
    if res.timed_out:
        return f"`{res.cmd}` timed out"
    detail = (res.stderr or "").strip() or (res.stdout or "").strip()
    detail = " ".join(tail(detail, MESSAGE_TAIL_CHARS).split())
    if detail:
        return f"`{res.cmd}` exited {res.rc}: {detail}"
    return f"`{res.cmd}` exited {res.rc}"
