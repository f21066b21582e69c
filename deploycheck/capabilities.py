from __future__ import annotations

import http.client
import json
import shlex
import socket
from pathlib import Path
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .subprocess_utils import run_cmd_capture, tail
from .types import CmdResult, HttpResponse

BODY_TAIL_CHARS = 200_000


class Capabilities(Protocol):
    """Everything a check may ask of the outside world."""

    def run_command(self, cmd: str, *, timeout_seconds: float | None = None) -> CmdResult: ...

    def http_get(self, url: str, *, timeout_seconds: float) -> HttpResponse: ...

    def http_post_json(self, url: str, payload: Any, *, timeout_seconds: float) -> HttpResponse: ...

    def inspect_container(self, name: str) -> dict[str, Any] | None: ...

    def port_open(self, host: str, port: int, *, timeout_seconds: float) -> bool: ...


def http_request(
    method: str,
    url: str,
    *,
    body: Any = None,
    timeout_seconds: float,
) -> HttpResponse:
    headers = {"Accept": "application/json"}
    data = None
    if body is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(body, ensure_ascii=False).encode("utf-8")

    try:
        req = Request(url, method=method, data=data, headers=headers)
        with urlopen(req, timeout=timeout_seconds) as resp:
            raw = resp.read()
            return HttpResponse(
                url=url,
                status=int(resp.status),
                body=tail(raw.decode("utf-8", errors="replace"), BODY_TAIL_CHARS),
            )
    except HTTPError as e:
        # Non-2xx responses are still responses; checks assert on the status themselves.
        detail = ""
        try:
            detail = e.read().decode("utf-8", errors="replace")
        except Exception:
            detail = ""
        return HttpResponse(url=url, status=int(getattr(e, "code", 0) or 0), body=tail(detail, BODY_TAIL_CHARS))
    except URLError as e:
        return HttpResponse(url=url, status=None, error=str(getattr(e, "reason", e)))
    except (OSError, ValueError, http.client.HTTPException) as e:
        # socket timeouts, resets, malformed URLs, non-HTTP replies
        return HttpResponse(url=url, status=None, error=f"{type(e).__name__}: {e}")


def http_get(url: str, *, timeout_seconds: float) -> HttpResponse:
    return http_request("GET", url, timeout_seconds=timeout_seconds)


class SystemCapabilities:
    """Capabilities backed by the local shell, `docker` CLI, urllib and sockets."""

    def __init__(self, project_root: Path, *, command_timeout_seconds: float | None = 60.0) -> None:
        self._root = Path(project_root).resolve()
        self._command_timeout_seconds = command_timeout_seconds

    @property
    def project_root(self) -> Path:
        return self._root

    def run_command(self, cmd: str, *, timeout_seconds: float | None = None) -> CmdResult:
        eff_timeout = timeout_seconds if timeout_seconds is not None else self._command_timeout_seconds
        return run_cmd_capture(cmd, self._root, timeout_seconds=eff_timeout)

    def http_get(self, url: str, *, timeout_seconds: float) -> HttpResponse:
        return http_request("GET", url, timeout_seconds=timeout_seconds)

    def http_post_json(self, url: str, payload: Any, *, timeout_seconds: float) -> HttpResponse:
        return http_request("POST", url, body=payload, timeout_seconds=timeout_seconds)

    def inspect_container(self, name: str) -> dict[str, Any] | None:
        res = self.run_command(f"docker inspect {shlex.quote(name)}")
        if not res.ok:
            return None
        try:
            data = json.loads(res.stdout or "")
        except ValueError:
            return None
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return None

    def port_open(self, host: str, port: int, *, timeout_seconds: float) -> bool:
        try:
            with socket.create_connection((host, int(port)), timeout=timeout_seconds):
                return True
        except OSError:
            return False
