from __future__ import annotations

import json
import socketserver
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Iterator

import pytest

from deploycheck.types import CmdResult, HttpResponse


class FakeCapabilities:
    """In-memory stand-in for `SystemCapabilities`.

    `commands` maps a command substring to `(rc, stdout)` or `(rc, stdout, stderr)`; the longest
    matching key wins.
    `http` maps `(method, url)` to an `HttpResponse` or a callable taking the JSON payload.
    """

    def __init__(
        self,
        *,
        commands: dict[str, tuple] | None = None,
        http: dict[tuple[str, str], Any] | None = None,
        containers: dict[str, dict[str, Any]] | None = None,
        open_ports: set[tuple[str, int]] | None = None,
    ) -> None:
        self.commands = dict(commands or {})
        self.http = dict(http or {})
        self.containers = dict(containers or {})
        self.open_ports = set(open_ports or set())
        self.calls: list[str] = []

    def run_command(self, cmd: str, *, timeout_seconds: float | None = None) -> CmdResult:
        self.calls.append(cmd)
        for key in sorted(self.commands, key=len, reverse=True):
            if key in cmd:
                rc, stdout, *rest = self.commands[key]
                return CmdResult(cmd=cmd, rc=rc, stdout=stdout, stderr=rest[0] if rest else "")
        return CmdResult(cmd=cmd, rc=127, stdout="", stderr="sh: command not found")

    def _http(self, method: str, url: str, payload: Any) -> HttpResponse:
        self.calls.append(f"{method} {url}")
        handler = self.http.get((method, url))
        if handler is None:
            return HttpResponse(url=url, status=None, error="[Errno 111] Connection refused")
        if callable(handler):
            return handler(payload)
        return handler

    def http_get(self, url: str, *, timeout_seconds: float) -> HttpResponse:
        return self._http("GET", url, None)

    def http_post_json(self, url: str, payload: Any, *, timeout_seconds: float) -> HttpResponse:
        return self._http("POST", url, payload)

    def inspect_container(self, name: str) -> dict[str, Any] | None:
        self.calls.append(f"inspect {name}")
        return self.containers.get(name)

    def port_open(self, host: str, port: int, *, timeout_seconds: float) -> bool:
        return (host, port) in self.open_ports


@pytest.fixture
def fake_caps() -> Callable[..., FakeCapabilities]:
    return FakeCapabilities


@dataclass
class ProductApiState:
    """Behaviour switches for the stub gateway."""

    products: list[dict[str, Any]] = field(default_factory=list)
    healthy: bool = True
    # Status returned for structurally broken input (missing name / non-numeric price).
    malformed_status: int = 400
    requests: list[tuple[str, str]] = field(default_factory=list)


def _make_product_handler(state: ProductApiState):
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, _format: str, *_args: Any) -> None:  # pragma: no cover
            return

        def _write_json(self, code: int, data: Any) -> None:
            raw = json.dumps(data).encode("utf-8")
            self.send_response(code)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(raw)))
            self.end_headers()
            self.wfile.write(raw)

        def do_GET(self) -> None:  # noqa: N802
            state.requests.append(("GET", self.path))
            if self.path in ("/health", "/api/health"):
                if state.healthy:
                    self._write_json(200, {"status": "ok"})
                else:
                    self._write_json(503, {"status": "down"})
                return
            if self.path == "/api/products":
                self._write_json(200, state.products)
                return
            self._write_json(404, {"error": "not_found"})

        def do_POST(self) -> None:  # noqa: N802
            state.requests.append(("POST", self.path))
            if self.path != "/api/products":
                self._write_json(404, {"error": "not_found"})
                return
            length = int(self.headers.get("Content-Length") or "0")
            body = json.loads(self.rfile.read(length).decode("utf-8")) if length else {}
            name = body.get("name")
            price = body.get("price")
            if name is None or not isinstance(price, (int, float)):
                self._write_json(state.malformed_status, {"error": "invalid product"})
                return
            if not str(name).strip() or price < 0:
                self._write_json(400, {"error": "invalid product"})
                return
            product = {"_id": f"p{len(state.products) + 1}", "name": name, "price": price}
            state.products.append(product)
            self._write_json(201, product)

    return Handler


@pytest.fixture
def product_api() -> Iterator[tuple[str, ProductApiState]]:
    state = ProductApiState()
    httpd = HTTPServer(("127.0.0.1", 0), _make_product_handler(state))
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    host, port = httpd.server_address[:2]
    try:
        yield f"http://{host}:{port}", state
    finally:
        httpd.shutdown()
        httpd.server_close()
        t.join(timeout=5)


@pytest.fixture
def closed_port() -> int:
    import socket

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


class _NotHttpHandler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        self.rfile.readline()
        self.wfile.write(b"HELLO NOT HTTP\r\n\r\n")


@pytest.fixture
def not_http_server() -> Iterator[str]:
    """A TCP listener that answers every connection with a non-HTTP banner."""
    srv = socketserver.TCPServer(("127.0.0.1", 0), _NotHttpHandler)
    t = threading.Thread(target=srv.serve_forever, daemon=True)
    t.start()
    host, port = srv.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        srv.shutdown()
        srv.server_close()
        t.join(timeout=5)
