"""Live-topology checks: introspect the running containers, their health, networking and storage."""

from __future__ import annotations

import shlex
from typing import Any

from ..capabilities import Capabilities
from ..dotenv import EnvReader
from ..settings import HarnessConfig
from ..subprocess_utils import cmd_failure_detail, tail
from ..suite import Check, SkipCheck

PORT_PROBE_TIMEOUT_SECONDS = 2.0
HEALTHY_STATES = ("healthy",)


def running_containers(caps: Capabilities) -> tuple[set[str] | None, str | None]:
    res = caps.run_command("docker ps --format '{{.Names}}'")
    if not res.ok:
        return None, cmd_failure_detail(res)
    return {line.strip() for line in (res.stdout or "").splitlines() if line.strip()}, None


def resolve_container(config: HarnessConfig, caps: Capabilities, service: str) -> str | None:
    """First `{prefix}-{service}-{variant}` that is running, else the first one that exists."""
    candidates = config.container_candidates(service)
    running, _err = running_containers(caps)
    if running:
        for name in candidates:
            if name in running:
                return name
    for name in candidates:
        if caps.inspect_container(name) is not None:
            return name
    return None


def health_status(info: dict[str, Any]) -> str | None:
    state = info.get("State")
    if not isinstance(state, dict):
        return None
    health = state.get("Health")
    if not isinstance(health, dict):
        return None
    status = str(health.get("Status") or "").strip()
    return status or None


def container_networks(info: dict[str, Any]) -> set[str]:
    settings = info.get("NetworkSettings")
    if not isinstance(settings, dict):
        return set()
    networks = settings.get("Networks")
    if not isinstance(networks, dict):
        return set()
    return {str(k) for k in networks}


def is_healthy_body(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    if str(data.get("status") or "").strip().lower() == "ok":
        return True
    return data.get("ok") is True


def build_health_checks(config: HarnessConfig, caps: Capabilities) -> list[Check]:
    """Gateway health, backend health through the gateway, and the backend's private port."""
    timeout = config.http_timeout_seconds

    def health_endpoint(url: str):
        def check() -> tuple[bool, str]:
            resp = caps.http_get(url, timeout_seconds=timeout)
            if resp.status != 200:
                return False, f"{url}: expected 200, got {resp.describe()}"
            data, err = resp.json()
            if err:
                return False, f"200 but {err}"
            if not is_healthy_body(data):
                return False, f"200 but body is not healthy: {tail(resp.body.strip(), 200)}"
            return True, url

        return check

    def backend_not_exposed() -> tuple[bool, str]:
        url = config.backend_direct_url
        resp = caps.http_get(url, timeout_seconds=min(timeout, PORT_PROBE_TIMEOUT_SECONDS))
        if resp.connected:
            return False, f"backend answered {resp.status} on {url} (must only be reachable through the gateway)"
        return True, f"{url} unreachable ({resp.error or 'no response'})"

    return [
        Check("gateway health endpoint", health_endpoint(config.health_url)),
        Check("backend health via gateway", health_endpoint(f"{config.gateway_base}/api/health")),
        Check("backend is not directly exposed", backend_not_exposed),
    ]


def build_checks(config: HarnessConfig, caps: Capabilities, env: EnvReader) -> list[Check]:
    def container_running(service: str):
        prefix = config.container_name(service)

        def check() -> tuple[bool, str]:
            running, err = running_containers(caps)
            if running is None:
                return False, f"cannot list containers: {err}"
            matches = sorted(n for n in running if n.startswith(prefix))
            if matches:
                return True, ", ".join(matches)
            return False, f"no running container named {prefix}*"

        return check

    def datastore_not_exposed() -> tuple[bool, str]:
        host, port = config.private_host, config.datastore_port
        if caps.port_open(host, port, timeout_seconds=PORT_PROBE_TIMEOUT_SECONDS):
            return False, f"{host}:{port} is open (data store must not be published)"
        return True, f"{host}:{port} closed"

    def container_health(service: str):
        def check() -> tuple[bool, str]:
            name = resolve_container(config, caps, service)
            if name is None:
                raise SkipCheck(f"no {config.container_name(service)} container found")
            info = caps.inspect_container(name)
            if info is None:
                return False, f"cannot inspect {name}"
            status = health_status(info)
            if status is None:
                return True, f"{name}: no health check declared"
            if status in HEALTHY_STATES:
                return True, f"{name}: {status}"
            return False, f"{name}: {status}"

        return check

    def shared_network() -> tuple[bool, str]:
        names: dict[str, str] = {}
        nets: dict[str, set[str]] = {}
        for svc in (config.gateway_service, config.backend_service):
            name = resolve_container(config, caps, svc)
            if name is None:
                return False, f"no {config.container_name(svc)} container found"
            info = caps.inspect_container(name)
            if info is None:
                return False, f"cannot inspect {name}"
            names[svc] = name
            nets[svc] = container_networks(info)
        common = nets[config.gateway_service] & nets[config.backend_service]
        if common:
            return True, f"shared: {', '.join(sorted(common))}"
        return False, (
            f"{names[config.gateway_service]} {sorted(nets[config.gateway_service])} and "
            f"{names[config.backend_service]} {sorted(nets[config.backend_service])} share no network"
        )

    def data_volume() -> tuple[bool, str]:
        res = caps.run_command("docker volume ls --format '{{.Name}}'")
        if not res.ok:
            return False, f"cannot list volumes: {cmd_failure_detail(res)}"
        volumes = sorted(v.strip() for v in (res.stdout or "").splitlines() if config.volume_marker in v)
        if volumes:
            return True, ", ".join(volumes)
        return False, f"no volume matching `{config.volume_marker}`"

    def non_root_runtime(service: str):
        name = f"{config.container_name(service)}-{config.production_variant}"

        def check() -> tuple[bool, str]:
            running, err = running_containers(caps)
            if running is None:
                return False, f"cannot list containers: {err}"
            if name not in running:
                raise SkipCheck(f"{name} not running (dev mode)")
            res = caps.run_command(f"docker exec {shlex.quote(name)} whoami")
            if not res.ok:
                return False, cmd_failure_detail(res)
            user = (res.stdout or "").strip()
            if user in ("root", "0", ""):
                return False, f"{name} runs as {user or 'unknown user'}"
            if config.expected_user and user != config.expected_user:
                return False, f"{name} runs as {user}, expected {config.expected_user}"
            return True, f"{name} runs as {user}"

        return check

    def datastore_auth() -> tuple[bool, str]:
        creds = env.database_credentials()
        if creds is None:
            raise SkipCheck("no data store password configured")
        name = resolve_container(config, caps, config.datastore_service)
        if name is None:
            return False, f"no {config.container_name(config.datastore_service)} container found"
        cmd = (
            f"docker exec {shlex.quote(name)} mongosh --quiet "
            f"-u {shlex.quote(creds.username)} -p {shlex.quote(creds.password)} "
            "--authenticationDatabase admin --eval 'db.runCommand({ping: 1}).ok'"
        )
        res = caps.run_command(cmd)
        if res.ok:
            return True, f"authenticated as {creds.username} on {name}"
        # Never echo the command line: it carries the password.
        detail = " ".join(tail((res.stderr or res.stdout or "").strip(), 200).split())
        return False, f"ping as {creds.username} failed (rc={res.rc}){': ' + detail if detail else ''}"

    checks: list[Check] = []
    for svc in config.services:
        checks.append(Check(f"{svc} container is running", container_running(svc)))
    checks.extend(build_health_checks(config, caps))
    checks.append(Check(f"{config.datastore_service} is not directly exposed", datastore_not_exposed))
    for svc in config.services:
        checks.append(Check(f"{svc} container health", container_health(svc)))
    checks.append(Check("gateway and backend share a network", shared_network))
    checks.append(Check("data store volume exists", data_volume))
    for svc in (config.backend_service, config.gateway_service):
        checks.append(Check(f"{svc} runs as non-root user", non_root_runtime(svc)))
    checks.append(Check("data store accepts configured credentials", datastore_auth))
    return checks
