from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .paths import resolve_config_path

DEFAULT_REQUIRED_TARGETS: tuple[str, ...] = (
    "backend-build",
    "backend-install",
    "backend-type-check",
    "backend-dev",
    "dev-up",
    "dev-down",
    "dev-build",
    "dev-logs",
    "dev-restart",
    "dev-shell",
    "dev-ps",
    "prod-up",
    "prod-down",
    "prod-build",
    "prod-logs",
    "prod-restart",
    "db-reset",
    "db-backup",
    "mongo-shell",
    "clean",
    "clean-all",
    "clean-volumes",
    "status",
    "health",
    "backend-shell",
    "gateway-shell",
)


def _default_compose_files() -> dict[str, str]:
    return {
        "dev": "docker/compose.development.yaml",
        "prod": "docker/compose.production.yaml",
    }


def _default_dockerfiles() -> dict[str, str]:
    return {
        "backend": "backend/Dockerfile",
        "gateway": "gateway/Dockerfile",
    }


@dataclass(frozen=True)
class HarnessConfig:
    """Inputs for one verification run.

    Defaults describe the product-catalog stack the harness was written for; a
    `deploycheck.yml` (see `load_harness_config`) or CLI flags override them.
    """

    version: int = 1
    project_root: Path = field(default_factory=Path.cwd)
    env_file: str = ".env"

    # command surface
    makefile: str = "Makefile"
    help_target: str = "help"
    required_targets: tuple[str, ...] = DEFAULT_REQUIRED_TARGETS

    # descriptors
    compose_files: dict[str, str] = field(default_factory=_default_compose_files)
    dockerfiles: dict[str, str] = field(default_factory=_default_dockerfiles)
    multistage_services: tuple[str, ...] = ("backend",)
    expected_user: str | None = None
    image_prefix: str = "cuet-cse-fest-devops-hackathon-preli"

    # gateway
    gateway_url: str = "http://localhost:5921"
    http_timeout_seconds: float = 10.0

    # containers / topology
    container_prefix: str = "ecom"
    services: tuple[str, ...] = ("gateway", "backend", "mongo")
    variants: tuple[str, ...] = ("dev", "prod")
    production_variant: str = "prod"
    gateway_service: str = "gateway"
    backend_service: str = "backend"
    datastore_service: str = "mongo"
    private_host: str = "localhost"
    backend_port: int = 3847
    datastore_port: int = 27017
    volume_marker: str = "mongo_data"
    command_timeout_seconds: float = 60.0

    # readiness
    readiness_max_wait_seconds: float = 60.0
    readiness_poll_interval_seconds: float = 2.0
    readiness_request_timeout_seconds: float | None = None

    # api
    burst_size: int = 5
    id_field: str = "_id"
    lenient_validation: bool = False

    @property
    def gateway_base(self) -> str:
        return str(self.gateway_url or "").strip().rstrip("/")

    @property
    def health_url(self) -> str:
        return f"{self.gateway_base}/health"

    @property
    def backend_direct_url(self) -> str:
        return f"http://{self.private_host}:{self.backend_port}/api/health"

    def path(self, raw: str) -> Path:
        return resolve_config_path(self.project_root, raw)

    def container_name(self, service: str) -> str:
        return f"{self.container_prefix}-{service}"

    def container_candidates(self, service: str) -> list[str]:
        base = self.container_name(service)
        return [f"{base}-{v}" for v in self.variants]

    def image_name(self, service: str) -> str:
        return f"{self.image_prefix}-{service}"


def _as_mapping(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"config.{name} must be a mapping")
    return value


def _as_str_list(value: Any, name: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(x, str) and x.strip() for x in value):
        raise ValueError(f"config.{name} must be a list of non-empty strings")
    return tuple(x.strip() for x in value)


def _as_str_map(value: Any, name: str) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, dict) or not value:
        raise ValueError(f"config.{name} must be a non-empty mapping")
    out: dict[str, str] = {}
    for k, v in value.items():
        ks = str(k or "").strip()
        vs = str(v or "").strip()
        if not ks or not vs:
            raise ValueError(f"config.{name} entries must be non-empty strings")
        out[ks] = vs
    return out


def _as_number(value: Any, name: str, *, positive: bool = True) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"config.{name} must be a number")
    if positive and value <= 0:
        raise ValueError(f"config.{name} must be > 0")
    if value < 0:
        raise ValueError(f"config.{name} must be >= 0")
    return float(value)


def _as_port(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not (0 < value < 65536):
        raise ValueError(f"config.{name} must be a TCP port number")
    return value


def _as_str(value: Any, name: str) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        raise ValueError(f"config.{name} must be a non-empty string")
    return s


def load_harness_config(path: Path, *, project_root: Path | None = None) -> HarnessConfig:
    try:
        import yaml  # type: ignore
    except Exception as e:  # pragma: no cover
        raise RuntimeError("Missing dependency: PyYAML. Install with `pip install PyYAML`.") from e

    if not path.exists():
        raise ValueError(f"config file not found: {path}")
    raw = path.read_text(encoding="utf-8", errors="replace").strip()
    if not raw:
        raise ValueError(f"config file is empty: {path}")
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValueError(f"invalid YAML in {path}: {' '.join(str(e).split())}") from e
    if not isinstance(data, dict):
        raise ValueError("config must be a YAML mapping (dict) at the top level")

    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version != 1:
        raise ValueError(f"unsupported config version: {version!r}")

    project = _as_mapping(data.get("project"), "project")
    makefile = _as_mapping(data.get("makefile"), "makefile")
    descriptors = _as_mapping(data.get("descriptors"), "descriptors")
    gateway = _as_mapping(data.get("gateway"), "gateway")
    containers = _as_mapping(data.get("containers"), "containers")
    readiness = _as_mapping(data.get("readiness"), "readiness")
    api = _as_mapping(data.get("api"), "api")

    overrides: dict[str, Any] = {"version": version}

    root = project_root
    root_raw = _as_str(project.get("root"), "project.root")
    if root_raw is not None:
        root = resolve_config_path(path.parent.resolve(), root_raw)
    if root is None:
        root = path.parent.resolve()
    overrides["project_root"] = root

    def _put(key: str, value: Any) -> None:
        if value is not None:
            overrides[key] = value

    _put("env_file", _as_str(project.get("env_file"), "project.env_file"))

    _put("makefile", _as_str(makefile.get("path"), "makefile.path"))
    _put("help_target", _as_str(makefile.get("help_target"), "makefile.help_target"))
    _put("required_targets", _as_str_list(makefile.get("required_targets"), "makefile.required_targets"))

    _put("compose_files", _as_str_map(descriptors.get("compose"), "descriptors.compose"))
    _put("dockerfiles", _as_str_map(descriptors.get("dockerfiles"), "descriptors.dockerfiles"))
    multistage = descriptors.get("multistage")
    if multistage is not None:
        if not isinstance(multistage, list) or not all(isinstance(x, str) for x in multistage):
            raise ValueError("config.descriptors.multistage must be a list of strings")
        overrides["multistage_services"] = tuple(x.strip() for x in multistage if x.strip())
    _put("expected_user", _as_str(descriptors.get("expected_user"), "descriptors.expected_user"))
    _put("image_prefix", _as_str(descriptors.get("image_prefix"), "descriptors.image_prefix"))

    _put("gateway_url", _as_str(gateway.get("url"), "gateway.url"))
    _put("http_timeout_seconds", _as_number(gateway.get("timeout_seconds"), "gateway.timeout_seconds"))

    _put("container_prefix", _as_str(containers.get("prefix"), "containers.prefix"))
    _put("services", _as_str_list(containers.get("services"), "containers.services"))
    _put("variants", _as_str_list(containers.get("variants"), "containers.variants"))
    _put("production_variant", _as_str(containers.get("production_variant"), "containers.production_variant"))
    _put("gateway_service", _as_str(containers.get("gateway"), "containers.gateway"))
    _put("backend_service", _as_str(containers.get("backend"), "containers.backend"))
    _put("datastore_service", _as_str(containers.get("datastore"), "containers.datastore"))
    _put("private_host", _as_str(containers.get("private_host"), "containers.private_host"))
    _put("backend_port", _as_port(containers.get("backend_port"), "containers.backend_port"))
    _put("datastore_port", _as_port(containers.get("datastore_port"), "containers.datastore_port"))
    _put("volume_marker", _as_str(containers.get("volume_marker"), "containers.volume_marker"))
    _put(
        "command_timeout_seconds",
        _as_number(containers.get("command_timeout_seconds"), "containers.command_timeout_seconds"),
    )

    _put(
        "readiness_max_wait_seconds",
        _as_number(readiness.get("max_wait_seconds"), "readiness.max_wait_seconds", positive=False),
    )
    _put(
        "readiness_poll_interval_seconds",
        _as_number(readiness.get("poll_interval_seconds"), "readiness.poll_interval_seconds"),
    )
    _put(
        "readiness_request_timeout_seconds",
        _as_number(readiness.get("request_timeout_seconds"), "readiness.request_timeout_seconds"),
    )

    burst = api.get("burst_size")
    if burst is not None:
        if isinstance(burst, bool) or not isinstance(burst, int) or burst <= 0:
            raise ValueError("config.api.burst_size must be a positive integer")
        overrides["burst_size"] = burst
    _put("id_field", _as_str(api.get("id_field"), "api.id_field"))
    if api.get("lenient_validation") is not None:
        overrides["lenient_validation"] = bool(api.get("lenient_validation"))

    if "gateway_service" in overrides or "backend_service" in overrides or "services" in overrides:
        services = overrides.get("services", HarnessConfig.services)
        for key in ("gateway_service", "backend_service"):
            svc = overrides.get(key, getattr(HarnessConfig, key))
            if svc not in services:
                raise ValueError(f"config.containers.{key.split('_')[0]} must be one of containers.services")

    return HarnessConfig(**overrides)
