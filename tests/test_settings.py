from __future__ import annotations

from pathlib import Path

import pytest

from deploycheck.settings import DEFAULT_REQUIRED_TARGETS, HarnessConfig, load_harness_config


def _write(tmp_path: Path, text: str) -> Path:
    p = tmp_path / "deploycheck.yml"
    p.write_text(text, encoding="utf-8")
    return p


def test_defaults_describe_product_stack(tmp_path: Path):
    config = HarnessConfig(project_root=tmp_path)
    assert config.health_url == "http://localhost:5921/health"
    assert config.backend_direct_url == "http://localhost:3847/api/health"
    assert config.container_candidates("backend") == ["ecom-backend-dev", "ecom-backend-prod"]
    assert config.image_name("gateway") == "cuet-cse-fest-devops-hackathon-preli-gateway"
    assert config.path("backend/Dockerfile") == (tmp_path / "backend" / "Dockerfile").resolve()
    assert len(DEFAULT_REQUIRED_TARGETS) == 26
    assert config.lenient_validation is False


def test_load_full_config(tmp_path: Path):
    p = _write(
        tmp_path,
        """
version: 1
project:
  env_file: deploy/.env
makefile:
  path: ops/Makefile
  required_targets: [up, down]
descriptors:
  compose:
    local: compose.yaml
  dockerfiles:
    api: services/api/Dockerfile
  multistage: [api]
  expected_user: app
gateway:
  url: http://127.0.0.1:8080/
  timeout_seconds: 5
containers:
  prefix: shop
  services: [edge, api, db]
  gateway: edge
  backend: api
  datastore: db
  backend_port: 4000
readiness:
  max_wait_seconds: 0
  poll_interval_seconds: 1
  request_timeout_seconds: 0.25
api:
  burst_size: 3
  id_field: id
  lenient_validation: true
""",
    )
    config = load_harness_config(p)
    assert config.project_root == tmp_path.resolve()
    assert config.env_file == "deploy/.env"
    assert config.makefile == "ops/Makefile"
    assert config.required_targets == ("up", "down")
    assert config.compose_files == {"local": "compose.yaml"}
    assert config.dockerfiles == {"api": "services/api/Dockerfile"}
    assert config.multistage_services == ("api",)
    assert config.expected_user == "app"
    assert config.gateway_base == "http://127.0.0.1:8080"
    assert config.http_timeout_seconds == 5.0
    assert config.container_name("edge") == "shop-edge"
    assert config.backend_direct_url == "http://localhost:4000/api/health"
    assert config.readiness_max_wait_seconds == 0.0
    assert config.readiness_request_timeout_seconds == 0.25
    assert config.burst_size == 3
    assert config.id_field == "id"
    assert config.lenient_validation is True


def test_project_root_argument_and_override(tmp_path: Path):
    other = tmp_path / "repo"
    other.mkdir()
    p = _write(tmp_path, "version: 1\n")
    assert load_harness_config(p, project_root=other).project_root == other

    p = _write(tmp_path, "version: 1\nproject:\n  root: repo\n")
    assert load_harness_config(p, project_root=tmp_path / "ignored").project_root == other.resolve()


@pytest.mark.parametrize(
    "text,needle",
    [
        ("version: 2\n", "unsupported config version"),
        ("version: 0\n", "unsupported config version"),
        ("version: \"\"\n", "unsupported config version"),
        ("version: [1]\n", "unsupported config version"),
        ("gateway: [unclosed\n", "invalid YAML"),
        ("- a\n- b\n", "YAML mapping"),
        ("gateway: [1]\n", "config.gateway must be a mapping"),
        ("gateway:\n  timeout_seconds: fast\n", "gateway.timeout_seconds"),
        ("readiness:\n  poll_interval_seconds: 0\n", "readiness.poll_interval_seconds"),
        ("readiness:\n  max_wait_seconds: -5\n", "readiness.max_wait_seconds"),
        ("containers:\n  backend_port: 70000\n", "containers.backend_port"),
        ("makefile:\n  required_targets: [up, '']\n", "makefile.required_targets"),
        ("descriptors:\n  compose: {}\n", "descriptors.compose"),
        ("api:\n  burst_size: 0\n", "api.burst_size"),
        ("containers:\n  gateway: proxy\n", "containers.gateway"),
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, text: str, needle: str):
    with pytest.raises(ValueError) as ei:
        load_harness_config(_write(tmp_path, text))
    assert needle in str(ei.value)


def test_missing_or_empty_config(tmp_path: Path):
    with pytest.raises(ValueError):
        load_harness_config(tmp_path / "missing.yml")
    with pytest.raises(ValueError):
        load_harness_config(_write(tmp_path, "   \n"))
