from __future__ import annotations

from pathlib import Path

from deploycheck.settings import HarnessConfig
from deploycheck.dotenv import EnvReader
from deploycheck.suite import run_suite
from deploycheck.validators.command_surface import build_checks, parse_make_targets

MAKEFILE = """\
.PHONY: help up down dev-up dev-down
MODE ?= dev
COMPOSE_FILE := docker/compose.$(MODE).yaml
FLAGS ::= --remove-orphans

# Show available commands
help:
\t@echo "usage: make <target>"

up:
\tdocker compose -f $(COMPOSE_FILE) up -d

dev-up dev-down: ## development stack
\t@$(MAKE) up MODE=dev

backend-build:: 
\tnpm run build
"""


def _project(tmp_path: Path) -> Path:
    (tmp_path / "Makefile").write_text(MAKEFILE, encoding="utf-8")
    return tmp_path


def test_parse_make_targets_ignores_assignments_and_recipes():
    targets = parse_make_targets(MAKEFILE)
    assert {"help", "up", "dev-up", "dev-down", "backend-build", ".PHONY"} <= targets
    assert "MODE" not in targets
    assert "COMPOSE_FILE" not in targets
    assert "FLAGS" not in targets
    assert "docker" not in targets


def test_command_surface_reports_each_target(tmp_path: Path, fake_caps):
    root = _project(tmp_path)
    config = HarnessConfig(project_root=root, required_targets=("dev-up", "dev-down", "prod-up"))
    caps = fake_caps(commands={" help": (0, "usage"), "-n up MODE=": (0, "docker compose ...")})

    report = run_suite("Makefile Commands", build_checks(config, caps, EnvReader(None)))
    by_name = {r.name: r for r in report.results}

    assert by_name["Makefile exists"].passed
    assert by_name["`make help` works"].passed
    assert by_name["dev compose config is valid"].passed
    assert by_name["prod compose config is valid"].passed
    assert by_name["dev-up command defined"].passed
    assert by_name["dev-down command defined"].passed
    assert not by_name["prod-up command defined"].passed
    assert "prod-up" in by_name["prod-up command defined"].message
    assert report.fail_count == 1
    assert any(c.endswith(" help") for c in caps.calls)


def test_compose_check_falls_back_to_docker_compose_config(tmp_path: Path, fake_caps):
    root = _project(tmp_path)
    config = HarnessConfig(project_root=root, required_targets=())
    caps = fake_caps(
        commands={
            " help": (0, ""),
            "-n up MODE=": (2, ""),
            "compose.development.yaml config": (0, "services: {}"),
        }
    )
    report = run_suite("Makefile Commands", build_checks(config, caps, EnvReader(None)))
    by_name = {r.name: r for r in report.results}
    assert by_name["dev compose config is valid"].passed
    assert "docker compose config" in by_name["dev compose config is valid"].message
    assert not by_name["prod compose config is valid"].passed


def test_missing_makefile_fails_every_target(tmp_path: Path, fake_caps):
    config = HarnessConfig(project_root=tmp_path, required_targets=("dev-up", "clean"))
    report = run_suite("Makefile Commands", build_checks(config, fake_caps(), EnvReader(None)))
    by_name = {r.name: r for r in report.results}
    assert not by_name["Makefile exists"].passed
    assert not by_name["dev-up command defined"].passed
    assert by_name["dev-up command defined"].message.startswith("FileNotFoundError:")
    assert report.pass_count == 0
    assert len(report.results) == 2 + 2 + 2


def test_default_required_targets_cover_the_command_surface(tmp_path: Path, fake_caps):
    config = HarnessConfig(project_root=tmp_path)
    names = [c.name for c in build_checks(config, fake_caps(), EnvReader(None))]
    assert "dev-up command defined" in names
    assert "gateway-shell command defined" in names
    assert len([n for n in names if n.endswith("command defined")]) == 26
