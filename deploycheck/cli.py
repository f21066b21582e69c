from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from .capabilities import SystemCapabilities
from .dotenv import EnvReader
from .orchestrator import run_everything, run_suites
from .paths import resolve_config_path, resolve_project_root
from .readiness import probe_timeout
from .reporter import ConsoleTrace, exit_code, render_summary
from .settings import HarnessConfig, load_harness_config
from .suite import run_suite
from .types import RunReport
from .validators import SUITES_BY_KEY
from .validators.live_topology import build_health_checks

DEFAULT_CONFIG_NAME = "deploycheck.yml"

_SUITE_COMMANDS: tuple[tuple[str, str], ...] = (
    ("commands", "verify the Makefile command surface (static)"),
    ("docker", "verify Dockerfiles, compose files and images (static)"),
    ("api", "verify the product API contract through the gateway (needs a running deployment)"),
    ("live", "verify the running topology: health, isolation, networks, volumes"),
)


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project-root", default=".", help="deployment repo root (default: .)")
    common.add_argument(
        "--config",
        default="",
        help=f"YAML config path (default: {DEFAULT_CONFIG_NAME} under the project root when present)",
    )
    common.add_argument(
        "--env-file",
        default=None,
        help="dotenv file with data store credentials (default: config project.env_file, .env; empty disables)",
    )
    common.add_argument("--gateway-url", default="", help="public gateway base URL (default: http://localhost:5921)")
    common.add_argument("--max-wait", type=float, default=None, help="readiness budget in seconds (default: 60)")
    common.add_argument("--poll-interval", type=float, default=None, help="readiness poll interval in seconds (default: 2)")
    common.add_argument(
        "--lenient-validation",
        action="store_true",
        help="accept 500 as well as 400 for malformed product input",
    )

    parser = argparse.ArgumentParser(
        prog="deploycheck",
        description="Deployment verification harness (command surface, container config, API contract, live topology)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True
    for name, help_text in _SUITE_COMMANDS:
        sub.add_parser(name, parents=[common], help=help_text)
    sub.add_parser(
        "all",
        parents=[common],
        help="run every suite; API/live suites are skipped when no deployment is running",
    )
    sub.add_parser("health", parents=[common], help="one-shot probe of gateway and backend health")
    return parser


def _load_config(args: argparse.Namespace) -> HarnessConfig:
    root = resolve_project_root(args.project_root)

    config_raw = str(args.config or "").strip()
    if config_raw:
        config = load_harness_config(resolve_config_path(Path.cwd(), config_raw), project_root=root)
    elif (root / DEFAULT_CONFIG_NAME).is_file():
        config = load_harness_config(root / DEFAULT_CONFIG_NAME, project_root=root)
    else:
        config = HarnessConfig(project_root=root)

    overrides: dict[str, object] = {}
    if str(args.gateway_url or "").strip():
        overrides["gateway_url"] = str(args.gateway_url).strip()
    if args.max_wait is not None:
        if args.max_wait < 0:
            raise ValueError("--max-wait must be >= 0")
        overrides["readiness_max_wait_seconds"] = float(args.max_wait)
    if args.poll_interval is not None:
        overrides["readiness_poll_interval_seconds"] = float(args.poll_interval)
    if args.lenient_validation:
        overrides["lenient_validation"] = True
    if args.env_file is not None:
        overrides["env_file"] = str(args.env_file).strip()
    if overrides:
        config = replace(config, **overrides)

    # Fail fast on a readiness setup the poller would reject mid-run.
    probe_timeout(config.readiness_poll_interval_seconds, config.readiness_request_timeout_seconds)
    return config


def _env_reader(config: HarnessConfig) -> EnvReader:
    raw = str(config.env_file or "").strip()
    if not raw:
        return EnvReader(None)
    return EnvReader(config.path(raw))


def _run_health(config: HarnessConfig, caps: SystemCapabilities, trace: ConsoleTrace) -> RunReport:
    # One-shot probe, no readiness wait.
    return RunReport().with_suite(run_suite("Service Health", build_health_checks(config, caps), trace=trace))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except (ValueError, RuntimeError) as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return 2

    caps = SystemCapabilities(config.project_root, command_timeout_seconds=config.command_timeout_seconds)
    env = _env_reader(config)
    trace = ConsoleTrace()

    if args.command == "all":
        report = run_everything(config, caps, env, trace=trace)
    elif args.command == "health":
        report = _run_health(config, caps, trace)
    else:
        report = run_suites([SUITES_BY_KEY[args.command]], config, caps, env, trace=trace)

    render_summary(report)
    return exit_code(report)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
