"""Command-surface checks: the Makefile declares the expected targets and they are invocable."""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from ..capabilities import Capabilities
from ..dotenv import EnvReader
from ..paths import relpath_or_str
from ..settings import HarnessConfig
from ..subprocess_utils import cmd_failure_detail
from ..suite import Check

# `name:` or `a b:` rule lines; `VAR := x`, `VAR ::= x` and `VAR ?= x` are assignments, not rules.
_RULE_RE = re.compile(r"^([A-Za-z0-9_.%/-][A-Za-z0-9_.%/ \t-]*?)\s*::?(?![:=])")


def parse_make_targets(text: str) -> set[str]:
    targets: set[str] = set()
    for line in text.splitlines():
        if not line or line[0] in ("\t", "#", " "):
            continue
        m = _RULE_RE.match(line)
        if not m:
            continue
        for name in m.group(1).split():
            targets.add(name)
    return targets


def _read_makefile(path: Path) -> str:
    if not path.is_file():
        raise FileNotFoundError(f"Makefile not found: {path}")
    return path.read_text(encoding="utf-8", errors="replace")


def build_checks(config: HarnessConfig, caps: Capabilities, env: EnvReader) -> list[Check]:
    makefile = config.path(config.makefile)
    make = f"make -f {shlex.quote(str(makefile))}"

    def makefile_exists() -> tuple[bool, str]:
        if makefile.is_file():
            return True, relpath_or_str(makefile, config.project_root)
        return False, f"not found: {relpath_or_str(makefile, config.project_root)}"

    def help_command() -> tuple[bool, str]:
        res = caps.run_command(f"{make} {shlex.quote(config.help_target)}")
        if res.ok:
            return True, f"`make {config.help_target}` succeeded"
        return False, cmd_failure_detail(res)

    def compose_invocable(variant: str, compose_file: str):
        def check() -> tuple[bool, str]:
            dry_run = caps.run_command(f"{make} -n up MODE={shlex.quote(variant)}")
            if dry_run.ok:
                return True, f"`make -n up MODE={variant}` succeeded"
            compose = config.path(compose_file)
            res = caps.run_command(f"docker compose -f {shlex.quote(str(compose))} config")
            if res.ok:
                return True, f"`docker compose config` accepted {compose_file}"
            return False, f"{cmd_failure_detail(dry_run)}; {cmd_failure_detail(res)}"

        return check

    def target_defined(target: str):
        def check() -> tuple[bool, str]:
            if target in parse_make_targets(_read_makefile(makefile)):
                return True, "defined"
            return False, f"target `{target}` not found in {config.makefile}"

        return check

    checks = [
        Check("Makefile exists", makefile_exists),
        Check(f"`make {config.help_target}` works", help_command),
    ]
    for variant, compose_file in config.compose_files.items():
        checks.append(Check(f"{variant} compose config is valid", compose_invocable(variant, compose_file)))
    for target in config.required_targets:
        checks.append(Check(f"{target} command defined", target_defined(target)))
    return checks
