"""Container-configuration checks over Dockerfiles, compose descriptors and built images.

Everything except the image checks is a pure function of the descriptor files, so
re-running the suite on unchanged descriptors yields an identical report. Image checks
are advisory because images may legitimately not be built yet.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..capabilities import Capabilities
from ..dotenv import EnvReader
from ..paths import relpath_or_str
from ..settings import HarnessConfig
from ..subprocess_utils import cmd_failure_detail
from ..suite import Check

ROOT_USERS = ("root", "0")


@dataclass(frozen=True)
class Instruction:
    keyword: str
    args: str
    line: int


def parse_dockerfile(text: str) -> list[Instruction]:
    """Split a Dockerfile into instructions, joining `\\` continuations and dropping comments."""
    out: list[Instruction] = []
    buf: list[str] = []
    start = 0
    for idx, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not buf and (not line or line.startswith("#")):
            continue
        if buf and line.startswith("#"):
            continue
        if not buf:
            start = idx
        if line.endswith("\\"):
            buf.append(line[:-1].strip())
            continue
        buf.append(line)
        joined = " ".join(x for x in buf if x)
        buf = []
        parts = joined.split(None, 1)
        if not parts:
            continue
        out.append(Instruction(keyword=parts[0].upper(), args=parts[1].strip() if len(parts) > 1 else "", line=start))
    if buf:
        joined = " ".join(x for x in buf if x)
        parts = joined.split(None, 1)
        if parts:
            out.append(Instruction(keyword=parts[0].upper(), args=parts[1].strip() if len(parts) > 1 else "", line=start))
    return out


_FROM_STAGE_RE = re.compile(r"\bAS\s+(\S+)\s*$", re.IGNORECASE)


def build_stages(instructions: list[Instruction]) -> list[str | None]:
    stages: list[str | None] = []
    for ins in instructions:
        if ins.keyword != "FROM":
            continue
        m = _FROM_STAGE_RE.search(ins.args)
        stages.append(m.group(1) if m else None)
    return stages


def runtime_user(instructions: list[Instruction]) -> str | None:
    """User of the final stage (the last USER after the last FROM), without the group part."""
    user: str | None = None
    for ins in instructions:
        if ins.keyword == "FROM":
            user = None
        elif ins.keyword == "USER" and ins.args:
            user = ins.args.split()[0].split(":", 1)[0]
    return user


def _read_dockerfile(path: Path) -> list[Instruction]:
    if not path.is_file():
        raise FileNotFoundError(f"Dockerfile not found: {path}")
    return parse_dockerfile(path.read_text(encoding="utf-8", errors="replace"))


def validate_compose_document(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["top level must be a mapping"]
    services = data.get("services")
    if not isinstance(services, dict) or not services:
        return ["missing or empty `services` mapping"]
    for name, svc in services.items():
        if not isinstance(svc, dict):
            errors.append(f"service `{name}` must be a mapping")
            continue
        if not svc.get("image") and not svc.get("build"):
            errors.append(f"service `{name}` declares neither image nor build")
    return errors


def load_compose_file(path: Path) -> tuple[Any, str | None]:
    import yaml  # type: ignore

    if not path.is_file():
        return None, f"not found: {path}"
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8", errors="replace")), None
    except yaml.YAMLError as e:
        return None, f"invalid YAML: {' '.join(str(e).split())}"


def build_checks(config: HarnessConfig, caps: Capabilities, env: EnvReader) -> list[Check]:
    dockerfiles = {svc: config.path(raw) for svc, raw in config.dockerfiles.items()}

    def dockerfile_readable(path: Path):
        def check() -> tuple[bool, str]:
            if not path.is_file():
                return False, f"not found: {relpath_or_str(path, config.project_root)}"
            with path.open("r", encoding="utf-8", errors="replace") as fh:
                fh.read(1)
            return True, relpath_or_str(path, config.project_root)

        return check

    def image_exists(service: str):
        image = config.image_name(service)

        def check() -> tuple[bool, str]:
            res = caps.run_command("docker images --format '{{.Repository}}'")
            if not res.ok:
                return False, f"cannot list images: {cmd_failure_detail(res)}"
            repos = {line.strip() for line in (res.stdout or "").splitlines() if line.strip()}
            if any(image in repo for repo in repos):
                return True, image
            return False, f"image {image} not found (build it with `make dev-build`)"

        return check

    def image_size(service: str):
        image = config.image_name(service)

        def check() -> tuple[bool, str]:
            res = caps.run_command(f"docker images --format '{{{{.Size}}}}' {shlex.quote(image)}")
            size = (res.stdout or "").strip().splitlines()[0].strip() if res.ok and (res.stdout or "").strip() else ""
            if size:
                return True, f"{image}: {size}"
            return False, f"size unavailable for {image} (image not built)"

        return check

    def compose_parses(raw: str):
        path = config.path(raw)

        def check() -> tuple[bool, str]:
            data, err = load_compose_file(path)
            if err:
                return False, err
            errors = validate_compose_document(data)
            if errors:
                return False, "; ".join(errors)
            return True, f"{len(data['services'])} services"

        return check

    def dockerignore_exists(dockerfile: Path):
        path = dockerfile.parent / ".dockerignore"

        def check() -> tuple[bool, str]:
            if path.is_file():
                return True, relpath_or_str(path, config.project_root)
            return False, f"not found: {relpath_or_str(path, config.project_root)}"

        return check

    def multistage(dockerfile: Path):
        def check() -> tuple[bool, str]:
            stages = build_stages(_read_dockerfile(dockerfile))
            named = [s for s in stages if s]
            if len(stages) >= 2 and named:
                return True, f"{len(stages)} stages ({', '.join(named)})"
            return False, "expected a `FROM ... AS <stage>` build stage followed by a runtime stage"

        return check

    def non_root_user(dockerfile: Path):
        def check() -> tuple[bool, str]:
            user = runtime_user(_read_dockerfile(dockerfile))
            if user is None:
                return False, "no USER directive in final stage (runs as root)"
            if user in ROOT_USERS:
                return False, f"final stage runs as {user}"
            if config.expected_user and user != config.expected_user:
                return False, f"final stage runs as {user}, expected {config.expected_user}"
            return True, f"USER {user}"

        return check

    def healthcheck(dockerfile: Path):
        def check() -> tuple[bool, str]:
            hc = [ins for ins in _read_dockerfile(dockerfile) if ins.keyword == "HEALTHCHECK"]
            if not hc:
                return False, "no HEALTHCHECK directive"
            if hc[-1].args.upper().startswith("NONE"):
                return False, "HEALTHCHECK NONE disables the health check"
            return True, f"line {hc[-1].line}"

        return check

    checks: list[Check] = []
    for svc, path in dockerfiles.items():
        checks.append(Check(f"{svc} Dockerfile exists and is readable", dockerfile_readable(path)))
    for svc in dockerfiles:
        checks.append(Check(f"{svc} Docker image exists", image_exists(svc), advisory=True))
    for variant, raw in config.compose_files.items():
        checks.append(Check(f"{variant} compose file is valid", compose_parses(raw)))
    for svc, path in dockerfiles.items():
        checks.append(Check(f"{svc} .dockerignore exists", dockerignore_exists(path)))
    for svc in dockerfiles:
        checks.append(Check(f"{svc} image size", image_size(svc), advisory=True))
    for svc in config.multistage_services:
        if svc in dockerfiles:
            checks.append(Check(f"{svc} uses multi-stage build", multistage(dockerfiles[svc])))
    for svc, path in dockerfiles.items():
        checks.append(Check(f"{svc} Dockerfile uses non-root user", non_root_user(path)))
    for svc, path in dockerfiles.items():
        checks.append(Check(f"{svc} Dockerfile has health check", healthcheck(path)))
    return checks
