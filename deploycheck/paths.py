from __future__ import annotations

from pathlib import Path


def is_relative_to(path: Path, base: Path) -> bool:
    try:
        path.relative_to(base)
        return True
    except ValueError:
        return False


def relpath_or_str(path: Path, base: Path) -> str:
    if not is_relative_to(path, base):
        return str(path)
    return str(path.relative_to(base))


def resolve_config_path(root: Path, raw: str) -> Path:
    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = root / p
    return p.resolve()


def resolve_project_root(raw: str | None) -> Path:
    s = str(raw or "").strip() or "."
    p = Path(s).expanduser().resolve()
    if not p.exists() or not p.is_dir():
        raise FileNotFoundError(f"project root not found: {p}")
    return p
