from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

ROOT_USERNAME_KEY = "MONGO_INITDB_ROOT_USERNAME"
ROOT_PASSWORD_KEY = "MONGO_INITDB_ROOT_PASSWORD"
DATABASE_KEY = "MONGO_DATABASE"

DEFAULT_ROOT_USERNAME = "admin"
DEFAULT_DATABASE = "ecommerce"


def parse_dotenv(path: str | Path | None) -> dict[str, str]:
    """Parse KEY=VALUE pairs from a dotenv file.

    - Lines starting with `#` or blank lines are ignored.
    - Supports optional `export KEY=VALUE`.
    - The first `=` separates key and value; matching surrounding quotes are stripped.
    - When a key appears more than once, the first occurrence wins.
    - A missing or unreadable file yields an empty mapping.
    """
    if path is None:
        return {}

    raw = str(path).strip()
    if not raw:
        return {}

    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = (Path.cwd() / p).resolve()

    if not p.exists() or not p.is_file():
        return {}

    try:
        text = p.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return {}

    values: dict[str, str] = {}
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("export "):
            s = s[len("export ") :].lstrip()
        if "=" not in s:
            continue

        key, value = s.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]

        if key not in values:
            values[key] = value

    return values


@dataclass(frozen=True)
class DatabaseCredentials:
    username: str
    password: str
    database: str


class EnvReader:
    """Read-only view over a dotenv file; the file is parsed once on first access."""

    def __init__(self, path: str | Path | None) -> None:
        self._path = path
        self._values: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        if self._values is None:
            self._values = parse_dotenv(self._path)
        return self._values

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def database_credentials(self) -> DatabaseCredentials | None:
        password = self.get(ROOT_PASSWORD_KEY)
        if not password:
            return None
        username = self.get(ROOT_USERNAME_KEY) or DEFAULT_ROOT_USERNAME
        database = self.get(DATABASE_KEY) or DEFAULT_DATABASE
        return DatabaseCredentials(username=username, password=password, database=database)
