"""
db/config.py

Database URL resolution for the API, the cleanup script and Alembic.

PostgreSQL is the production target; SQLite is accepted for local runs and
tests. Without any configuration a file-backed SQLite database under
``data/`` is used.
"""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SQLITE_PATH = PROJECT_ROOT / "data" / "mediaplan.db"
ENV_FILES = (".env", ".env.local")
IN_MEMORY_SQLITE_URLS = frozenset({"sqlite://", "sqlite:///:memory:"})


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export ") :]
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(root: Path = PROJECT_ROOT) -> None:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` under ``root``.
    Variables already present in the process environment win.
    """

    for filename in ENV_FILES:
        env_path = root / filename
        if not env_path.exists():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite bare postgres URLs to the psycopg 3 driver form.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix) :]
    return url


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def is_in_memory_sqlite_url(url: str) -> bool:
    return url in IN_MEMORY_SQLITE_URLS


def ensure_supported_url(url: str) -> str:
    normalized = normalize_postgres_url(url.strip())
    if not (normalized.startswith("postgresql") or is_sqlite_url(normalized)):
        raise RuntimeError(
            "Unsupported database URL scheme. Use a PostgreSQL or SQLite URL."
        )
    return normalized


def resolve_database_url() -> str:
    """
    Priority:
    1) DATABASE_URL (postgres or sqlite)
    2) SQLITE_PATH, as a file-backed SQLite database
    3) data/mediaplan.db under the project root
    """

    load_env_files()

    direct_url = (os.getenv("DATABASE_URL") or "").strip()
    if direct_url:
        return ensure_supported_url(direct_url)

    sqlite_path = Path((os.getenv("SQLITE_PATH") or "").strip() or DEFAULT_SQLITE_PATH)
    sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{sqlite_path.as_posix()}"
