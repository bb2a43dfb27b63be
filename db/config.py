"""
Environment-driven database configuration for the API, migrations and CLI.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import make_url

CLOUD_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
DATABASE_URL_VARIABLES = ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")

_env_loaded = False


def load_env_files() -> None:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` once per process.
    Variables already present in the environment win.
    """

    global _env_loaded
    if _env_loaded:
        return

    project_root = Path(__file__).resolve().parents[1]
    for env_path in (project_root / ".env", project_root / ".env.local"):
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export ") :].lstrip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = (part.strip() for part in line.split("=", 1))
            if key:
                os.environ.setdefault(key, value.strip('"').strip("'"))
    _env_loaded = True


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite ``postgres://`` and ``postgresql://`` URLs to the psycopg driver.
    """

    url = url.strip()
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme) :]
    return url


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


def mask_database_url(url: str) -> str:
    """Render a URL for logs with the password hidden."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        return "<unparseable database url>"


def configured_database_variables() -> list[str]:
    load_env_files()
    return [name for name in DATABASE_URL_VARIABLES if os.getenv(name, "").strip()]


def resolve_database_url() -> str:
    """
    DATABASE_URL first, then CLOUD_DATABASE_URL when ENVIRONMENT is
    cloud-like, then LOCAL_DATABASE_URL.
    """

    load_env_files()

    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    for name in DATABASE_URL_VARIABLES:
        if name == "CLOUD_DATABASE_URL" and environment not in CLOUD_ENVIRONMENTS:
            continue
        value = os.getenv(name, "").strip()
        if value:
            return normalize_postgres_url(value)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or LOCAL_DATABASE_URL "
        "(CLOUD_DATABASE_URL is honoured only when ENVIRONMENT is "
        f"one of {', '.join(sorted(CLOUD_ENVIRONMENTS))})."
    )


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "").strip() or default)
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineSettings:
    url: str
    echo: bool = False
    pool_recycle: int = 1800
    pool_size: int = 5
    max_overflow: int = 10


def engine_settings(database_url: str | None = None) -> EngineSettings:
    """
    Engine options from SQL_ECHO, DB_POOL_RECYCLE, DB_POOL_SIZE and
    DB_MAX_OVERFLOW.
    """

    load_env_files()
    return EngineSettings(
        url=normalize_postgres_url(database_url) if database_url else resolve_database_url(),
        echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
        pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
        pool_size=_env_int("DB_POOL_SIZE", 5),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
    )
