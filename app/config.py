"""
app/config.py

Service settings read from the environment (and `.env` files).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


def _env(name: str) -> str | None:
    """
    Stripped value of an environment variable; blank counts as unset.
    `.env` files are loaded on first use.
    """

    load_env_files()
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _get_bool_env(name: str, default: bool) -> bool:
    value = _env(name)
    return default if value is None else value.lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    value = _env(name)
    try:
        return default if value is None else int(value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    return _env(name) or default


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for disclosure file ingestion.
    """

    batch_size: int = 1000
    raw_uploads_prefix: str = "raw-uploads/"
    dataset: str | None = "consorcio_data"
    storage_dir: str = "data/uploads"
    provision_max_retries: int = 2
    max_error_detail_length: int = 2000
    background_ingestion: bool = True


@dataclass(frozen=True)
class AdminSettings:
    """
    Credentials for privileged (administrative) endpoints.
    """

    admin_api_token: str | None = None


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    prefix = _get_str_env("RAW_UPLOADS_PREFIX", "raw-uploads/")
    return IngestionSettings(
        batch_size=max(1, _get_int_env("INGEST_BATCH_SIZE", 1000)),
        raw_uploads_prefix=prefix if prefix.endswith("/") else f"{prefix}/",
        dataset=_env("DESTINATION_DATASET") or "consorcio_data",
        storage_dir=_get_str_env("UPLOAD_STORAGE_DIR", "data/uploads"),
        provision_max_retries=max(0, _get_int_env("PROVISION_MAX_RETRIES", 2)),
        max_error_detail_length=max(100, _get_int_env("INGEST_MAX_ERROR_DETAIL_LENGTH", 2000)),
        background_ingestion=_get_bool_env("INGEST_IN_BACKGROUND", True),
    )


@lru_cache(maxsize=1)
def get_admin_settings() -> AdminSettings:
    """
    Return admin credentials. A missing token disables privileged access.
    """

    return AdminSettings(admin_api_token=_env("ADMIN_API_TOKEN"))
