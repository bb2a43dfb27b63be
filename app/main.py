"""
app/main.py

FastAPI application factory for the disclosure ingestion service.

    uvicorn app.main:app
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _validate_env() -> None:
    """
    Fail fast on configuration the service cannot run without, reporting
    every problem at once. A missing admin token only disables the admin
    endpoints, so it is a warning.
    """

    from app.config import get_admin_settings
    from db.config import DATABASE_URL_VARIABLES, configured_database_variables

    problems: list[str] = []
    if not configured_database_variables():
        problems.append(f"No database URL configured; set one of {', '.join(DATABASE_URL_VARIABLES)}.")

    for name in ("INGEST_BATCH_SIZE", "PROVISION_MAX_RETRIES", "INGEST_MAX_ERROR_DETAIL_LENGTH"):
        raw = os.getenv(name, "").strip()
        if raw and not raw.isdigit():
            problems.append(f"{name}='{raw}' is not a non-negative integer.")

    if problems:
        raise RuntimeError("Invalid service configuration:\n" + "\n".join(f"  - {item}" for item in problems))

    if not get_admin_settings().admin_api_token:
        logger.warning("ADMIN_API_TOKEN is not set; every administrative call will be rejected.")


def _check_control_plane() -> None:
    """
    Connect once and confirm the migrated control tables exist. Destination
    tables are not checked; they are provisioned on first use.
    """

    from sqlalchemy import inspect, text

    import db.models  # noqa: F401 (registers control-plane models on Base.metadata)
    from db.base import Base
    from db.config import mask_database_url
    from db.session import get_engine

    engine = get_engine()
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError(f"Database unavailable at {mask_database_url(str(engine.url))}.") from exc

    missing = sorted(set(Base.metadata.tables) - set(inspect(engine).get_table_names()))
    if missing:
        logger.critical("Control tables missing tables=%s; run 'alembic upgrade head'.", ",".join(missing))
        raise RuntimeError(f"Control tables missing: {', '.join(missing)}. Run migrations and restart.")
    logger.info("Database ready target=%s", mask_database_url(str(engine.url)))


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _check_control_plane()
    yield


def create_app() -> FastAPI:
    _configure_logging()
    _validate_env()

    application = FastAPI(
        title="Consortium Disclosure Ingestion API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import file_imports_router

    application.include_router(file_imports_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
