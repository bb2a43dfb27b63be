"""
db/session.py

Engine and session factory shared by the API, the ingestion controller and
the provisioning script. Both are built on first use so importing this
module never touches the database.
"""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import engine_settings, is_postgres_url, mask_database_url

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def create_db_engine(database_url: str | None = None) -> Engine:
    settings = engine_settings(database_url)
    if not is_postgres_url(settings.url):
        raise RuntimeError(f"Only PostgreSQL URLs are supported, got {mask_database_url(settings.url)}.")

    logger.info(
        "Creating database engine target=%s pool_size=%d max_overflow=%d",
        mask_database_url(settings.url),
        settings.pool_size,
        settings.max_overflow,
    )
    return create_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=True,
        pool_recycle=settings.pool_recycle,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Sessions are used in short ``with factory() as db, db.begin():`` blocks;
    objects stay readable after commit.
    """

    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())
    return _session_factory
