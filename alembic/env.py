"""
Alembic environment for the control-plane tables (``file_imports_control``).

Destination tables are provisioned at runtime inside the destination
dataset schema and are invisible to autogenerate.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import db.models  # noqa: F401 (registers control-plane models on Base.metadata)
from app.config import get_ingestion_settings
from db.base import Base
from db.config import is_postgres_url, load_env_files, normalize_postgres_url, resolve_database_url

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _include_name(name, type_, parent_names) -> bool:
    if type_ == "schema":
        return name != get_ingestion_settings().dataset
    return True


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    if type_ == "table":
        return getattr(obj, "schema", None) != get_ingestion_settings().dataset
    return True


def _migration_url() -> str:
    """
    ``-x db_url=...``, then ALEMBIC_DATABASE_URL, then ``sqlalchemy.url``
    from alembic.ini, then the application's own resolution order.
    """

    load_env_files()
    candidates = (
        context.get_x_argument(as_dictionary=True).get("db_url"),
        os.getenv("ALEMBIC_DATABASE_URL"),
        config.get_main_option("sqlalchemy.url"),
    )
    url = next((value.strip() for value in candidates if value and value.strip()), None)
    url = normalize_postgres_url(url) if url else resolve_database_url()
    if not is_postgres_url(url):
        raise RuntimeError("Migrations target PostgreSQL only.")
    return url


def _configure(**options) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        include_name=_include_name,
        include_object=_include_object,
        **options,
    )


def run_migrations_offline() -> None:
    _configure(url=_migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
