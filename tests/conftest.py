"""
Shared fixtures: an in-memory SQLite database standing in for Postgres,
with destination tables created without a dataset schema.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 (registers ORM models on Base.metadata)
from app.services.ingestion_controller import IngestionController
from db.base import Base
from db.repositories.batch_loader import BatchLoader
from db.repositories.schema_provisioner import SchemaProvisioner
from db.repositories.storage import LocalFileStorage
from db.session import build_session_factory
from ingestion.catalog import default_schema_catalog


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine):
    return build_session_factory(engine)


@pytest.fixture()
def provisioner(engine: Engine) -> SchemaProvisioner:
    return SchemaProvisioner(engine, default_schema_catalog(), max_retries=1)


@pytest.fixture()
def loader(engine: Engine, provisioner: SchemaProvisioner) -> BatchLoader:
    return BatchLoader(engine, provisioner, batch_size=2)


@pytest.fixture()
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture()
def controller(session_factory, provisioner, loader, storage) -> IngestionController:
    return IngestionController(
        session_factory=session_factory,
        provisioner=provisioner,
        loader=loader,
        storage=storage,
        raw_uploads_prefix="raw-uploads/",
        max_error_detail_length=200,
    )
