"""
tests/test_schema_provisioner.py

Destination table provisioning against in-memory SQLite.
"""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import OperationalError

from db.repositories import schema_provisioner as provisioner_module
from db.repositories.errors import SchemaCatalogError, SchemaProvisioningError
from db.repositories.schema_provisioner import SchemaProvisioner
from ingestion.catalog import FieldType, SchemaCatalog, SchemaField, TableId, default_schema_catalog
from ingestion.records import SegmentCatalogRecord


def test_ensure_creates_table_from_catalog(engine, provisioner) -> None:
    assert not provisioner.table_exists(TableId.SEGMENTS)

    table = provisioner.ensure(TableId.SEGMENTS)

    assert provisioner.table_exists(TableId.SEGMENTS)
    columns = {column["name"]: column for column in inspect(engine).get_columns(TableId.SEGMENTS)}
    expected = [field.name for field in default_schema_catalog().fields(TableId.SEGMENTS)]
    assert list(columns) == expected
    assert columns["codigo_segmento"]["nullable"] is False
    assert columns["metricas_raw"]["nullable"] is True
    assert table.name == TableId.SEGMENTS


def test_ensure_is_idempotent(engine, provisioner) -> None:
    provisioner.ensure(TableId.DETAILED_GROUPS)
    provisioner.ensure(TableId.DETAILED_GROUPS)

    other = SchemaProvisioner(engine, default_schema_catalog())
    other.ensure(TableId.DETAILED_GROUPS)

    assert inspect(engine).get_table_names().count(TableId.DETAILED_GROUPS) == 1


def test_unknown_table_raises_catalog_error(provisioner) -> None:
    with pytest.raises(SchemaCatalogError):
        provisioner.ensure("does_not_exist")


def test_custom_catalog_is_honored(engine) -> None:
    catalog = SchemaCatalog(
        {"custom": (SchemaField("name", FieldType.STRING, "REQUIRED"), SchemaField("arquivo_origem", FieldType.STRING))},
        version="test",
    )
    provisioner = SchemaProvisioner(engine, catalog)

    provisioner.ensure("custom")

    assert [column["name"] for column in inspect(engine).get_columns("custom")] == ["name", "arquivo_origem"]
    with pytest.raises(SchemaCatalogError):
        provisioner.ensure(TableId.SEGMENTS)


def test_invalid_field_type_is_rejected() -> None:
    with pytest.raises(SchemaCatalogError):
        SchemaField("x", "DECIMAL")


def test_recreate_discards_rows(engine, provisioner, loader) -> None:
    provisioner.ensure(TableId.SEGMENTS)
    loader.load(TableId.SEGMENTS, [SegmentCatalogRecord(codigo_segmento=1, nome_segmento="Imóveis", arquivo_origem="a")])

    table = provisioner.recreate(TableId.SEGMENTS)

    with engine.connect() as connection:
        assert connection.execute(select(table)).all() == []


def test_transient_failures_are_retried(monkeypatch, provisioner) -> None:
    monkeypatch.setattr(provisioner_module.time, "sleep", lambda _seconds: None)
    original_create = provisioner._create
    calls = {"count": 0}

    def flaky_create(table):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("CREATE TABLE", {}, Exception("database is locked"))
        return original_create(table)

    monkeypatch.setattr(provisioner, "_create", flaky_create)

    provisioner.ensure(TableId.ADMINISTRATORS)

    assert calls["count"] == 2
    assert provisioner.table_exists(TableId.ADMINISTRATORS)


def test_persistent_failures_raise_provisioning_error(monkeypatch, provisioner) -> None:
    monkeypatch.setattr(provisioner_module.time, "sleep", lambda _seconds: None)

    def always_fail(table):
        raise OperationalError("CREATE TABLE", {}, Exception("connection refused"))

    monkeypatch.setattr(provisioner, "_create", always_fail)

    with pytest.raises(SchemaProvisioningError):
        provisioner.ensure(TableId.ADMINISTRATORS)
    assert not provisioner.table_exists(TableId.ADMINISTRATORS)


def test_concurrent_ensure_creates_table_once(provisioner) -> None:
    barrier = threading.Barrier(4)
    errors: list[Exception] = []

    def worker() -> None:
        barrier.wait()
        try:
            provisioner.ensure(TableId.SEGMENTS)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert provisioner.table_exists(TableId.SEGMENTS)
