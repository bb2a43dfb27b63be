"""
tests/test_batch_loader.py

Batched loads and file-scoped deletes against in-memory SQLite.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from db.repositories.errors import BatchLoadError
from ingestion.catalog import TableId
from ingestion.records import DetailedGroupRecord, SegmentCatalogRecord


def _group(code: str, file_name: str = "a.csv") -> DetailedGroupRecord:
    return DetailedGroupRecord(
        data_base="2024-03",
        cnpj_raiz="12345678",
        codigo_grupo=code,
        codigo_segmento=1,
        tipo_bem="imoveis",
        arquivo_origem=file_name,
        metricas_raw={"codigodogrupo": code},
    )


def _count(engine, table, file_name: str | None = None) -> int:
    stmt = select(func.count()).select_from(table)
    if file_name is not None:
        stmt = stmt.where(table.c.arquivo_origem == file_name)
    with engine.connect() as connection:
        return connection.execute(stmt).scalar_one()


def test_load_inserts_in_batches(engine, provisioner, loader) -> None:
    table = provisioner.ensure(TableId.DETAILED_GROUPS)

    inserted = loader.load(TableId.DETAILED_GROUPS, [_group(str(index)) for index in range(5)])

    assert inserted == 5
    assert _count(engine, table) == 5
    with engine.connect() as connection:
        row = connection.execute(select(table).where(table.c.codigo_grupo == "0")).mappings().one()
    assert row["ingested_at"] is not None
    assert row["metricas_raw"] == {"codigodogrupo": "0"}


def test_load_of_nothing_is_noop(loader) -> None:
    assert loader.load(TableId.DETAILED_GROUPS, []) == 0


def test_failed_batch_keeps_earlier_batches(engine, provisioner, loader) -> None:
    table = provisioner.ensure(TableId.DETAILED_GROUPS)
    broken = _group("x")
    object.__setattr__(broken, "codigo_grupo", None)
    records = [_group("1"), _group("2"), broken, _group("4")]

    with pytest.raises(BatchLoadError) as exc_info:
        loader.load(TableId.DETAILED_GROUPS, records)

    assert exc_info.value.batch_start == 2
    assert exc_info.value.batch_end == 3
    assert _count(engine, table) == 2


def test_delete_by_file_is_scoped(engine, provisioner, loader) -> None:
    table = provisioner.ensure(TableId.DETAILED_GROUPS)
    loader.load(TableId.DETAILED_GROUPS, [_group("1", "a.csv"), _group("2", "b.csv"), _group("3", "a.csv")])

    deleted = loader.delete_by_file(TableId.DETAILED_GROUPS, "a.csv")

    assert deleted == 2
    assert _count(engine, table, "a.csv") == 0
    assert _count(engine, table, "b.csv") == 1


def test_delete_by_file_on_missing_table(loader) -> None:
    assert loader.delete_by_file(TableId.REGIONAL_QUARTERLY, "a.csv") == 0


def test_purge_file_reports_every_table(provisioner, loader) -> None:
    provisioner.ensure(TableId.SEGMENTS)
    loader.load(TableId.SEGMENTS, [SegmentCatalogRecord(codigo_segmento=1, nome_segmento="Imóveis", arquivo_origem="a.csv")])

    results = loader.purge_file("a.csv")

    assert [result.table_id for result in results] == list(provisioner.catalog.table_ids)
    assert all(result.success for result in results)
    by_table = {result.table_id: result for result in results}
    assert by_table[TableId.SEGMENTS].rows_deleted == 1
    assert by_table[TableId.DETAILED_GROUPS].rows_deleted == 0
