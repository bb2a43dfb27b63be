"""
Batched inserts into destination tables and file-scoped deletes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from db.repositories.errors import BatchLoadError
from db.repositories.schema_provisioner import SchemaProvisioner
from db.repositories.types import TablePurgeResult
from ingestion.records import CanonicalRecord, record_to_row

logger = logging.getLogger(__name__)


class BatchLoader:
    """
    Appends canonical records to destination tables, one transaction per batch.

    Loads are not deduplicated and failed batches are not retried; callers
    purge a file's previous rows (``delete_by_file``) before reloading it.
    """

    def __init__(self, engine: Engine, provisioner: SchemaProvisioner, *, batch_size: int = 1000) -> None:
        self._engine = engine
        self._provisioner = provisioner
        self._batch_size = max(1, batch_size)

    def load(self, table_id: str, records: Sequence[CanonicalRecord]) -> int:
        """
        Insert records in sequential batches and return the number inserted.

        A failing batch raises ``BatchLoadError``; batches committed before it
        are kept and the remaining batches are not attempted.
        """

        if not records:
            return 0

        table = self._provisioner.table_for(table_id)
        ingested_at = datetime.now(timezone.utc)
        inserted = 0

        for start in range(0, len(records), self._batch_size):
            chunk = records[start : start + self._batch_size]
            rows: list[dict[str, Any]] = []
            for record in chunk:
                row = record_to_row(record)
                row["ingested_at"] = ingested_at
                rows.append(row)

            try:
                with self._engine.begin() as connection:
                    connection.execute(table.insert(), rows)
            except SQLAlchemyError as exc:
                logger.exception(
                    "Batch insert failed table_id=%s batch_start=%d batch_end=%d",
                    table_id,
                    start,
                    start + len(chunk) - 1,
                )
                raise BatchLoadError(
                    table_id=table_id,
                    batch_start=start,
                    batch_end=start + len(chunk) - 1,
                    reason=str(exc.orig if getattr(exc, "orig", None) is not None else exc),
                ) from exc

            inserted += len(chunk)
            logger.info(
                "Batch inserted table_id=%s batch_start=%d rows=%d",
                table_id,
                start,
                len(chunk),
            )

        return inserted

    def delete_by_file(self, table_id: str, file_name: str) -> int:
        """
        Delete every row of ``table_id`` loaded from ``file_name``.
        Returns 0 when the table does not exist yet.
        """

        if not self._provisioner.table_exists(table_id):
            return 0
        table = self._provisioner.table_for(table_id)
        with self._engine.begin() as connection:
            result = connection.execute(delete(table).where(table.c.arquivo_origem == file_name))
        deleted = max(0, result.rowcount or 0)
        logger.info("Deleted rows by file table_id=%s file_name=%s rows=%d", table_id, file_name, deleted)
        return deleted

    def purge_file(self, file_name: str, table_ids: Iterable[str] | None = None) -> list[TablePurgeResult]:
        """
        Best-effort ``delete_by_file`` across tables; one failure does not stop the rest.
        """

        results: list[TablePurgeResult] = []
        for table_id in table_ids if table_ids is not None else self._provisioner.catalog.table_ids:
            try:
                deleted = self.delete_by_file(table_id, file_name)
            except SQLAlchemyError as exc:
                logger.exception("Failed to purge table_id=%s file_name=%s", table_id, file_name)
                results.append(TablePurgeResult(table_id=table_id, success=False, error=str(exc)))
                continue
            results.append(TablePurgeResult(table_id=table_id, success=True, rows_deleted=deleted))
        return results
