"""
Repository for per-file control records (processing state and history).
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select, delete, select
from sqlalchemy.orm import Session

from db.base import utcnow
from db.models.file_import_control import FileImportControl, FileImportStatus
from ingestion.competence import UNKNOWN_COMPETENCE


class FileControlRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, file_id: str) -> FileImportControl | None:
        return self._session.get(FileImportControl, file_id)

    def upsert(self, file_id: str, **fields: Any) -> FileImportControl:
        """
        Merge ``fields`` into the record for ``file_id``, creating it if absent.
        Fields not passed keep their stored values.
        """

        control = self.get(file_id)
        if control is None:
            control = FileImportControl(file_id=file_id, rows_processed=0, status=FileImportStatus.PENDING)
            self._session.add(control)
        for name, value in fields.items():
            setattr(control, name, value)
        self._session.flush()
        return control

    def mark_processing(
        self,
        file_id: str,
        *,
        file_name: str,
        storage_path: str | None,
    ) -> FileImportControl:
        return self.upsert(
            file_id,
            file_name=file_name,
            storage_path=storage_path,
            status=FileImportStatus.PROCESSING,
            error_details=None,
            started_at=utcnow(),
            processed_at=None,
        )

    def mark_finished(
        self,
        file_id: str,
        *,
        status: str,
        rows_processed: int = 0,
        error_details: str | None = None,
        **fields: Any,
    ) -> FileImportControl:
        return self.upsert(
            file_id,
            status=status,
            rows_processed=rows_processed,
            error_details=error_details,
            processed_at=utcnow(),
            **fields,
        )

    def delete(self, file_id: str) -> bool:
        control = self.get(file_id)
        if control is None:
            return False
        self._session.delete(control)
        self._session.flush()
        return True

    def delete_all(self) -> int:
        result = self._session.execute(delete(FileImportControl))
        return max(0, result.rowcount or 0)

    def list_controls(
        self,
        *,
        reference_from: str | None = None,
        reference_to: str | None = None,
        status: str | None = None,
        limit: int = 500,
    ) -> list[FileImportControl]:
        stmt: Select[tuple[FileImportControl]] = select(FileImportControl)

        if reference_from or reference_to:
            stmt = stmt.where(FileImportControl.reference_date != UNKNOWN_COMPETENCE)
        if reference_from:
            stmt = stmt.where(FileImportControl.reference_date >= reference_from)
        if reference_to:
            stmt = stmt.where(FileImportControl.reference_date <= reference_to)
        if status:
            stmt = stmt.where(FileImportControl.status == status)

        stmt = stmt.order_by(
            FileImportControl.reference_date.desc(),
            FileImportControl.file_id.asc(),
        ).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
