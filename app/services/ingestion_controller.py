"""
app/services/ingestion_controller.py

Per-file ingestion state machine and administrative operations.

A stored file moves through::

    UPLOADED/PENDING -> PROCESSING -> SUCCESS | WARNING | ERROR

Each transition is committed immediately so dashboards observe progress.
Ingestion failures never propagate to the caller; they are recorded on the
control record. The one exception is ``SchemaCatalogError`` (a deployment
defect), which is recorded and then re-raised.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from functools import lru_cache
from pathlib import Path, PurePosixPath

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_ingestion_settings
from db.models.file_import_control import FileImportControl, FileImportStatus
from db.repositories.batch_loader import BatchLoader
from db.repositories.errors import (
    ControlRecordPersistenceError,
    FileStorageError,
    SchemaCatalogError,
    SchemaProvisioningError,
)
from db.repositories.file_control_repository import FileControlRepository
from db.repositories.schema_provisioner import SchemaProvisioner
from db.repositories.storage import FileStorageBackend, LocalFileStorage
from db.repositories.types import TablePurgeResult
from ingestion.catalog import TableId, default_schema_catalog
from ingestion.classifier import FileType, classify, classify_file_name
from ingestion.competence import (
    UNKNOWN_COMPETENCE,
    competence_from_file_name,
    is_well_formed_competence,
    normalize_competence,
)
from ingestion.mappers import RowMapper, default_segment_rows, map_segment_catalog, select_mapper
from ingestion.readers import read_rows
from ingestion.records import CanonicalRecord

logger = logging.getLogger(__name__)

SEED_SOURCE = "seed"


# ---------------------------------------------------------------------------
# Results and errors
# ---------------------------------------------------------------------------


class AdminErrorCode:
    INVALID_ARGUMENT = "invalid-argument"
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    INTERNAL = "internal"


class AdminOperationError(Exception):
    """
    Raised by administrative operations; ``code`` maps to an HTTP status.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


@dataclass(frozen=True)
class ControlRecordView:
    """
    Detached snapshot of a control record.
    """

    file_id: str
    file_name: str
    storage_path: str | None
    file_type: str | None
    status: str
    rows_processed: int
    reference_date: str | None
    error_details: str | None
    target_table: str | None
    started_at: datetime | None
    processed_at: datetime | None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, control: FileImportControl) -> ControlRecordView:
        return cls(
            file_id=control.file_id,
            file_name=control.file_name,
            storage_path=control.storage_path,
            file_type=control.file_type,
            status=control.status,
            rows_processed=control.rows_processed or 0,
            reference_date=control.reference_date,
            error_details=control.error_details,
            target_table=control.target_table,
            started_at=control.started_at,
            processed_at=control.processed_at,
            updated_at=control.updated_at,
        )


@dataclass(frozen=True)
class IngestionOutcome:
    file_id: str
    file_name: str
    status: str
    file_type: str
    rows_processed: int = 0
    reference_date: str = UNKNOWN_COMPETENCE
    target_table: str | None = None
    error_details: str | None = None


@dataclass(frozen=True)
class AdminResult:
    success: bool
    message: str | None = None
    tables: list[dict[str, object]] = field(default_factory=list)
    outcome: IngestionOutcome | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def base_file_name(file_name_or_path: str) -> str:
    return PurePosixPath(file_name_or_path.replace("\\", "/")).name


def file_id_for(file_name: str) -> str:
    """
    Control-record key: the base name without its extension.
    """

    return PurePosixPath(base_file_name(file_name)).stem


def resolve_reference_date(
    existing: str | None,
    content_competence: str | None,
    file_name: str,
) -> str:
    """
    Existing well-formed value, then content, then file name, then UNKNOWN.
    """

    if is_well_formed_competence(existing):
        return existing  # type: ignore[return-value]
    if content_competence:
        return content_competence
    return competence_from_file_name(file_name) or UNKNOWN_COMPETENCE


def _has_data_base(record: CanonicalRecord) -> bool:
    return any(item.name == "data_base" for item in fields(record))


def map_rows(
    mapper: RowMapper,
    rows: Sequence[dict[str, str]],
    file_name: str,
) -> tuple[list[CanonicalRecord], str | None]:
    """
    Map every row, skipping rejected ones. Returns the records and the first
    parseable competence found among them; rejected rows and unparseable
    data_base values do not count toward the file's competence.
    """

    records: list[CanonicalRecord] = []
    competence: str | None = None
    for row in rows:
        record = mapper(row, file_name)
        if record is None:
            continue
        records.append(record)
        if competence is None and _has_data_base(record):
            competence = normalize_competence(getattr(record, "data_base"))
    return records, competence


def _inherit_competence(records: list[CanonicalRecord], reference_date: str) -> list[CanonicalRecord]:
    if reference_date == UNKNOWN_COMPETENCE:
        return records
    return [
        replace(record, data_base=reference_date)
        if _has_data_base(record) and not getattr(record, "data_base")
        else record
        for record in records
    ]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class IngestionController:
    """
    Runs the per-file ingestion pipeline and the privileged admin operations.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        provisioner: SchemaProvisioner,
        loader: BatchLoader,
        storage: FileStorageBackend,
        raw_uploads_prefix: str = "raw-uploads/",
        max_error_detail_length: int = 2000,
    ) -> None:
        self._session_factory = session_factory
        self._provisioner = provisioner
        self._loader = loader
        self._storage = storage
        self._raw_uploads_prefix = raw_uploads_prefix
        self._max_error_detail_length = max(1, max_error_detail_length)

    @property
    def provisioner(self) -> SchemaProvisioner:
        return self._provisioner

    @property
    def storage(self) -> FileStorageBackend:
        return self._storage

    @property
    def raw_uploads_prefix(self) -> str:
        return self._raw_uploads_prefix

    # -- storage events ------------------------------------------------------

    def handle_storage_event(
        self,
        file_bytes: bytes,
        file_name: str | None,
        storage_path: str,
    ) -> IngestionOutcome | None:
        """
        Entry point for "object finalized" notifications. Paths outside the
        raw-uploads prefix are ignored and yield None.
        """

        if not storage_path.startswith(self._raw_uploads_prefix):
            logger.info(
                "Ignoring storage event outside prefix storage_path=%s prefix=%s",
                storage_path,
                self._raw_uploads_prefix,
            )
            return None
        return self.ingest(file_bytes, base_file_name(file_name or storage_path), storage_path)

    def ingest(self, file_bytes: bytes, file_name: str, storage_path: str | None) -> IngestionOutcome:
        file_id = file_id_for(file_name)
        control = self._write_control(
            file_id,
            lambda repository: repository.mark_processing(
                file_id,
                file_name=file_name,
                storage_path=storage_path,
            ),
        )
        logger.info("File processing started file_id=%s storage_path=%s", file_id, storage_path)

        file_type = FileType.UNKNOWN
        reference_date = control.reference_date or UNKNOWN_COMPETENCE
        temp_path: str | None = None
        try:
            temp_path = self._persist_temp_file(file_bytes, file_name)
            parsed = read_rows(Path(temp_path).read_bytes(), file_name)
            file_type = classify(file_name, parsed.headers)
            mapper = select_mapper(file_type, parsed.headers)
            if file_type == FileType.UNKNOWN or mapper is None:
                return self._finish(
                    file_id,
                    file_name,
                    status=FileImportStatus.ERROR,
                    file_type=FileType.UNKNOWN,
                    reference_date=resolve_reference_date(control.reference_date, None, file_name),
                    error_details=(
                        f"Unrecognized file layout for '{file_name}': neither the file name nor "
                        "the column headers match a known disclosure format."
                    ),
                )

            records, content_competence = map_rows(mapper, parsed.rows, file_name)
            reference_date = resolve_reference_date(control.reference_date, content_competence, file_name)
            if not records:
                return self._finish(
                    file_id,
                    file_name,
                    status=FileImportStatus.WARNING,
                    file_type=file_type,
                    reference_date=reference_date,
                    error_details=(
                        f"No valid rows found in {parsed.row_count} data row(s); "
                        "identifying columns are missing or empty."
                    ),
                )

            records = _inherit_competence(records, reference_date)
            records_by_table: dict[str, list[CanonicalRecord]] = {}
            for record in records:
                records_by_table.setdefault(record.table_id, []).append(record)

            loaded = 0
            for table_id, table_records in records_by_table.items():
                self._provisioner.ensure(table_id)
                self._loader.delete_by_file(table_id, file_name)
                loaded += self._loader.load(table_id, table_records)

            return self._finish(
                file_id,
                file_name,
                status=FileImportStatus.SUCCESS,
                file_type=file_type,
                reference_date=reference_date,
                rows_processed=loaded,
                target_table=",".join(records_by_table),
            )
        except SchemaCatalogError as exc:
            self._fail(file_id, file_name, file_type, reference_date, exc)
            raise
        except Exception as exc:
            return self._fail(file_id, file_name, file_type, reference_date, exc)
        finally:
            if temp_path is not None:
                self._delete_file_quietly(temp_path)

    def register_upload(self, file_name: str, storage_path: str) -> ControlRecordView:
        """
        Record a freshly stored upload before ingestion starts.
        """

        file_id = file_id_for(file_name)

        def _register(repository: FileControlRepository) -> FileImportControl:
            existing = repository.get(file_id)
            reference_date = competence_from_file_name(file_name)
            if reference_date is None and existing is not None and is_well_formed_competence(existing.reference_date):
                reference_date = existing.reference_date
            return repository.upsert(
                file_id,
                file_name=file_name,
                storage_path=storage_path,
                file_type=classify_file_name(file_name),
                status=FileImportStatus.UPLOADED,
                rows_processed=0,
                reference_date=reference_date or UNKNOWN_COMPETENCE,
                error_details=None,
                target_table=None,
                started_at=None,
                processed_at=None,
            )

        view = self._write_control(file_id, _register)
        logger.info(
            "Upload registered file_id=%s file_type=%s reference_date=%s",
            file_id,
            view.file_type,
            view.reference_date,
        )
        return view

    def mark_failed(self, file_id: str, message: str) -> None:
        self._write_control(
            file_id,
            lambda repository: repository.mark_finished(
                file_id,
                status=FileImportStatus.ERROR,
                error_details=message[: self._max_error_detail_length],
            ),
        )

    # -- queries -------------------------------------------------------------

    def get_control(self, file_id: str) -> ControlRecordView | None:
        with self._session_factory() as db:
            control = FileControlRepository(db).get(file_id)
            return ControlRecordView.from_model(control) if control is not None else None

    def list_controls(
        self,
        *,
        reference_from: str | None = None,
        reference_to: str | None = None,
        status: str | None = None,
    ) -> list[ControlRecordView]:
        with self._session_factory() as db:
            controls = FileControlRepository(db).list_controls(
                reference_from=reference_from,
                reference_to=reference_to,
                status=status,
            )
            return [ControlRecordView.from_model(control) for control in controls]

    # -- admin ---------------------------------------------------------------

    def delete_file(
        self,
        file_id: str,
        storage_path: str | None = None,
        *,
        caller_is_privileged: bool,
    ) -> AdminResult:
        """
        Remove a file's rows from every destination table, its stored bytes
        and its control record. Table purges are best-effort and reported
        individually.
        """

        self._require_privileged(caller_is_privileged, "delete_file")
        file_id = (file_id or "").strip()
        if not file_id:
            raise AdminOperationError(AdminErrorCode.INVALID_ARGUMENT, "file_id is required.")

        control = self.get_control(file_id)
        if control is None and not storage_path:
            raise AdminOperationError(AdminErrorCode.NOT_FOUND, f"File '{file_id}' is not known.")

        file_name = control.file_name if control is not None else base_file_name(storage_path or "")
        path = storage_path or (control.storage_path if control is not None else None)

        purge_results = self._loader.purge_file(file_name)
        for result in purge_results:
            if result.success:
                logger.info(
                    "Purged file rows file_id=%s table_id=%s rows=%d",
                    file_id,
                    result.table_id,
                    result.rows_deleted,
                )
            else:
                logger.warning(
                    "Failed to purge file rows file_id=%s table_id=%s error=%s",
                    file_id,
                    result.table_id,
                    result.error,
                )

        storage_error: str | None = None
        if path:
            try:
                self._storage.delete(storage_path=path)
            except FileStorageError as exc:
                logger.exception("Failed to delete stored file file_id=%s storage_path=%s", file_id, path)
                storage_error = str(exc)

        try:
            with self._session_factory() as db, db.begin():
                FileControlRepository(db).delete(file_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete control record file_id=%s", file_id)
            raise AdminOperationError(AdminErrorCode.INTERNAL, f"Failed to delete control record: {exc}") from exc

        success = storage_error is None and all(result.success for result in purge_results)
        message = f"File '{file_id}' deleted."
        if not success:
            message = f"File '{file_id}' deleted with errors."
            if storage_error:
                message += f" Storage: {storage_error}"
        logger.info("File deleted file_id=%s success=%s", file_id, success)
        return AdminResult(
            success=success,
            message=message,
            tables=[result.to_dict() for result in purge_results],
        )

    def reprocess_file(
        self,
        storage_path: str,
        file_id: str | None = None,
        *,
        caller_is_privileged: bool,
    ) -> AdminResult:
        """
        Re-run ingestion for a stored file. Its control record is updated in place.
        """

        self._require_privileged(caller_is_privileged, "reprocess_file")
        storage_path = (storage_path or "").strip()
        if not storage_path:
            raise AdminOperationError(AdminErrorCode.INVALID_ARGUMENT, "storage_path is required.")

        try:
            content = self._storage.read(storage_path=storage_path)
        except FileStorageError as exc:
            raise AdminOperationError(AdminErrorCode.NOT_FOUND, str(exc)) from exc

        file_name = base_file_name(storage_path)
        if file_id and file_id != file_id_for(file_name):
            logger.warning(
                "Reprocess file_id does not match storage path file_id=%s derived=%s",
                file_id,
                file_id_for(file_name),
            )

        try:
            outcome = self.ingest(content, file_name, storage_path)
        except SchemaCatalogError as exc:
            raise AdminOperationError(AdminErrorCode.INTERNAL, str(exc)) from exc

        return AdminResult(
            success=outcome.status != FileImportStatus.ERROR,
            message=f"Reprocessed '{outcome.file_id}' with status {outcome.status}.",
            outcome=outcome,
        )

    def reset_all(self, *, caller_is_privileged: bool) -> AdminResult:
        """
        Recreate every destination table, seed the segment catalog and clear
        all control records.
        """

        self._require_privileged(caller_is_privileged, "reset_all")
        logger.warning("System reset requested")

        results: list[TablePurgeResult] = []
        for table_id in self._provisioner.catalog.table_ids:
            try:
                self._provisioner.recreate(table_id)
            except (SchemaProvisioningError, SQLAlchemyError) as exc:
                logger.exception("Failed to recreate table_id=%s", table_id)
                results.append(TablePurgeResult(table_id=table_id, success=False, error=str(exc)))
                continue
            results.append(TablePurgeResult(table_id=table_id, success=True))

        segments_ready = any(result.success and result.table_id == TableId.SEGMENTS for result in results)
        if not segments_ready:
            raise AdminOperationError(AdminErrorCode.INTERNAL, "Failed to recreate destination tables.")

        seeds = [record for record in (map_segment_catalog(row, SEED_SOURCE) for row in default_segment_rows()) if record]
        try:
            seeded = self._loader.load(TableId.SEGMENTS, seeds)
            with self._session_factory() as db, db.begin():
                cleared = FileControlRepository(db).delete_all()
        except SQLAlchemyError as exc:
            logger.exception("System reset failed after recreating tables")
            raise AdminOperationError(AdminErrorCode.INTERNAL, f"System reset failed: {exc}") from exc

        logger.warning("System reset completed segments_seeded=%d control_records_cleared=%d", seeded, cleared)
        return AdminResult(
            success=all(result.success for result in results),
            message="System reset, tables recreated and base segments seeded.",
            tables=[result.to_dict() for result in results],
        )

    # -- internals -----------------------------------------------------------

    def _require_privileged(self, caller_is_privileged: bool, operation: str) -> None:
        if not caller_is_privileged:
            logger.warning("Rejected unprivileged admin call operation=%s", operation)
            raise AdminOperationError(AdminErrorCode.PERMISSION_DENIED, "Administrator privileges are required.")

    def _write_control(
        self,
        file_id: str,
        write: Callable[[FileControlRepository], FileImportControl],
    ) -> ControlRecordView:
        # Two concurrent first writers can both miss the row; the loser retries as an update.
        for attempt in (1, 2):
            try:
                with self._session_factory() as db, db.begin():
                    return ControlRecordView.from_model(write(FileControlRepository(db)))
            except IntegrityError as exc:
                if attempt == 2:
                    raise ControlRecordPersistenceError(
                        f"Failed to write control record '{file_id}': {exc}"
                    ) from exc
                logger.warning("Control record write conflict, retrying file_id=%s", file_id)
        raise ControlRecordPersistenceError(f"Failed to write control record '{file_id}'.")

    def _finish(
        self,
        file_id: str,
        file_name: str,
        *,
        status: str,
        file_type: str,
        reference_date: str,
        rows_processed: int = 0,
        target_table: str | None = None,
        error_details: str | None = None,
    ) -> IngestionOutcome:
        if error_details:
            error_details = error_details[: self._max_error_detail_length]
        self._write_control(
            file_id,
            lambda repository: repository.mark_finished(
                file_id,
                status=status,
                rows_processed=rows_processed,
                error_details=error_details,
                file_type=file_type,
                reference_date=reference_date,
                target_table=target_table,
            ),
        )
        log = logger.info if status == FileImportStatus.SUCCESS else logger.warning
        log(
            "File processing finished file_id=%s status=%s file_type=%s rows=%d reference_date=%s",
            file_id,
            status,
            file_type,
            rows_processed,
            reference_date,
        )
        return IngestionOutcome(
            file_id=file_id,
            file_name=file_name,
            status=status,
            file_type=file_type,
            rows_processed=rows_processed,
            reference_date=reference_date,
            target_table=target_table,
            error_details=error_details,
        )

    def _fail(
        self,
        file_id: str,
        file_name: str,
        file_type: str,
        reference_date: str,
        exc: Exception,
    ) -> IngestionOutcome:
        error_message = f"{type(exc).__name__}: {exc}"
        logger.exception("File processing failed file_id=%s error=%s", file_id, error_message)
        try:
            return self._finish(
                file_id,
                file_name,
                status=FileImportStatus.ERROR,
                file_type=file_type,
                reference_date=reference_date,
                error_details=error_message,
            )
        except Exception:
            logger.exception("Failed to persist failed file state file_id=%s", file_id)
            return IngestionOutcome(
                file_id=file_id,
                file_name=file_name,
                status=FileImportStatus.ERROR,
                file_type=file_type,
                reference_date=reference_date,
                error_details=error_message[: self._max_error_detail_length],
            )

    def _persist_temp_file(self, content: bytes, file_name: str) -> str:
        _, ext = os.path.splitext(file_name)
        with tempfile.NamedTemporaryFile(delete=False, prefix="ingestion_", suffix=ext or ".bin") as temp_file:
            temp_file.write(content)
            return temp_file.name

    def _delete_file_quietly(self, file_path: str) -> None:
        try:
            os.remove(file_path)
        except OSError:
            return


@lru_cache(maxsize=1)
def get_ingestion_controller() -> IngestionController:
    from db.session import get_engine, get_session_factory

    settings = get_ingestion_settings()
    engine = get_engine()
    provisioner = SchemaProvisioner(
        engine,
        default_schema_catalog(),
        dataset=settings.dataset,
        max_retries=settings.provision_max_retries,
    )
    return IngestionController(
        session_factory=get_session_factory(),
        provisioner=provisioner,
        loader=BatchLoader(engine, provisioner, batch_size=settings.batch_size),
        storage=LocalFileStorage(settings.storage_dir, prefix=settings.raw_uploads_prefix),
        raw_uploads_prefix=settings.raw_uploads_prefix,
        max_error_detail_length=settings.max_error_detail_length,
    )
