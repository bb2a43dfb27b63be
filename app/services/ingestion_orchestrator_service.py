"""
Orchestrator service for upload intake and ingestion dispatch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks, UploadFile

from app.config import get_ingestion_settings
from app.services.ingestion_controller import (
    ControlRecordView,
    IngestionController,
    IngestionOutcome,
    file_id_for,
    get_ingestion_controller,
)
from db.repositories.errors import FileStorageError

logger = logging.getLogger(__name__)


class IngestionTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class InlineTaskExecutor:
    """
    Runs tasks immediately in the calling thread.
    """

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        task(*args, **kwargs)


@dataclass(frozen=True)
class UploadAccepted:
    control: ControlRecordView
    storage_path: str
    file_size_bytes: int
    checksum: str


class IngestionOrchestratorService:
    """
    Stores uploads under the raw-uploads prefix and dispatches ingestion.
    """

    def __init__(self, *, controller: IngestionController | None = None) -> None:
        self._controller = controller or get_ingestion_controller()

    def accept_upload(self, *, executor: IngestionTaskExecutor, upload_file: UploadFile) -> UploadAccepted:
        file_name = upload_file.filename or "upload.csv"
        upload_file.file.seek(0)
        content = upload_file.file.read()

        stored = self._controller.storage.save(
            file_name=file_name,
            content=content,
            content_type=upload_file.content_type,
        )
        control = self._controller.register_upload(stored.file_name, stored.storage_path)
        logger.info(
            "Upload stored file_id=%s storage_path=%s size_bytes=%d",
            control.file_id,
            stored.storage_path,
            stored.file_size_bytes,
        )

        try:
            executor.submit(self._run_storage_event, stored.storage_path, stored.file_name)
        except Exception:
            self._controller.mark_failed(control.file_id, "Failed to schedule file ingestion.")
            raise

        return UploadAccepted(
            control=control,
            storage_path=stored.storage_path,
            file_size_bytes=stored.file_size_bytes,
            checksum=stored.checksum,
        )

    def handle_event(self, *, storage_path: str, file_name: str | None = None) -> IngestionOutcome | None:
        """
        Process an object-storage notification synchronously.
        Raises ``FileStorageError`` when the referenced object cannot be read.
        """

        if not storage_path.startswith(self._controller.raw_uploads_prefix):
            logger.info("Ignoring storage event outside prefix storage_path=%s", storage_path)
            return None
        content = self._controller.storage.read(storage_path=storage_path)
        return self._controller.handle_storage_event(content, file_name, storage_path)

    def _run_storage_event(self, storage_path: str, file_name: str) -> None:
        try:
            content = self._controller.storage.read(storage_path=storage_path)
        except FileStorageError as exc:
            logger.exception("Stored upload unreadable storage_path=%s", storage_path)
            self._controller.mark_failed(
                file_id_for(file_name),
                f"{type(exc).__name__}: {exc}",
            )
            return
        self._controller.handle_storage_event(content, file_name, storage_path)


def get_task_executor(background_tasks: BackgroundTasks) -> IngestionTaskExecutor:
    if get_ingestion_settings().background_ingestion:
        return FastAPIBackgroundTaskExecutor(background_tasks)
    return InlineTaskExecutor()


@lru_cache(maxsize=1)
def get_ingestion_orchestrator_service() -> IngestionOrchestratorService:
    return IngestionOrchestratorService()
