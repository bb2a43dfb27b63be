"""
Schemas for file import upload, event, status and admin endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FileImportControlResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: str
    file_name: str
    storage_path: str | None = None
    file_type: str | None = None
    status: str
    rows_processed: int = 0
    reference_date: str | None = None
    error_details: str | None = None
    target_table: str | None = None
    started_at: datetime | None = None
    processed_at: datetime | None = None
    updated_at: datetime | None = None


class FileImportListResponse(BaseModel):
    files: list[FileImportControlResponse] = Field(default_factory=list)


class UploadAcceptedResponse(BaseModel):
    file_id: str
    file_name: str
    storage_path: str
    status: str
    file_type: str | None = None
    reference_date: str | None = None
    file_size_bytes: int
    checksum: str


class StorageEventRequest(BaseModel):
    storage_path: str = Field(min_length=1)
    file_name: str | None = None


class IngestionOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    file_id: str
    file_name: str
    status: str
    file_type: str
    rows_processed: int = 0
    reference_date: str
    target_table: str | None = None
    error_details: str | None = None


class StorageEventResponse(BaseModel):
    processed: bool
    outcome: IngestionOutcomeResponse | None = None


class DeleteFileRequest(BaseModel):
    file_id: str = ""
    storage_path: str | None = None


class ReprocessFileRequest(BaseModel):
    storage_path: str = ""
    file_id: str | None = None


class AdminOperationResponse(BaseModel):
    success: bool
    message: str | None = None
    tables: list[dict[str, Any]] | None = None
    outcome: IngestionOutcomeResponse | None = None
