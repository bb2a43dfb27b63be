"""
app/schemas package marker.
"""

from app.schemas.file_imports import (
    AdminOperationResponse,
    FileImportControlResponse,
    FileImportListResponse,
    IngestionOutcomeResponse,
    StorageEventResponse,
    UploadAcceptedResponse,
)

__all__ = [
    "AdminOperationResponse",
    "FileImportControlResponse",
    "FileImportListResponse",
    "IngestionOutcomeResponse",
    "StorageEventResponse",
    "UploadAcceptedResponse",
]
