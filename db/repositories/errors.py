"""
Repository-layer exceptions for storage, provisioning and loading flows.
"""

from __future__ import annotations

from ingestion.catalog import SchemaCatalogError


class IngestionRepositoryError(Exception):
    """Base exception for ingestion repository failures."""


class FileStorageError(IngestionRepositoryError):
    """Raised when storing, reading or deleting raw files fails."""


class SchemaProvisioningError(IngestionRepositoryError):
    """Raised when a destination dataset or table cannot be created."""


class BatchLoadError(IngestionRepositoryError):
    """
    Raised when one insert batch fails. Earlier batches stay committed.
    """

    def __init__(self, *, table_id: str, batch_start: int, batch_end: int, reason: str) -> None:
        super().__init__(
            f"Failed to load rows {batch_start}-{batch_end} into '{table_id}': {reason}"
        )
        self.table_id = table_id
        self.batch_start = batch_start
        self.batch_end = batch_end


class ControlRecordPersistenceError(IngestionRepositoryError):
    """Raised when a file control record cannot be written."""


__all__ = [
    "IngestionRepositoryError",
    "FileStorageError",
    "SchemaCatalogError",
    "SchemaProvisioningError",
    "BatchLoadError",
    "ControlRecordPersistenceError",
]
