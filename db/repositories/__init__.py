"""
Repository layer exports.
"""

from db.repositories.batch_loader import BatchLoader
from db.repositories.errors import (
    BatchLoadError,
    ControlRecordPersistenceError,
    FileStorageError,
    IngestionRepositoryError,
    SchemaCatalogError,
    SchemaProvisioningError,
)
from db.repositories.file_control_repository import FileControlRepository
from db.repositories.schema_provisioner import SchemaProvisioner
from db.repositories.storage import FileStorageBackend, LocalFileStorage, build_upload_path
from db.repositories.types import StoredFileMetadata, TablePurgeResult

__all__ = [
    "BatchLoader",
    "FileControlRepository",
    "SchemaProvisioner",
    "FileStorageBackend",
    "LocalFileStorage",
    "build_upload_path",
    "StoredFileMetadata",
    "TablePurgeResult",
    "IngestionRepositoryError",
    "FileStorageError",
    "SchemaCatalogError",
    "SchemaProvisioningError",
    "BatchLoadError",
    "ControlRecordPersistenceError",
]
