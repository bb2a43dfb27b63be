"""
Typed DTOs used by repository storage, provisioning and loading flows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StoredFileMetadata:
    """
    Metadata produced by the storage backend after saving a file.
    """

    file_name: str
    storage_path: str
    mime_type: str | None
    file_size_bytes: int
    checksum: str
    stored_at: datetime


@dataclass(frozen=True)
class TablePurgeResult:
    """
    Outcome of a file-scoped delete against one destination table.
    """

    table_id: str
    success: bool
    rows_deleted: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "table": self.table_id,
            "success": self.success,
            "rows_deleted": self.rows_deleted,
        }
        if self.error:
            payload["error"] = self.error
        return payload
