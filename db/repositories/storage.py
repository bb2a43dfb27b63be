"""
Storage backend abstractions for raw disclosure files.
"""

from __future__ import annotations

import hashlib
import os
import re
from datetime import datetime, timezone
from mimetypes import guess_type
from pathlib import Path, PurePosixPath
from typing import Protocol

from db.repositories.errors import FileStorageError
from db.repositories.types import StoredFileMetadata

DEFAULT_RAW_UPLOADS_PREFIX = "raw-uploads/"

_UNSAFE_CHARS = re.compile(r"[^\w.-]+")


class FileStorageBackend(Protocol):
    """
    Abstract object storage used by the upload and admin flows.
    """

    def save(
        self,
        *,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> StoredFileMetadata:
        ...

    def read(self, *, storage_path: str) -> bytes:
        ...

    def exists(self, *, storage_path: str) -> bool:
        ...

    def delete(self, *, storage_path: str) -> None:
        ...


def sanitize_file_name(file_name: str) -> str:
    safe_name = PurePosixPath(file_name.replace("\\", "/")).name.strip()
    safe_name = _UNSAFE_CHARS.sub("_", safe_name).strip("._")
    if not safe_name:
        raise FileStorageError("Invalid file name.")
    return safe_name


def build_upload_path(
    file_name: str,
    *,
    prefix: str = DEFAULT_RAW_UPLOADS_PREFIX,
    uploaded_at: datetime | None = None,
) -> str:
    """
    ``raw-uploads/{YYYY-MM-DD}/{sanitized name}``
    """

    day = (uploaded_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return f"{prefix.rstrip('/')}/{day}/{sanitize_file_name(file_name)}"


class LocalFileStorage:
    """
    Filesystem stand-in for an object-storage bucket: ``storage_path`` values
    are bucket keys relative to ``root_dir``. Saving the same name on the
    same day overwrites the previous object, as a bucket would.
    """

    def __init__(
        self,
        root_dir: str | Path = "data/uploads",
        *,
        prefix: str = DEFAULT_RAW_UPLOADS_PREFIX,
    ) -> None:
        self._root_dir = Path(root_dir)
        self._prefix = prefix

    def _resolve(self, storage_path: str) -> Path:
        key = PurePosixPath(storage_path.lstrip("/"))
        if not key.parts or ".." in key.parts:
            raise FileStorageError(f"Invalid storage path '{storage_path}'.")
        return self._root_dir.joinpath(*key.parts)

    def save(
        self,
        *,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
    ) -> StoredFileMetadata:
        stored_at = datetime.now(timezone.utc)
        storage_path = build_upload_path(file_name, prefix=self._prefix, uploaded_at=stored_at)
        target = self._resolve(storage_path)

        tmp_path = target.with_name(f".{target.name}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(content)
            os.replace(tmp_path, target)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise FileStorageError(f"Failed to store '{storage_path}'.") from exc

        return StoredFileMetadata(
            file_name=target.name,
            storage_path=storage_path,
            mime_type=content_type or guess_type(target.name)[0],
            file_size_bytes=len(content),
            checksum=hashlib.sha256(content).hexdigest(),
            stored_at=stored_at,
        )

    def read(self, *, storage_path: str) -> bytes:
        target = self._resolve(storage_path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise FileStorageError(f"Stored file '{storage_path}' does not exist.") from None
        except OSError as exc:
            raise FileStorageError(f"Failed to read stored file '{storage_path}'.") from exc

    def exists(self, *, storage_path: str) -> bool:
        return self._resolve(storage_path).is_file()

    def delete(self, *, storage_path: str) -> None:
        """Delete an object; deleting a missing object is a no-op."""
        try:
            self._resolve(storage_path).unlink(missing_ok=True)
        except OSError as exc:
            raise FileStorageError(f"Failed to delete stored file '{storage_path}'.") from exc
