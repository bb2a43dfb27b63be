"""
tests/test_storage.py

Local bucket-style storage for raw uploads.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from db.repositories.errors import FileStorageError
from db.repositories.storage import LocalFileStorage, build_upload_path, sanitize_file_name


def test_sanitize_keeps_accents_and_strips_directories() -> None:
    assert sanitize_file_name("../../etc/202403 Imóveis (1).csv") == "202403_Imóveis_1_.csv"
    assert sanitize_file_name("C:\\tmp\\Segmentos.xlsx") == "Segmentos.xlsx"


def test_sanitize_rejects_empty_names() -> None:
    with pytest.raises(FileStorageError):
        sanitize_file_name("  ")


def test_build_upload_path_uses_day_partition() -> None:
    uploaded_at = datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)

    assert build_upload_path("202403_Imoveis.csv", uploaded_at=uploaded_at) == "raw-uploads/2024-03-05/202403_Imoveis.csv"
    assert (
        build_upload_path("a.csv", prefix="inbox", uploaded_at=uploaded_at) == "inbox/2024-03-05/a.csv"
    )


def test_save_read_delete_round_trip(tmp_path) -> None:
    storage = LocalFileStorage(tmp_path)

    stored = storage.save(file_name="202403_Imoveis.csv", content=b"a;b\n", content_type="text/csv")

    assert stored.storage_path.startswith("raw-uploads/")
    assert stored.file_size_bytes == 4
    assert stored.mime_type == "text/csv"
    assert len(stored.checksum) == 64
    assert storage.exists(storage_path=stored.storage_path)
    assert storage.read(storage_path=stored.storage_path) == b"a;b\n"
    assert not any(path.name.endswith(".tmp") for path in tmp_path.rglob("*"))

    storage.delete(storage_path=stored.storage_path)
    storage.delete(storage_path=stored.storage_path)

    assert not storage.exists(storage_path=stored.storage_path)
    with pytest.raises(FileStorageError):
        storage.read(storage_path=stored.storage_path)


def test_paths_outside_root_are_rejected(tmp_path) -> None:
    storage = LocalFileStorage(tmp_path)

    with pytest.raises(FileStorageError):
        storage.read(storage_path="raw-uploads/../../secret.csv")
