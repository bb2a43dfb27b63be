"""
db/models/file_import_control.py

Per-file processing state. Keyed by the file's base name without extension,
so re-uploading or reprocessing the same logical file updates one record.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class FileImportStatus:
    PENDING = "PENDING"
    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"

    TERMINAL = (SUCCESS, WARNING, ERROR)


class FileImportControl(Base, TimestampMixin):
    __tablename__ = "file_imports_control"

    file_id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="File base name without extension",
    )
    file_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    storage_path: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
    )
    file_type: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="segments, real_estate, movables, regional_uf, administrators, unknown",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=FileImportStatus.PENDING,
    )
    rows_processed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    reference_date: Mapped[str | None] = mapped_column(
        String(16),
        nullable=True,
        comment="YYYY-MM competence or UNKNOWN",
    )
    error_details: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    target_table: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_file_imports_control_status", "status"),
        Index("ix_file_imports_control_reference_date", "reference_date"),
    )
