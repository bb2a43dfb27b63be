"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.file_import_control import FileImportControl, FileImportStatus

__all__ = [
    "FileImportControl",
    "FileImportStatus",
]
