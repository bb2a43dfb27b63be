"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and caller privileges.
"""

from __future__ import annotations

import hmac

from fastapi import File, Header, HTTPException, UploadFile, status

from app.config import get_admin_settings
from ingestion.readers import SUPPORTED_EXTENSIONS, file_extension

UPLOAD_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "application/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}


def get_disclosure_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV or spreadsheet by extension.
    """

    filename = (file.filename or "").strip()
    content_type = (file.content_type or "").strip().lower()

    if not filename or file_extension(filename) not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV or XLSX files are allowed.",
        )
    if content_type and content_type not in UPLOAD_CONTENT_TYPES and content_type != "application/octet-stream":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported content type '{content_type}'.",
        )

    return file


def is_privileged_caller(x_admin_token: str | None = Header(default=None)) -> bool:
    """
    Resolve the caller's privilege from the ``X-Admin-Token`` header.

    Never raises: the service layer decides what an unprivileged caller may do.
    """

    expected = get_admin_settings().admin_api_token
    if not expected or not x_admin_token:
        return False
    return hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8"))
