"""
ingestion/competence.py

Reference-period ("competence") parsing. A competence is the ``YYYY-MM``
period a disclosure describes, independent of when it was uploaded.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Any

UNKNOWN_COMPETENCE = "UNKNOWN"

_WELL_FORMED = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")
_ISO_LIKE = re.compile(r"^(\d{4})-(\d{1,2})(?:-|$|T|\s)")
_COMPACT = re.compile(r"^(\d{4})(\d{2})$")
_SLASHED = re.compile(r"^(?:\d{1,2}/)?(\d{1,2})/(\d{4})$")
_FILE_NAME_PREFIX = re.compile(r"^(\d{4})[-_]?(\d{2})")


def _format(year: str, month: str) -> str | None:
    month_number = int(month)
    if not 1 <= month_number <= 12:
        return None
    return f"{year}-{month_number:02d}"


def normalize_competence(value: Any) -> str | None:
    """
    Normalize a row-level date value to ``YYYY-MM``.

    Accepted shapes: ``YYYY-MM``, ``YYYY-MM-DD`` (and timestamps that start
    with it), ``YYYYMM``, ``MM/YYYY`` and ``DD/MM/YYYY``. Returns None when
    nothing matches.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    match = _ISO_LIKE.match(text)
    if match:
        return _format(match.group(1), match.group(2))

    match = _COMPACT.match(text)
    if match:
        return _format(match.group(1), match.group(2))

    match = _SLASHED.match(text)
    if match:
        return _format(match.group(2), match.group(1))

    return None


def is_well_formed_competence(value: str | None) -> bool:
    return bool(value) and _WELL_FORMED.match(value) is not None


def competence_from_file_name(file_name: str) -> str | None:
    """
    Read a leading ``YYYYMM`` / ``YYYY-MM`` / ``YYYY_MM`` prefix from a file name,
    e.g. ``202509Consorcios_UF.csv`` -> ``2025-09``.
    """

    base_name = PurePosixPath(file_name.replace("\\", "/")).name
    match = _FILE_NAME_PREFIX.match(base_name)
    if not match:
        return None
    return _format(match.group(1), match.group(2))
