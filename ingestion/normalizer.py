"""
ingestion/normalizer.py

Header-name normalization and value extraction for regulator disclosure rows.

Headers in these files drift between releases ("Código do grupo",
"Codigo_Grupo", "CÓDIGO_DO_GRUPO"), so every comparison happens on a
normalized token. Numbers use Brazilian formatting ("1.234,56").
"""

from __future__ import annotations

import math
import re
import unicodedata
from collections.abc import Mapping, Sequence
from typing import Any, Union

Candidate = Union[str, Sequence[str]]

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9]")
_NON_DIGITS = re.compile(r"\D")
_CURRENCY_AND_SPACES = re.compile(r"(R\$|\s)")


def normalize_key(text: Any) -> str:
    """
    Canonicalize a header or field name into a comparable token.

    Strips diacritics, lower-cases, and drops everything outside ``[a-z0-9]``.
    ``None`` and empty input yield ``""``.
    """

    if text is None:
        return ""
    value = str(text)
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_TOKEN_CHARS.sub("", stripped.lower())


def find_value(row: Mapping[str, Any], candidates: Sequence[Candidate]) -> Any | None:
    """
    Return the raw value of the first header matching a candidate.

    Candidates are tried strictly in order. A plain string matches a header
    whose normalized token is equal to it; a list of fragments matches the
    first header whose normalized token contains every fragment. More specific
    candidates must therefore come before generic fallbacks.
    """

    normalized_headers = [(header, normalize_key(header)) for header in row.keys()]

    for candidate in candidates:
        if isinstance(candidate, str):
            target = normalize_key(candidate)
            if not target:
                continue
            for header, token in normalized_headers:
                if token == target:
                    return row[header]
            continue

        parts = [normalize_key(part) for part in candidate]
        parts = [part for part in parts if part]
        if not parts:
            continue
        for header, token in normalized_headers:
            if all(part in token for part in parts):
                return row[header]

    return None


def has_header(headers: Sequence[str], candidates: Sequence[Candidate]) -> bool:
    """
    Return True when any header satisfies any candidate.
    """

    return find_value({header: True for header in headers}, candidates) is not None


def digits_only(value: Any) -> str:
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def text_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def _parse(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    raw = str(value).strip()
    if raw in {"", "-"}:
        return None

    cleaned = _CURRENCY_AND_SPACES.sub("", raw)
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(".", "")

    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_number(value: Any) -> float:
    """
    Convert a Brazilian-formatted numeric string to a float.

    Returns 0 for ``None``, empty, ``"-"`` and anything unparsable. A value
    containing a comma is read as decimal notation ("1.234,56" -> 1234.56);
    otherwise dots are thousands separators ("1.234" -> 1234.0).
    """

    parsed = _parse(value)
    return 0.0 if parsed is None else parsed


def parse_optional_number(value: Any) -> float | None:
    """
    Same rules as ``parse_number`` but keeps "absent" distinguishable from zero.
    """

    return _parse(value)


def parse_count(value: Any) -> int:
    return int(round(parse_number(value)))


def normalized_payload(row: Mapping[str, Any]) -> dict[str, str]:
    """
    Re-key a row by normalized header token, keeping the first occurrence.
    """

    payload: dict[str, str] = {}
    for header, value in row.items():
        token = normalize_key(header)
        if not token or token in payload:
            continue
        payload[token] = text_value(value)
    return payload
