"""
ingestion/readers.py

Turns raw file bytes into header-keyed rows. CSV is parsed with the stdlib
``csv`` module; spreadsheets go through pandas/openpyxl. Every value comes
back as a string so that number parsing stays in one place (the normalizer).
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import pandas as pd

CSV_EXTENSIONS = frozenset({".csv", ".txt"})
SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xlsm"})
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | SPREADSHEET_EXTENSIONS

_DELIMITER_CANDIDATES = (";", ",", "\t")
_ENCODINGS = ("utf-8-sig", "cp1252")


class UnsupportedFileFormatError(ValueError):
    """
    Raised when a file extension is not a supported tabular format.
    """


class UnreadableFileError(ValueError):
    """
    Raised when file content cannot be decoded or parsed.
    """


@dataclass(frozen=True)
class ParsedFile:
    headers: tuple[str, ...]
    rows: list[dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def file_extension(file_name: str) -> str:
    return PurePosixPath(file_name.replace("\\", "/")).suffix.lower()


def read_rows(content: bytes, file_name: str) -> ParsedFile:
    """
    Parse CSV or XLSX content into ordered ``header -> value`` rows.
    """

    extension = file_extension(file_name)
    if extension in CSV_EXTENSIONS:
        return _read_csv(content)
    if extension in SPREADSHEET_EXTENSIONS:
        return _read_spreadsheet(content)
    raise UnsupportedFileFormatError(
        f"Unsupported file format '{extension or file_name}'. Expected one of: "
        + ", ".join(sorted(SUPPORTED_EXTENSIONS))
    )


def _decode(content: bytes) -> str:
    for encoding in _ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnreadableFileError("File content is not valid UTF-8 or Windows-1252 text.")


def detect_delimiter(header_line: str) -> str:
    counts = {delimiter: header_line.count(delimiter) for delimiter in _DELIMITER_CANDIDATES}
    best = max(_DELIMITER_CANDIDATES, key=lambda delimiter: counts[delimiter])
    return best if counts[best] > 0 else ";"


def _read_csv(content: bytes) -> ParsedFile:
    text = _decode(content)
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    if not first_line:
        return ParsedFile(headers=())

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=detect_delimiter(first_line))
    try:
        records = [record for record in reader if any(cell.strip() for cell in record)]
    except csv.Error as exc:
        raise UnreadableFileError(f"Malformed CSV content: {exc}") from exc

    if not records:
        return ParsedFile(headers=())

    headers = tuple(cell.strip() for cell in records[0])
    rows: list[dict[str, str]] = []
    for record in records[1:]:
        row: dict[str, str] = {}
        for index, header in enumerate(headers):
            if not header or header in row:
                continue
            row[header] = record[index].strip() if index < len(record) else ""
        rows.append(row)
    return ParsedFile(headers=headers, rows=rows)


def _read_spreadsheet(content: bytes) -> ParsedFile:
    try:
        frame = pd.read_excel(io.BytesIO(content), dtype=str, engine="openpyxl")
    except Exception as exc:
        raise UnreadableFileError(f"Unable to read spreadsheet: {exc}") from exc

    frame = frame.fillna("")
    headers = tuple(str(column).strip() for column in frame.columns)
    rows: list[dict[str, str]] = []
    for values in frame.itertuples(index=False, name=None):
        cells = [str(value).strip() for value in values]
        if not any(cells):
            continue
        row: dict[str, str] = {}
        for header, cell in zip(headers, cells):
            if header and header not in row:
                row[header] = cell
        rows.append(row)
    return ParsedFile(headers=headers, rows=rows)
