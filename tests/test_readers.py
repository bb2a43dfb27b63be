from __future__ import annotations

import io

import pytest
from openpyxl import Workbook

from ingestion.readers import (
    UnreadableFileError,
    UnsupportedFileFormatError,
    detect_delimiter,
    read_rows,
)


class TestCSV:
    def test_semicolon_with_quotes(self) -> None:
        content = 'CNPJ;Código_do_grupo;Valor\n"12345678";"G1";"1.234,56"\n'.encode("utf-8")
        parsed = read_rows(content, "file.csv")
        assert parsed.headers == ("CNPJ", "Código_do_grupo", "Valor")
        assert parsed.rows == [{"CNPJ": "12345678", "Código_do_grupo": "G1", "Valor": "1.234,56"}]

    def test_comma_delimited_with_bom(self) -> None:
        content = b"\xef\xbb\xbfa,b\n1,2\n"
        parsed = read_rows(content, "file.CSV")
        assert parsed.headers == ("a", "b")
        assert parsed.rows == [{"a": "1", "b": "2"}]

    def test_windows_1252_fallback(self) -> None:
        content = "Código;Descrição\n1;Imóveis\n".encode("cp1252")
        parsed = read_rows(content, "file.csv")
        assert parsed.headers == ("Código", "Descrição")
        assert parsed.rows[0]["Descrição"] == "Imóveis"

    def test_skips_empty_lines_and_pads_short_rows(self) -> None:
        content = b"a;b;c\n\n1;2\n;;\n4;5;6\n"
        parsed = read_rows(content, "file.csv")
        assert parsed.rows == [{"a": "1", "b": "2", "c": ""}, {"a": "4", "b": "5", "c": "6"}]

    def test_header_only_file(self) -> None:
        parsed = read_rows(b"a;b\n", "file.csv")
        assert parsed.headers == ("a", "b")
        assert parsed.row_count == 0

    def test_empty_file(self) -> None:
        assert read_rows(b"", "file.csv").headers == ()

    @pytest.mark.parametrize(
        ("line", "expected"),
        [("a;b;c", ";"), ("a,b,c", ","), ("a\tb\tc", "\t"), ("a;b,c;d", ";"), ("single", ";")],
    )
    def test_detect_delimiter(self, line: str, expected: str) -> None:
        assert detect_delimiter(line) == expected


class TestSpreadsheet:
    def test_reads_xlsx_as_strings(self) -> None:
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(["CNPJ", "UF", "Quantidade"])
        sheet.append(["12345678", "SP", "10"])
        sheet.append([None, None, None])
        sheet.append(["87654321", "RJ", None])
        buffer = io.BytesIO()
        workbook.save(buffer)

        parsed = read_rows(buffer.getvalue(), "202509Consorcios_UF.xlsx")

        assert parsed.headers == ("CNPJ", "UF", "Quantidade")
        assert parsed.rows == [
            {"CNPJ": "12345678", "UF": "SP", "Quantidade": "10"},
            {"CNPJ": "87654321", "UF": "RJ", "Quantidade": ""},
        ]

    def test_corrupt_xlsx(self) -> None:
        with pytest.raises(UnreadableFileError):
            read_rows(b"not a zip archive", "broken.xlsx")


def test_unsupported_extension() -> None:
    with pytest.raises(UnsupportedFileFormatError):
        read_rows(b"%PDF", "report.pdf")
