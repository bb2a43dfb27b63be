from __future__ import annotations

import pytest

from ingestion.competence import (
    competence_from_file_name,
    is_well_formed_competence,
    normalize_competence,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-03", "2024-03"),
        ("2024-3", "2024-03"),
        ("2024-03-31", "2024-03"),
        ("2024-03-31T00:00:00", "2024-03"),
        ("2024-03-31 00:00:00", "2024-03"),
        ("202403", "2024-03"),
        ("03/2024", "2024-03"),
        ("31/03/2024", "2024-03"),
        (" 2024-12 ", "2024-12"),
    ],
)
def test_normalize_competence_accepts_known_shapes(raw: str, expected: str) -> None:
    assert normalize_competence(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "2024-13", "202400", "13/2024", "March 2024", "24-03"])
def test_normalize_competence_rejects_invalid(raw) -> None:
    assert normalize_competence(raw) is None


@pytest.mark.parametrize(
    ("value", "expected"),
    [("2024-03", True), ("2024-3", False), ("UNKNOWN", False), (None, False), ("2024-00", False)],
)
def test_is_well_formed_competence(value, expected: bool) -> None:
    assert is_well_formed_competence(value) is expected


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("202509Consorcios_UF.csv", "2025-09"),
        ("2025-09_Segmentos.csv", "2025-09"),
        ("raw-uploads/2025-10-01/2025_09_Imoveis.xlsx", "2025-09"),
        ("Imoveis_202509.csv", None),
        ("202513_Imoveis.csv", None),
    ],
)
def test_competence_from_file_name(file_name: str, expected) -> None:
    assert competence_from_file_name(file_name) == expected
