"""
tests/test_normalizer.py

Header normalization, candidate lookup and Brazilian number parsing.
"""

from __future__ import annotations

import math

import pytest

from ingestion.normalizer import (
    digits_only,
    find_value,
    has_header,
    normalize_key,
    normalized_payload,
    parse_count,
    parse_number,
    parse_optional_number,
)


class TestNormalizeKey:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Código do grupo", "codigodogrupo"),
            ("CÓDIGO_DO_GRUPO", "codigodogrupo"),
            ("Unidade_da_Federação", "unidadedafederacao"),
            ("  Taxa de administração (%) ", "taxadeadministracao"),
            ("Quantidade_de_cotas_excluídas", "quantidadedecotasexcluidas"),
        ],
    )
    def test_strips_accents_case_and_punctuation(self, raw: str, expected: str) -> None:
        assert normalize_key(raw) == expected

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty_input_yields_empty_token(self, raw) -> None:
        assert normalize_key(raw) == ""

    @pytest.mark.parametrize("raw", ["Código do grupo", "Nº Assembléia", "R$ Valor", "UF"])
    def test_is_idempotent(self, raw: str) -> None:
        once = normalize_key(raw)
        assert normalize_key(once) == once


class TestFindValue:
    def test_exact_candidate_matches_normalized_header(self) -> None:
        row = {"CNPJ da Administradora": "12.345.678/0001-90"}
        assert find_value(row, ["CNPJ_da_Administradora"]) == "12.345.678/0001-90"

    def test_fragment_candidate_requires_all_parts(self) -> None:
        row = {"Código do segmento": "3", "Nome do grupo": "X"}
        assert find_value(row, [["codigo", "grupo"]]) is None
        assert find_value(row, [["codigo", "segmento"]]) == "3"

    def test_candidates_are_tried_in_order(self) -> None:
        row = {"Grupo": "generic", "Código_do_grupo": "specific"}
        assert find_value(row, ["Código_do_grupo", "Grupo"]) == "specific"
        assert find_value(row, ["Grupo", "Código_do_grupo"]) == "generic"

    def test_returns_none_without_match(self) -> None:
        assert find_value({"a": "1"}, ["b", ["c", "d"]]) is None

    def test_has_header(self) -> None:
        assert has_header(["UF", "CNPJ"], ["uf"])
        assert not has_header(["Estado"], ["UF"])


class TestParseNumber:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.234,56", 1234.56),
            ("100.000,00", 100000.0),
            ("1.234", 1234.0),
            ("R$ 2.500,10", 2500.1),
            ("12,5", 12.5),
            ("42", 42.0),
            (7, 7.0),
            (3.5, 3.5),
        ],
    )
    def test_brazilian_formats(self, raw, expected: float) -> None:
        assert parse_number(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "-", "abc", "1,2,3x", float("nan"), float("inf")])
    def test_absent_or_malformed_yields_zero(self, raw) -> None:
        value = parse_number(raw)
        assert value == 0.0
        assert not math.isnan(value)

    def test_optional_variant_keeps_absent_distinct(self) -> None:
        assert parse_optional_number("") is None
        assert parse_optional_number("abc") is None
        assert parse_optional_number("0") == 0.0

    def test_parse_count_rounds(self) -> None:
        assert parse_count("5") == 5
        assert parse_count("1.200") == 1200
        assert parse_count(None) == 0


def test_digits_only() -> None:
    assert digits_only("12.345.678/0001-90") == "12345678000190"
    assert digits_only(None) == ""


def test_normalized_payload_keeps_first_occurrence() -> None:
    payload = normalized_payload({"Data base": "2024-03", "DATA_BASE": "ignored", "": "x"})
    assert payload == {"database": "2024-03"}
