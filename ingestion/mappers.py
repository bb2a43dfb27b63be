"""
ingestion/mappers.py

Pure row -> canonical record functions, one per disclosure layout.

Every mapper has the signature ``(row, file_name) -> record | None`` and
returns None when the row lacks the fields that identify it (CNPJ root,
group code, state, segment code/name). Header candidates are ordered from
most to least specific; see ``ingestion.normalizer.find_value``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ingestion.classifier import FileType
from ingestion.competence import normalize_competence
from ingestion.normalizer import (
    Candidate,
    digits_only,
    find_value,
    has_header,
    normalized_payload,
    parse_count,
    parse_optional_number,
    text_value,
)
from ingestion.records import (
    AdministratorRecord,
    CanonicalRecord,
    ConsolidatedSeriesRecord,
    DetailedGroupRecord,
    RegionalQuarterlyRecord,
    SegmentCatalogRecord,
)

RowMapper = Callable[[Mapping[str, Any], str], "CanonicalRecord | None"]

REAL_ESTATE_SEGMENT = 1
_UF_PATTERN = re.compile(r"^[A-Z]{2}$")

CNPJ: Sequence[Candidate] = ("CNPJ_da_Administradora", "CNPJ", ["cnpj"])
DATA_BASE: Sequence[Candidate] = ("Data_base", ["data", "base"])
SEGMENT_CODE: Sequence[Candidate] = ("Código_do_segmento", ["codigo", "segmento"], "Codigo")
SEGMENT_NAME: Sequence[Candidate] = ("Nome_do_segmento", ["nome", "segmento"], "Segmento", "Descrição")
GROUP_CODE: Sequence[Candidate] = ("Código_do_grupo", ["codigo", "grupo"], "Grupo")
UF: Sequence[Candidate] = ("Unidade_da_Federação_do_consorciado", "UF", ["unidade", "federacao"], "Estado")
ADMINISTRATOR_NAME: Sequence[Candidate] = (
    "Nome_da_Administradora",
    "Nome_Administradora",
    ["nome", "administradora"],
    "Razão_Social",
    ["razaosocial"],
)

ADMIN_FEE: Sequence[Candidate] = ("Taxa_de_administração", ["taxa", "administracao"])
ACTIVE_GROUPS: Sequence[Candidate] = ("Quantidade_de_grupos_ativos", ["grupos", "ativos"])
QUOTAS_SOLD_MONTH: Sequence[Candidate] = ("Quantidade_de_cotas_comercializadas_no_mês", ["cotascomercializadas"])
QUOTAS_CURRENT: Sequence[Candidate] = ("Quantidade_de_cotas_ativas_em_dia", ["cotasativasemdia"])
# Exact-only: "naocontempladasinadimplentes" contains "contempladasinadimplentes".
QUOTAS_AWARDED_DEFAULTING: Sequence[Candidate] = ("Quantidade_de_cotas_ativas_contempladas_inadimplentes",)
QUOTAS_NOT_AWARDED_DEFAULTING: Sequence[Candidate] = (
    "Quantidade_de_cotas_ativas_não_contempladas_inadimplentes",
    ["naocontempladasinadimplentes"],
)
QUOTAS_AWARDED_MONTH: Sequence[Candidate] = (
    "Quantidade_de_cotas_ativas_contempladas_no_mês",
    ["contempladasnomes"],
)
QUOTAS_EXCLUDED: Sequence[Candidate] = ("Quantidade_de_cotas_excluídas",)
QUOTAS_PAID_OFF: Sequence[Candidate] = ("Quantidade_de_cotas_ativas_quitadas", ["cotasativasquitadas"])

AVERAGE_ASSET_VALUE: Sequence[Candidate] = ("Valor_médio_do_bem", ["valor", "medio", "bem"])
GROUP_TERM_MONTHS: Sequence[Candidate] = ("Prazo_do_grupo_em_meses", ["prazo", "grupo"], ["prazo"])
ASSEMBLY_NUMBER: Sequence[Candidate] = ("Número_da_assembleia_geral_ordinária", ["numero", "assembleia"])
CORRECTION_INDEX: Sequence[Candidate] = ("Índice_de_correção", ["indice", "correcao"])

QUARTER_ADHESIONS: Sequence[Candidate] = ("Quantidade_de_adesões_no_trimestre", ["adesoes"])
AWARDED_BY_BID: Sequence[Candidate] = ("Quantidade_de_consorciados_contemplados_por_lance", ["contempladosporlance"])
AWARDED_BY_DRAW: Sequence[Candidate] = (
    "Quantidade_de_consorciados_contemplados_por_sorteio",
    ["contempladosporsorteio"],
)
ACTIVE_AWARDED: Sequence[Candidate] = ("Quantidade_de_consorciados_ativos_contemplados", ["ativoscontemplados"])
ACTIVE_NOT_AWARDED: Sequence[Candidate] = (
    "Quantidade_de_consorciados_ativos_não_contemplados",
    ["ativosnaocontemplados"],
)
EXCLUDED_AWARDED: Sequence[Candidate] = (
    "Quantidade_de_consorciados_excluídos_contemplados",
    ["excluidoscontemplados"],
)
EXCLUDED_NOT_AWARDED: Sequence[Candidate] = (
    "Quantidade_de_consorciados_excluídos_não_contemplados",
    ["excluidosnaocontemplados"],
)

DEFAULT_SEGMENTS: tuple[tuple[int, str], ...] = (
    (1, "Imóveis"),
    (2, "Veículos Pesados"),
    (3, "Automóveis"),
    (4, "Motocicletas"),
    (5, "Bens Móveis Duráveis"),
    (6, "Serviços"),
)


def cnpj_root(value: Any) -> str:
    """
    First 8 digits of a CNPJ tax id (the administrator's root identifier).
    """

    return digits_only(value)[:8]


def competence_or_raw(value: Any) -> str:
    return normalize_competence(value) or text_value(value)


def _count(row: Mapping[str, Any], candidates: Sequence[Candidate]) -> int:
    return parse_count(find_value(row, candidates))


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _segment_code(row: Mapping[str, Any]) -> int | None:
    raw = digits_only(find_value(row, SEGMENT_CODE))
    return int(raw) if raw else None


def map_consolidated_series(row: Mapping[str, Any], file_name: str) -> ConsolidatedSeriesRecord | None:
    cnpj = cnpj_root(find_value(row, CNPJ))
    if not cnpj:
        return None

    current = _count(row, QUOTAS_CURRENT)
    awarded_defaulting = _count(row, QUOTAS_AWARDED_DEFAULTING)
    not_awarded_defaulting = _count(row, QUOTAS_NOT_AWARDED_DEFAULTING)
    awarded_month = _count(row, QUOTAS_AWARDED_MONTH)
    excluded = _count(row, QUOTAS_EXCLUDED)
    active_total = current + awarded_defaulting + not_awarded_defaulting

    return ConsolidatedSeriesRecord(
        data_base=competence_or_raw(find_value(row, DATA_BASE)),
        cnpj_raiz=cnpj,
        codigo_segmento=_segment_code(row) or 0,
        arquivo_origem=file_name,
        nome_administradora=text_value(find_value(row, ADMINISTRATOR_NAME)) or None,
        taxa_administracao=parse_optional_number(find_value(row, ADMIN_FEE)),
        grupos_ativos=_count(row, ACTIVE_GROUPS),
        cotas_comercializadas_mes=_count(row, QUOTAS_SOLD_MONTH),
        cotas_ativas_em_dia=current,
        cotas_contempladas_inadimplentes=awarded_defaulting,
        cotas_nao_contempladas_inadimplentes=not_awarded_defaulting,
        cotas_contempladas_mes=awarded_month,
        cotas_excluidas=excluded,
        cotas_quitadas=_count(row, QUOTAS_PAID_OFF),
        cotas_ativas_total=active_total,
        taxa_inadimplencia_total=_ratio(awarded_defaulting + not_awarded_defaulting, active_total),
        taxa_contemplacao_mensal=_ratio(awarded_month, active_total),
        taxa_exclusao=_ratio(excluded, active_total + excluded),
        metricas_raw=normalized_payload(row),
    )


def movables_parent_segment(raw_code: Any) -> int:
    """
    Reduce a movables sub-segment code to its parent: ``31 -> 3``, ``4 -> 4``.
    """

    digits = digits_only(raw_code)
    if not digits:
        return 0
    if len(digits) == 2:
        return int(digits) // 10
    return int(digits[0])


def _map_group(row: Mapping[str, Any], file_name: str, *, asset_kind: str) -> DetailedGroupRecord | None:
    cnpj = cnpj_root(find_value(row, CNPJ))
    group = text_value(find_value(row, GROUP_CODE))
    if not cnpj or not group:
        return None

    if asset_kind == FileType.REAL_ESTATE:
        segment = REAL_ESTATE_SEGMENT
        tipo_bem = "imoveis"
    else:
        segment = movables_parent_segment(find_value(row, SEGMENT_CODE))
        tipo_bem = "moveis"

    current = _count(row, QUOTAS_CURRENT)
    awarded_defaulting = _count(row, QUOTAS_AWARDED_DEFAULTING)
    not_awarded_defaulting = _count(row, QUOTAS_NOT_AWARDED_DEFAULTING)

    return DetailedGroupRecord(
        data_base=competence_or_raw(find_value(row, DATA_BASE)),
        cnpj_raiz=cnpj,
        codigo_grupo=group,
        codigo_segmento=segment,
        tipo_bem=tipo_bem,
        arquivo_origem=file_name,
        valor_medio_do_bem=parse_optional_number(find_value(row, AVERAGE_ASSET_VALUE)),
        taxa_administracao=parse_optional_number(find_value(row, ADMIN_FEE)),
        prazo_grupo_meses=_count(row, GROUP_TERM_MONTHS),
        numero_assembleia=_count(row, ASSEMBLY_NUMBER),
        indice_correcao=text_value(find_value(row, CORRECTION_INDEX)) or None,
        cotas_ativas_em_dia=current,
        cotas_contempladas_inadimplentes=awarded_defaulting,
        cotas_nao_contempladas_inadimplentes=not_awarded_defaulting,
        cotas_contempladas_mes=_count(row, QUOTAS_AWARDED_MONTH),
        cotas_excluidas=_count(row, QUOTAS_EXCLUDED),
        cotas_quitadas=_count(row, QUOTAS_PAID_OFF),
        cotas_ativas_total=current + awarded_defaulting + not_awarded_defaulting,
        metricas_raw=normalized_payload(row),
    )


def map_real_estate_group(row: Mapping[str, Any], file_name: str) -> DetailedGroupRecord | None:
    return _map_group(row, file_name, asset_kind=FileType.REAL_ESTATE)


def map_movables_group(row: Mapping[str, Any], file_name: str) -> DetailedGroupRecord | None:
    return _map_group(row, file_name, asset_kind=FileType.MOVABLES)


def map_regional_uf(row: Mapping[str, Any], file_name: str) -> RegionalQuarterlyRecord | None:
    cnpj = cnpj_root(find_value(row, CNPJ))
    uf = text_value(find_value(row, UF)).upper()
    if not cnpj or not _UF_PATTERN.match(uf):
        return None

    active_not_awarded = _count(row, ACTIVE_NOT_AWARDED)
    return RegionalQuarterlyRecord(
        data_base=competence_or_raw(find_value(row, DATA_BASE)),
        cnpj_raiz=cnpj,
        uf=uf,
        arquivo_origem=file_name,
        codigo_segmento=_segment_code(row),
        adesoes_trimestre=_count(row, QUARTER_ADHESIONS),
        contemplados_lance=_count(row, AWARDED_BY_BID),
        contemplados_sorteio=_count(row, AWARDED_BY_DRAW),
        ativos_nao_contemplados=active_not_awarded,
        excluidos_contemplados=_count(row, EXCLUDED_AWARDED),
        excluidos_nao_contemplados=_count(row, EXCLUDED_NOT_AWARDED),
        ativos_total=active_not_awarded + _count(row, ACTIVE_AWARDED),
        metricas_raw=normalized_payload(row),
    )


def map_administrator(row: Mapping[str, Any], file_name: str) -> AdministratorRecord | None:
    cnpj = cnpj_root(find_value(row, CNPJ))
    if not cnpj:
        return None
    return AdministratorRecord(
        cnpj_raiz=cnpj,
        arquivo_origem=file_name,
        nome_administradora=text_value(find_value(row, ADMINISTRATOR_NAME)) or None,
        data_base=competence_or_raw(find_value(row, DATA_BASE)) or None,
        metricas_raw=normalized_payload(row),
    )


def map_segment_catalog(row: Mapping[str, Any], file_name: str) -> SegmentCatalogRecord | None:
    code = _segment_code(row)
    name = text_value(find_value(row, SEGMENT_NAME))
    if code is None or not name:
        return None
    return SegmentCatalogRecord(
        codigo_segmento=code,
        nome_segmento=name,
        arquivo_origem=file_name,
        metricas_raw=normalized_payload(row),
    )


_MAPPERS_BY_TYPE: dict[str, RowMapper] = {
    FileType.SEGMENTS: map_consolidated_series,
    FileType.REAL_ESTATE: map_real_estate_group,
    FileType.MOVABLES: map_movables_group,
    FileType.REGIONAL_UF: map_regional_uf,
    FileType.ADMINISTRATORS: map_administrator,
}


def select_mapper(file_type: str, headers: Sequence[str] = ()) -> RowMapper | None:
    """
    Pick the row mapper for a classified file. Returns None for unknown types.

    A ``segments`` file without a CNPJ column but with a segment-name column
    is the segment catalog, not the consolidated series.
    """

    if file_type == FileType.SEGMENTS and headers:
        if not has_header(headers, CNPJ) and has_header(headers, SEGMENT_NAME):
            return map_segment_catalog
    return _MAPPERS_BY_TYPE.get(file_type)


def default_segment_rows() -> list[dict[str, str]]:
    return [
        {"Código_do_segmento": str(code), "Nome_do_segmento": name}
        for code, name in DEFAULT_SEGMENTS
    ]
