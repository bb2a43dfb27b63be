"""
ingestion/records.py

Canonical row shapes, one frozen dataclass per destination table.
Instances are produced only by the functions in ``ingestion.mappers``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Union

from ingestion.catalog import TableId


@dataclass(frozen=True)
class ConsolidatedSeriesRecord:
    table_id: ClassVar[str] = TableId.CONSOLIDATED_SERIES

    data_base: str
    cnpj_raiz: str
    codigo_segmento: int
    arquivo_origem: str
    nome_administradora: str | None = None
    # The consolidated layout carries no balance columns; never inferred.
    volume_financeiro: float = 0.0
    taxa_administracao: float | None = None
    grupos_ativos: int = 0
    cotas_comercializadas_mes: int = 0
    cotas_ativas_em_dia: int = 0
    cotas_contempladas_inadimplentes: int = 0
    cotas_nao_contempladas_inadimplentes: int = 0
    cotas_contempladas_mes: int = 0
    cotas_excluidas: int = 0
    cotas_quitadas: int = 0
    cotas_ativas_total: int = 0
    taxa_inadimplencia_total: float = 0.0
    taxa_contemplacao_mensal: float = 0.0
    taxa_exclusao: float = 0.0
    metricas_raw: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DetailedGroupRecord:
    table_id: ClassVar[str] = TableId.DETAILED_GROUPS

    data_base: str
    cnpj_raiz: str
    codigo_grupo: str
    codigo_segmento: int
    tipo_bem: str
    arquivo_origem: str
    valor_medio_do_bem: float | None = None
    taxa_administracao: float | None = None
    prazo_grupo_meses: int = 0
    numero_assembleia: int = 0
    indice_correcao: str | None = None
    cotas_ativas_em_dia: int = 0
    cotas_contempladas_inadimplentes: int = 0
    cotas_nao_contempladas_inadimplentes: int = 0
    cotas_contempladas_mes: int = 0
    cotas_excluidas: int = 0
    cotas_quitadas: int = 0
    cotas_ativas_total: int = 0
    metricas_raw: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RegionalQuarterlyRecord:
    table_id: ClassVar[str] = TableId.REGIONAL_QUARTERLY

    data_base: str
    cnpj_raiz: str
    uf: str
    arquivo_origem: str
    codigo_segmento: int | None = None
    adesoes_trimestre: int = 0
    contemplados_lance: int = 0
    contemplados_sorteio: int = 0
    ativos_nao_contemplados: int = 0
    excluidos_contemplados: int = 0
    excluidos_nao_contemplados: int = 0
    ativos_total: int = 0
    metricas_raw: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AdministratorRecord:
    table_id: ClassVar[str] = TableId.ADMINISTRATORS

    cnpj_raiz: str
    arquivo_origem: str
    nome_administradora: str | None = None
    data_base: str | None = None
    metricas_raw: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SegmentCatalogRecord:
    table_id: ClassVar[str] = TableId.SEGMENTS

    codigo_segmento: int
    nome_segmento: str
    arquivo_origem: str
    metricas_raw: dict[str, str] = field(default_factory=dict)


CanonicalRecord = Union[
    ConsolidatedSeriesRecord,
    DetailedGroupRecord,
    RegionalQuarterlyRecord,
    AdministratorRecord,
    SegmentCatalogRecord,
]


def record_to_row(record: CanonicalRecord) -> dict[str, Any]:
    return asdict(record)
