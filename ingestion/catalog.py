"""
ingestion/catalog.py

Destination schema catalog: table id -> ordered (field name, primitive type,
mode) list. Consulted only when a destination table is created. The catalog
is passed explicitly to the provisioner so tests can supply alternates.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache


class FieldType:
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    JSON = "JSON"
    TIMESTAMP = "TIMESTAMP"

    ALL = (STRING, INTEGER, FLOAT, JSON, TIMESTAMP)


class FieldMode:
    REQUIRED = "REQUIRED"
    NULLABLE = "NULLABLE"


class TableId:
    CONSOLIDATED_SERIES = "series_consolidadas"
    DETAILED_GROUPS = "grupos_detalhados"
    REGIONAL_QUARTERLY = "dados_trimestrais_uf"
    ADMINISTRATORS = "administradoras"
    SEGMENTS = "segmentos"


class SchemaCatalogError(LookupError):
    """
    Raised when a table id has no catalog entry. A configuration defect, not a data error.
    """


@dataclass(frozen=True)
class SchemaField:
    name: str
    field_type: str
    mode: str = FieldMode.NULLABLE

    def __post_init__(self) -> None:
        if self.field_type not in FieldType.ALL:
            raise SchemaCatalogError(f"Unsupported field type '{self.field_type}' for field '{self.name}'.")

    @property
    def required(self) -> bool:
        return self.mode == FieldMode.REQUIRED


class SchemaCatalog:
    """
    Immutable, versioned mapping of table id to its ordered field list.
    """

    def __init__(self, tables: Mapping[str, Iterable[SchemaField]], *, version: str) -> None:
        self._tables: dict[str, tuple[SchemaField, ...]] = {
            table_id: tuple(fields) for table_id, fields in tables.items()
        }
        self.version = version

    @property
    def table_ids(self) -> tuple[str, ...]:
        return tuple(self._tables.keys())

    def __contains__(self, table_id: object) -> bool:
        return table_id in self._tables

    def fields(self, table_id: str) -> tuple[SchemaField, ...]:
        try:
            return self._tables[table_id]
        except KeyError:
            raise SchemaCatalogError(f"No schema registered for table '{table_id}'.") from None


def _f(name: str, field_type: str, mode: str = FieldMode.NULLABLE) -> SchemaField:
    return SchemaField(name=name, field_type=field_type, mode=mode)


_REQUIRED = FieldMode.REQUIRED

# Trailing audit columns shared by every destination table.
_AUDIT_FIELDS: tuple[SchemaField, ...] = (
    _f("metricas_raw", FieldType.JSON),
    _f("arquivo_origem", FieldType.STRING, _REQUIRED),
    _f("ingested_at", FieldType.TIMESTAMP, _REQUIRED),
)


@lru_cache(maxsize=1)
def default_schema_catalog() -> SchemaCatalog:
    return SchemaCatalog(
        {
            TableId.CONSOLIDATED_SERIES: (
                _f("data_base", FieldType.STRING, _REQUIRED),
                _f("cnpj_raiz", FieldType.STRING, _REQUIRED),
                _f("codigo_segmento", FieldType.INTEGER, _REQUIRED),
                _f("nome_administradora", FieldType.STRING),
                _f("volume_financeiro", FieldType.FLOAT, _REQUIRED),
                _f("taxa_administracao", FieldType.FLOAT),
                _f("grupos_ativos", FieldType.INTEGER),
                _f("cotas_comercializadas_mes", FieldType.INTEGER),
                _f("cotas_ativas_em_dia", FieldType.INTEGER),
                _f("cotas_contempladas_inadimplentes", FieldType.INTEGER),
                _f("cotas_nao_contempladas_inadimplentes", FieldType.INTEGER),
                _f("cotas_contempladas_mes", FieldType.INTEGER),
                _f("cotas_excluidas", FieldType.INTEGER),
                _f("cotas_quitadas", FieldType.INTEGER),
                _f("cotas_ativas_total", FieldType.INTEGER),
                _f("taxa_inadimplencia_total", FieldType.FLOAT),
                _f("taxa_contemplacao_mensal", FieldType.FLOAT),
                _f("taxa_exclusao", FieldType.FLOAT),
                *_AUDIT_FIELDS,
            ),
            TableId.DETAILED_GROUPS: (
                _f("data_base", FieldType.STRING, _REQUIRED),
                _f("cnpj_raiz", FieldType.STRING, _REQUIRED),
                _f("codigo_grupo", FieldType.STRING, _REQUIRED),
                _f("codigo_segmento", FieldType.INTEGER, _REQUIRED),
                _f("tipo_bem", FieldType.STRING, _REQUIRED),
                _f("valor_medio_do_bem", FieldType.FLOAT),
                _f("taxa_administracao", FieldType.FLOAT),
                _f("prazo_grupo_meses", FieldType.INTEGER),
                _f("numero_assembleia", FieldType.INTEGER),
                _f("indice_correcao", FieldType.STRING),
                _f("cotas_ativas_em_dia", FieldType.INTEGER),
                _f("cotas_contempladas_inadimplentes", FieldType.INTEGER),
                _f("cotas_nao_contempladas_inadimplentes", FieldType.INTEGER),
                _f("cotas_contempladas_mes", FieldType.INTEGER),
                _f("cotas_excluidas", FieldType.INTEGER),
                _f("cotas_quitadas", FieldType.INTEGER),
                _f("cotas_ativas_total", FieldType.INTEGER),
                *_AUDIT_FIELDS,
            ),
            TableId.REGIONAL_QUARTERLY: (
                _f("data_base", FieldType.STRING, _REQUIRED),
                _f("cnpj_raiz", FieldType.STRING, _REQUIRED),
                _f("uf", FieldType.STRING, _REQUIRED),
                _f("codigo_segmento", FieldType.INTEGER),
                _f("adesoes_trimestre", FieldType.INTEGER),
                _f("contemplados_lance", FieldType.INTEGER),
                _f("contemplados_sorteio", FieldType.INTEGER),
                _f("ativos_nao_contemplados", FieldType.INTEGER),
                _f("excluidos_contemplados", FieldType.INTEGER),
                _f("excluidos_nao_contemplados", FieldType.INTEGER),
                _f("ativos_total", FieldType.INTEGER),
                *_AUDIT_FIELDS,
            ),
            TableId.ADMINISTRATORS: (
                _f("cnpj_raiz", FieldType.STRING, _REQUIRED),
                _f("nome_administradora", FieldType.STRING),
                _f("data_base", FieldType.STRING),
                *_AUDIT_FIELDS,
            ),
            TableId.SEGMENTS: (
                _f("codigo_segmento", FieldType.INTEGER, _REQUIRED),
                _f("nome_segmento", FieldType.STRING, _REQUIRED),
                *_AUDIT_FIELDS,
            ),
        },
        version="2024.1",
    )
