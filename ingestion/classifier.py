"""
ingestion/classifier.py

Determines which known disclosure layout a file represents.

The file name is the primary signal; header content is the fallback. Both
rule lists are evaluated top to bottom and the first match wins, so their
ORDER IS SIGNIFICANT: "imoveis" contains "moveis" once accents are stripped,
which is why the real-estate rule precedes the movables rule.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from ingestion.normalizer import normalize_key


class FileType:
    SEGMENTS = "segments"
    REAL_ESTATE = "real_estate"
    MOVABLES = "movables"
    REGIONAL_UF = "regional_uf"
    ADMINISTRATORS = "administrators"
    UNKNOWN = "unknown"

    KNOWN = (SEGMENTS, REAL_ESTATE, MOVABLES, REGIONAL_UF, ADMINISTRATORS)


@dataclass(frozen=True)
class ClassificationRule:
    """
    One ordered classification rule: a predicate and the tag it yields.
    """

    name: str
    predicate: Callable[[str], bool]
    file_type: str


@dataclass(frozen=True)
class HeaderRule:
    name: str
    predicate: Callable[[Sequence[str]], bool]
    file_type: str


def _contains_any(*keywords: str) -> Callable[[str], bool]:
    return lambda token: any(keyword in token for keyword in keywords)


FILE_NAME_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("real_estate_groups", _contains_any("imoveis"), FileType.REAL_ESTATE),
    ClassificationRule("movables_groups", _contains_any("moveis"), FileType.MOVABLES),
    ClassificationRule("consolidated_segments", _contains_any("segmentos"), FileType.SEGMENTS),
    ClassificationRule(
        "regional_uf",
        _contains_any("dadosporuf", "consorciosuf", "uf"),
        FileType.REGIONAL_UF,
    ),
    ClassificationRule(
        "administrators",
        _contains_any("administradoras", "doc4010", "admconsorcio"),
        FileType.ADMINISTRATORS,
    ),
)


def _any_header(tokens: Sequence[str], *fragments: str) -> bool:
    return any(all(fragment in token for fragment in fragments) for token in tokens)


HEADER_RULES: tuple[HeaderRule, ...] = (
    HeaderRule(
        "uf_with_bid_contemplations",
        lambda tokens: "uf" in tokens and _any_header(tokens, "contempladosporlance"),
        FileType.REGIONAL_UF,
    ),
    HeaderRule(
        "groups_with_segment_code",
        lambda tokens: _any_header(tokens, "codigo", "grupo") and _any_header(tokens, "codigo", "segmento"),
        FileType.MOVABLES,
    ),
    HeaderRule(
        "groups",
        lambda tokens: _any_header(tokens, "codigo", "grupo"),
        FileType.REAL_ESTATE,
    ),
    HeaderRule(
        "consolidated_quotas",
        lambda tokens: _any_header(tokens, "cnpj") and _any_header(tokens, "cotasativasemdia"),
        FileType.SEGMENTS,
    ),
    HeaderRule(
        "administrator_register",
        lambda tokens: _any_header(tokens, "cnpj")
        and (_any_header(tokens, "nome", "administradora") or _any_header(tokens, "razaosocial")),
        FileType.ADMINISTRATORS,
    ),
    HeaderRule(
        "segment_catalog",
        lambda tokens: _any_header(tokens, "codigo", "segmento") and _any_header(tokens, "nome", "segmento"),
        FileType.SEGMENTS,
    ),
)


def classify_file_name(file_name: str) -> str:
    token = normalize_key(PurePosixPath(file_name.replace("\\", "/")).name)
    if not token:
        return FileType.UNKNOWN
    for rule in FILE_NAME_RULES:
        if rule.predicate(token):
            return rule.file_type
    return FileType.UNKNOWN


def classify_headers(headers: Sequence[str]) -> str:
    tokens = [token for token in (normalize_key(header) for header in headers) if token]
    if not tokens:
        return FileType.UNKNOWN
    for rule in HEADER_RULES:
        if rule.predicate(tokens):
            return rule.file_type
    return FileType.UNKNOWN


def classify(file_name: str, headers: Sequence[str] | None = None) -> str:
    """
    Classify a file by name, falling back to its headers.

    Deterministic: the same name and headers always yield the same tag.
    ``FileType.UNKNOWN`` means the file cannot be processed.
    """

    file_type = classify_file_name(file_name)
    if file_type != FileType.UNKNOWN or not headers:
        return file_type
    return classify_headers(headers)
