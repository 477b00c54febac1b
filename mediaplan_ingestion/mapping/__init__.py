"""Canonical field mapper (pure, no I/O)."""

from mediaplan_ingestion.mapping.engine import (
    CoercionResult,
    HeaderMap,
    MappingResult,
    build_header_map,
    coerce_value,
    map_row,
    normalize_header,
    parse_date,
    parse_number,
)

__all__ = [
    "CoercionResult",
    "HeaderMap",
    "MappingResult",
    "build_header_map",
    "coerce_value",
    "map_row",
    "normalize_header",
    "parse_date",
    "parse_number",
]
