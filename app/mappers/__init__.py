"""
app/mappers package marker.
"""

from app.mappers.schema_mapper import (
    FIELD_VARIATIONS,
    MappingInference,
    SchemaMapper,
    create_manual_mapping,
    header_similarity,
    infer_mapping,
    normalize_header,
)

__all__ = [
    "FIELD_VARIATIONS",
    "MappingInference",
    "SchemaMapper",
    "create_manual_mapping",
    "header_similarity",
    "infer_mapping",
    "normalize_header",
]
