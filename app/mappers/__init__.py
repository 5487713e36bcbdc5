"""
app/mappers package marker.
"""

from app.mappers.field_mapper import (
    EXPECTED_FIELDS,
    FIELD_SYNONYMS,
    FieldMapper,
    FieldMappingResolution,
    transform_records,
)

__all__ = [
    "EXPECTED_FIELDS",
    "FIELD_SYNONYMS",
    "FieldMapper",
    "FieldMappingResolution",
    "transform_records",
]
