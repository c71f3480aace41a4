"""
app/validators package marker.
"""

from app.validators.mapping_validator import (
    MappingErrorDetail,
    MappingValidation,
    MappingValidator,
    SchemaMappingError,
    validate_mapping,
)
from app.validators.row_normalizer import RowOutcome, VendorRowNormalizer

__all__ = [
    "MappingErrorDetail",
    "MappingValidation",
    "MappingValidator",
    "RowOutcome",
    "SchemaMappingError",
    "VendorRowNormalizer",
    "validate_mapping",
]
