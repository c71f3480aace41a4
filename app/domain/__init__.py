"""
app/domain package marker.
"""

from app.domain.dimensions import calculate_deal_size_band
from app.domain.ingestion import (
    DataQuality,
    ImportResult,
    ParseOptions,
    ParseStatistics,
    RowIssue,
    compute_data_quality,
)
from app.domain.vendor_order import (
    CANONICAL_FIELDS,
    REQUIRED_CANONICAL_FIELDS,
    CanonicalField,
    FieldMapping,
    FinanceStatus,
    Geography,
    NormalizedRecord,
)

__all__ = [
    "CANONICAL_FIELDS",
    "REQUIRED_CANONICAL_FIELDS",
    "CanonicalField",
    "DataQuality",
    "FieldMapping",
    "FinanceStatus",
    "Geography",
    "ImportResult",
    "NormalizedRecord",
    "ParseOptions",
    "ParseStatistics",
    "RowIssue",
    "calculate_deal_size_band",
    "compute_data_quality",
]
