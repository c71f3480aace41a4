"""
app/schemas package marker.
"""

from app.schemas.csv_ingestion import (
    MappingInferenceRequest,
    MappingInferenceResponse,
    RowIssueResponse,
    VendorIngestionResponse,
)

__all__ = [
    "MappingInferenceRequest",
    "MappingInferenceResponse",
    "RowIssueResponse",
    "VendorIngestionResponse",
]
