"""
app/schemas/csv_ingestion.py

Request and response schemas for vendor CSV ingestion endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RowIssueResponse(BaseModel):
    """
    API response model for one row-level error or warning.
    """

    row_number: int = Field(..., ge=0)
    message: str
    code: str
    severity: str
    field: str | None = None
    value: str | None = None


class ParseStatisticsResponse(BaseModel):
    total_rows: int = Field(..., ge=0)
    successful_rows: int = Field(..., ge=0)
    failed_rows: int = Field(..., ge=0)
    skipped_rows: int = Field(..., ge=0)
    empty_rows: int = Field(..., ge=0)
    duplicate_order_ids: int = Field(..., ge=0)
    rejected_duplicates: int = Field(..., ge=0)
    tolerated_duplicates: int = Field(..., ge=0)
    missing_required_fields: dict[str, int] = Field(default_factory=dict)
    invalid_data_types: dict[str, int] = Field(default_factory=dict)
    parse_time_ms: float = Field(..., ge=0)
    rows_per_second: int = Field(..., ge=0)
    halted: bool = False
    halt_reason: str | None = None


class DataQualityResponse(BaseModel):
    completeness: float = Field(..., ge=0, le=1)
    consistency: float = Field(..., ge=0, le=1)
    accuracy: float = Field(..., ge=0, le=1)


class QualityVerdictResponse(BaseModel):
    score: float = Field(..., ge=0, le=1)
    assessment: str
    passed_threshold: bool
    threshold: float = Field(..., ge=0, le=1)


class RecoveryResponse(BaseModel):
    success: bool
    strategy: str
    message: str
    warnings: list[str] = Field(default_factory=list)
    requires_manual_intervention: bool = False


class StructuredErrorResponse(BaseModel):
    """
    API response model for one classified pass-level failure.
    """

    id: str
    timestamp: datetime
    severity: str
    category: str
    message: str
    affected_rows: list[int] | None = None
    suggestions: list[str] = Field(default_factory=list)
    recovery_attempted: bool = False
    recovery_successful: bool | None = None


class DiagnosticIssueResponse(BaseModel):
    severity: str
    category: str
    message: str
    affected_rows: int | None = Field(default=None, ge=0)


class VendorIngestionResponse(BaseModel):
    """
    API response model for one vendor file processed under a processing mode.
    """

    success: bool
    vendor_id: str
    mode: str
    path_taken: list[str] = Field(default_factory=list)
    processed_at: datetime
    quality: QualityVerdictResponse
    total_rows: int = Field(..., ge=0)
    successfully_normalized: int = Field(..., ge=0)
    failed_rows: int = Field(..., ge=0)
    new_records: int | None = Field(default=None, ge=0)
    duplicate_records: int | None = Field(default=None, ge=0)
    data_quality: DataQualityResponse | None = None
    statistics: ParseStatisticsResponse | None = None
    mapping: dict[str, str] = Field(default_factory=dict)
    mapping_confidence: float | None = None
    cache_used: bool = False
    records: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[RowIssueResponse] = Field(default_factory=list)
    warnings: list[RowIssueResponse] = Field(default_factory=list)
    diagnostic_issues: list[DiagnosticIssueResponse] = Field(default_factory=list)
    handled_errors: list[StructuredErrorResponse] = Field(default_factory=list)
    recovery: RecoveryResponse | None = None
    recommendations: list[str] = Field(default_factory=list)
    performance_recommendations: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class MappingInferenceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    headers: list[str] = Field(..., min_length=1)


class MappingInferenceResponse(BaseModel):
    suggested_mapping: dict[str, str] = Field(default_factory=dict)
    confidence: float = Field(..., ge=0, le=1)
    valid: bool
    missing_required_fields: list[str] = Field(default_factory=list)
    unmapped_canonical_fields: list[str] = Field(default_factory=list)
    unmapped_source_columns: list[str] = Field(default_factory=list)
    scores: dict[str, float] = Field(default_factory=dict)
