"""
app/api/routers/csv_ingestion.py

Vendor CSV ingestion HTTP endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import VendorUpload, get_vendor_upload
from app.domain.ingestion import ImportResult, RowIssue
from app.mappers.schema_mapper import infer_mapping
from app.schemas.csv_ingestion import (
    DataQualityResponse,
    DiagnosticIssueResponse,
    MappingInferenceRequest,
    MappingInferenceResponse,
    ParseStatisticsResponse,
    QualityVerdictResponse,
    RecoveryResponse,
    RowIssueResponse,
    StructuredErrorResponse,
    VendorIngestionResponse,
)
from app.services.production_processor import (
    InvalidVendorIdError,
    ProductionCSVProcessor,
    ProductionOptions,
    ProductionResult,
    get_production_processor,
)
from app.validators.mapping_validator import validate_mapping

logger = logging.getLogger(__name__)

router = APIRouter(tags=["vendor-ingestion"])


@router.post("/vendors/{vendor_id}/ingest", response_model=VendorIngestionResponse)
def ingest_vendor_csv(
    vendor_id: str,
    upload: VendorUpload = Depends(get_vendor_upload),
    mode: str | None = Query(default=None, description="strict, lenient, adaptive or diagnostic"),
    min_quality_threshold: float | None = Query(default=None, ge=0, le=1, description="Minimum accuracy score"),
    vendor_type: str | None = Query(default=None, description="Override keyword-based vendor type detection"),
    processor: ProductionCSVProcessor = Depends(get_production_processor),
) -> VendorIngestionResponse:
    """
    Normalize one vendor CSV file into canonical order records.
    """

    try:
        options = ProductionOptions.from_settings(
            mode=mode.strip().lower() if mode else None,
            min_quality_threshold=min_quality_threshold,
            vendor_type=vendor_type.strip().lower() if vendor_type else None,
        )
        result = processor.process_vendor_bytes(vendor_id, upload.data, options, file_name=upload.file_name)
    except (InvalidVendorIdError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    logger.info(
        "Vendor CSV ingested vendor_id=%s mode=%s success=%s",
        result.vendor_id,
        result.mode,
        result.success,
    )
    return _to_response(result)


@router.post("/mappings/infer", response_model=MappingInferenceResponse)
def infer_vendor_mapping(payload: MappingInferenceRequest) -> MappingInferenceResponse:
    """
    Suggest a canonical field mapping for a set of CSV headers.
    """

    inference = infer_mapping(payload.headers)
    validation = validate_mapping(inference.suggested_mapping)
    return MappingInferenceResponse(
        suggested_mapping=dict(inference.suggested_mapping),
        confidence=inference.confidence,
        valid=validation.valid,
        missing_required_fields=validation.missing,
        unmapped_canonical_fields=inference.unmapped_canonical_fields,
        unmapped_source_columns=inference.unmapped_source_columns,
        scores=inference.scores,
    )


def _to_response(result: ProductionResult) -> VendorIngestionResponse:
    import_result: ImportResult | None = result.import_result
    diagnostics = result.diagnostics
    quality = import_result.quality if import_result is not None else None

    return VendorIngestionResponse(
        success=result.success,
        vendor_id=result.vendor_id,
        mode=result.mode,
        path_taken=list(result.path_taken),
        processed_at=result.timestamp,
        quality=QualityVerdictResponse(
            score=result.quality.score,
            assessment=result.quality.assessment,
            passed_threshold=result.quality.passed_threshold,
            threshold=result.quality_threshold,
        ),
        total_rows=import_result.total_rows if import_result is not None else 0,
        successfully_normalized=import_result.successfully_normalized if import_result is not None else 0,
        failed_rows=import_result.failed_rows if import_result is not None else 0,
        new_records=result.dedup.new_count if result.dedup is not None else None,
        duplicate_records=result.dedup.duplicate_count if result.dedup is not None else None,
        data_quality=(
            DataQualityResponse(
                completeness=quality.completeness,
                consistency=quality.consistency,
                accuracy=quality.accuracy,
            )
            if quality is not None
            else None
        ),
        statistics=(
            ParseStatisticsResponse(**import_result.statistics.to_dict()) if import_result is not None else None
        ),
        mapping=dict(result.mapping),
        mapping_confidence=diagnostics.mapping_confidence if diagnostics is not None else None,
        cache_used=result.cache_used,
        records=[record.to_dict() for record in result.records],
        errors=[_to_issue_response(issue) for issue in (import_result.errors if import_result else [])],
        warnings=[_to_issue_response(issue) for issue in (import_result.warnings if import_result else [])],
        diagnostic_issues=[
            DiagnosticIssueResponse(**issue.to_dict()) for issue in (diagnostics.issues if diagnostics else [])
        ],
        handled_errors=[
            StructuredErrorResponse(
                id=error.id,
                timestamp=error.timestamp,
                severity=error.severity,
                category=error.category,
                message=error.message,
                affected_rows=error.affected_rows,
                suggestions=list(error.suggestions),
                recovery_attempted=error.recovery_attempted,
                recovery_successful=error.recovery_successful,
            )
            for error in result.handled_errors
        ],
        recovery=(
            RecoveryResponse(
                success=result.recovery.success,
                strategy=result.recovery.strategy,
                message=result.recovery.message,
                warnings=list(result.recovery.warnings),
                requires_manual_intervention=result.recovery.requires_manual_intervention,
            )
            if result.recovery is not None
            else None
        ),
        recommendations=list(result.recommendations),
        performance_recommendations=list(result.performance_recommendations),
        suggestions=list(result.suggestions),
        next_steps=list(result.next_steps),
    )


def _to_issue_response(issue: RowIssue) -> RowIssueResponse:
    return RowIssueResponse(**issue.to_dict())
