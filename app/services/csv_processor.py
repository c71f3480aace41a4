"""
app/services/csv_processor.py

Single-run CSV processor: load a vendor file, resolve its field mapping
(cached, manual or inferred), run one ingestion pass and diagnose the result.

Pass-level failures raise an IngestionError subclass from ``run_import``;
``process`` turns them into a failed ProcessingResult instead.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from app.domain.ingestion import (
    DataQuality,
    ImportResult,
    IssueCode,
    ParseStatistics,
    RowIssue,
    compute_data_quality,
)
from app.domain.vendor_order import CANONICAL_FIELDS, REQUIRED_CANONICAL_FIELDS, FieldMapping, NormalizedRecord
from app.mappers.schema_mapper import MappingInference, SchemaMapper
from app.services.csv_ingestion_service import CSVIngestionService
from app.services.csv_reader import CSVTable, read_csv_file, read_csv_text
from app.services.mapping_store import InMemoryMappingStore, MappingStore, SavedMapping
from app.services.vendor_config import ProcessorConfig
from app.validators.mapping_validator import MappingValidation, MappingValidator, validate_mapping

logger = logging.getLogger(__name__)

ReportGenerator = Callable[[list[NormalizedRecord]], Any]


class MappingSource:
    INFERRED = "inferred"
    CACHED = "cached"
    MANUAL = "manual"
    IMPORTED = "imported"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class IngestionError(ValueError):
    """
    Base class for failures that abort a whole ingestion pass.
    """

    def __init__(self, message: str, *, import_result: ImportResult | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.import_result = import_result

    def to_dict(self) -> dict[str, Any]:
        return {"error_type": self.__class__.__name__, "message": self.message}


class AutoInferenceDisabledError(IngestionError):
    def __init__(self) -> None:
        super().__init__("No mapping provided and auto-inference is disabled")


class MappingValidationError(IngestionError):
    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Invalid mapping: missing required fields: {', '.join(self.missing)}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "missing": list(self.missing)}


class MappingConfidenceError(IngestionError):
    def __init__(self, confidence: float, threshold: float) -> None:
        self.confidence = confidence
        self.threshold = threshold
        super().__init__(
            f"Mapping confidence ({confidence * 100:.1f}%) below threshold "
            f"({threshold * 100:.1f}%). Please provide manual mapping."
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "confidence": self.confidence, "threshold": self.threshold}


class InsufficientRowsError(IngestionError):
    def __init__(self, got: int, required: int, *, import_result: ImportResult | None = None) -> None:
        self.got = got
        self.required = required
        super().__init__(
            f"Insufficient valid rows: got {got}, need at least {required}",
            import_result=import_result,
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "got": self.got, "required": self.required}


class StrictAbortError(IngestionError):
    """
    Raised when a run that must not tolerate row errors hits one.
    """

    def __init__(self, issue: RowIssue, *, import_result: ImportResult | None = None) -> None:
        self.issue = issue
        super().__init__(
            f"Strict validation aborted at row {issue.row_number}: {issue.message}",
            import_result=import_result,
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "issue": self.issue.to_dict()}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MappingResolution:
    inference: MappingInference
    validation: MappingValidation
    source: str


@dataclass(frozen=True)
class DiagnosticIssue:
    severity: str
    category: str
    message: str
    affected_rows: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "category": self.category,
            "message": self.message,
            "affected_rows": self.affected_rows,
        }


@dataclass(frozen=True)
class ProcessingDiagnostics:
    data_quality: DataQuality
    mapping_confidence: float
    unmapped_fields: list[str]
    parse_time_ms: float
    process_time_ms: float
    rows_per_second: int
    issues: list[DiagnosticIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "data_quality": {
                "completeness": self.data_quality.completeness,
                "consistency": self.data_quality.consistency,
                "accuracy": self.data_quality.accuracy,
            },
            "mapping_quality": {
                "confidence": self.mapping_confidence,
                "unmapped_fields": list(self.unmapped_fields),
            },
            "performance": {
                "parse_time_ms": self.parse_time_ms,
                "process_time_ms": self.process_time_ms,
                "rows_per_second": self.rows_per_second,
            },
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class ProcessingResult:
    success: bool
    import_result: ImportResult
    diagnostics: ProcessingDiagnostics
    recommendations: list[str] = field(default_factory=list)
    mapping_source: str | None = None
    report: Any = None
    error: IngestionError | None = None


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class EnhancedCSVProcessor:
    """
    Runs one vendor file through mapping resolution and ingestion.

    The mapping store is shared between processors; everything else belongs
    to this instance.
    """

    def __init__(
        self,
        config: ProcessorConfig,
        *,
        mapping_store: MappingStore | None = None,
        mapper: SchemaMapper | None = None,
        validator: MappingValidator | None = None,
        log_row_issues: bool = True,
    ) -> None:
        self._config = config
        self._store = mapping_store if mapping_store is not None else InMemoryMappingStore()
        self._mapper = mapper or SchemaMapper()
        self._validator = validator or MappingValidator()
        self._log_row_issues = log_row_issues

        self._headers: list[str] = []
        self._rows: list[dict[str, Any]] = []
        self._mapping: FieldMapping = {}
        self._mapping_confidence: float | None = None
        self._mapping_source: str | None = None
        self._import_result: ImportResult | None = None

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    @property
    def headers(self) -> list[str]:
        return list(self._headers)

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self._rows

    @property
    def mapping(self) -> FieldMapping:
        return dict(self._mapping)

    @property
    def mapping_source(self) -> str | None:
        return self._mapping_source

    @property
    def import_result(self) -> ImportResult | None:
        return self._import_result

    @property
    def records(self) -> list[NormalizedRecord]:
        return list(self._import_result.records) if self._import_result is not None else []

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_from_string(self, csv_content: str) -> None:
        options = self._config.parse_options
        table = read_csv_text(
            csv_content,
            delimiter=options.delimiter,
            keep_blank_lines=not options.skip_empty_rows,
        )
        if options.delimiter is None:
            logger.debug("Auto-detected delimiter %r vendor_id=%s", table.delimiter, self._config.vendor_id)
        self.load_table(table)

    def load_from_file(self, file_path: str | Path) -> None:
        options = self._config.parse_options
        table = read_csv_file(
            file_path,
            encoding=options.encoding,
            delimiter=options.delimiter,
            keep_blank_lines=not options.skip_empty_rows,
        )
        self.load_table(table)

    def load_table(self, table: CSVTable) -> None:
        self._headers = list(table.headers)
        self._rows = list(table.rows)
        self._import_result = None

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def infer_or_load_mapping(self) -> MappingResolution:
        """
        Reuse the cached mapping for this config's cache key when it fits the
        loaded headers; otherwise infer one. Only valid inferred mappings are
        cached.
        """

        cache_key = self._caching_key()
        if cache_key is not None:
            cached = self._store.get(cache_key)
            if cached is not None and set(cached.mapping.values()) <= set(self._headers):
                logger.info("Using cached mapping cache_key=%s", cache_key)
                inference = MappingInference(
                    suggested_mapping=dict(cached.mapping),
                    confidence=cached.confidence,
                    unmapped_canonical_fields=[name for name in CANONICAL_FIELDS if name not in cached.mapping],
                    unmapped_source_columns=[
                        header for header in self._headers if header not in set(cached.mapping.values())
                    ],
                )
                return MappingResolution(
                    inference=inference,
                    validation=validate_mapping(cached.mapping),
                    source=MappingSource.CACHED,
                )

        inference = self._mapper.infer_mapping(self._headers)
        validation = validate_mapping(inference.suggested_mapping)
        if cache_key is not None and validation.valid:
            self._store.put(
                cache_key,
                SavedMapping(
                    vendor_id=self._config.vendor_id,
                    mapping=dict(inference.suggested_mapping),
                    confidence=inference.confidence,
                    source_headers=list(self._headers),
                ),
            )
        return MappingResolution(inference=inference, validation=validation, source=MappingSource.INFERRED)

    def set_mapping(self, mapping: Mapping[str, str]) -> None:
        """
        Use a caller-supplied mapping. It is validated against the loaded
        headers and cached with full confidence.

        Raises SchemaMappingError when the mapping does not fit the headers.
        """

        resolved = dict(mapping)
        if self._headers:
            self._validator.validate(mapping=resolved, source_headers=self._headers)
        else:
            validation = validate_mapping(resolved)
            if not validation.valid:
                raise MappingValidationError(validation.missing)

        self._mapping = resolved
        self._mapping_confidence = 1.0
        self._mapping_source = MappingSource.MANUAL
        cache_key = self._caching_key()
        if cache_key is not None:
            self._store.put(
                cache_key,
                SavedMapping(
                    vendor_id=self._config.vendor_id,
                    mapping=dict(resolved),
                    confidence=1.0,
                    source_headers=list(self._headers),
                    notes="Manual mapping",
                ),
            )

    def export_mapping(self) -> SavedMapping:
        return SavedMapping(
            vendor_id=self._config.vendor_id,
            mapping=dict(self._mapping),
            confidence=self._mapping_confidence if self._mapping_confidence is not None else 1.0,
            source_headers=list(self._headers),
        )

    def import_mapping(self, saved: SavedMapping) -> None:
        self._mapping = dict(saved.mapping)
        self._mapping_confidence = saved.confidence
        self._mapping_source = MappingSource.IMPORTED
        cache_key = self._caching_key()
        if cache_key is not None:
            self._store.put(cache_key, saved)

    def clear_mapping_cache(self) -> None:
        self._store.clear()

    def get_cached_mapping(self, cache_key: str) -> SavedMapping | None:
        return self._store.get(cache_key)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def resolve_mapping(self) -> FieldMapping:
        """
        Return the mapping for this run, inferring or loading it when none was
        set.

        Raises AutoInferenceDisabledError, MappingValidationError or
        MappingConfidenceError.
        """

        config = self._config
        if not self._mapping:
            if not config.auto_infer_mapping:
                raise AutoInferenceDisabledError()
            resolution = self.infer_or_load_mapping()
            if not resolution.validation.valid:
                raise MappingValidationError(resolution.validation.missing)
            if resolution.inference.confidence < config.mapping_confidence_threshold:
                raise MappingConfidenceError(resolution.inference.confidence, config.mapping_confidence_threshold)
            self._mapping = dict(resolution.inference.suggested_mapping)
            self._mapping_confidence = resolution.inference.confidence
            self._mapping_source = resolution.source
        return dict(self._mapping)

    def run_import(self) -> ImportResult:
        """
        Resolve the mapping if needed and run one ingestion pass.

        Raises the ``resolve_mapping`` errors, StrictAbortError or
        InsufficientRowsError.
        """

        config = self._config
        self.resolve_mapping()

        service = CSVIngestionService(
            options=config.parse_options,
            mapper=self._mapper,
            log_row_issues=self._log_row_issues,
        )
        result = service.parse_and_normalize(self._rows, mapping=self._mapping, vendor_id=config.vendor_id)
        self._import_result = result

        if config.abort_on_row_error and result.errors:
            raise StrictAbortError(result.errors[0], import_result=result)

        if result.successfully_normalized < config.min_required_rows:
            raise InsufficientRowsError(
                result.successfully_normalized,
                config.min_required_rows,
                import_result=result,
            )

        if result.total_rows > 0:
            duplicate_rate = result.statistics.duplicate_order_ids / result.total_rows
            if duplicate_rate > config.max_duplicate_rate:
                logger.warning(
                    "High duplicate rate vendor_id=%s rate=%.1f%% duplicates=%s",
                    config.vendor_id,
                    duplicate_rate * 100,
                    result.statistics.duplicate_order_ids,
                )
        return result

    def process(self, *, report_generator: ReportGenerator | None = None) -> ProcessingResult:
        """
        Run the import and diagnose it. Pass-level failures produce a failed
        result carrying the error rather than raising.
        """

        started_at = time.perf_counter()
        try:
            import_result = self.run_import()
        except IngestionError as exc:
            logger.warning("CSV processing failed vendor_id=%s: %s", self._config.vendor_id, exc)
            failed = exc.import_result or self._empty_result(exc)
            diagnostics = self.calculate_diagnostics(failed, process_time_ms=_elapsed_ms(started_at))
            return ProcessingResult(
                success=False,
                import_result=failed,
                diagnostics=diagnostics,
                recommendations=[f"Critical error: {exc.message}"],
                mapping_source=self._mapping_source,
                error=exc,
            )

        report = report_generator(import_result.records) if report_generator is not None else None
        diagnostics = self.calculate_diagnostics(import_result, process_time_ms=_elapsed_ms(started_at))
        return ProcessingResult(
            success=True,
            import_result=import_result,
            diagnostics=diagnostics,
            recommendations=self.generate_recommendations(import_result, diagnostics),
            mapping_source=self._mapping_source,
            report=report,
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def calculate_diagnostics(
        self,
        import_result: ImportResult | None = None,
        *,
        process_time_ms: float = 0.0,
    ) -> ProcessingDiagnostics:
        result = import_result or self._import_result
        stats = result.statistics if result is not None else ParseStatistics()
        quality = compute_data_quality(stats)

        if self._mapping_confidence is not None:
            confidence = self._mapping_confidence
        else:
            confidence = 1.0 if self._mapping else 0.0
        unmapped = [name for name in CANONICAL_FIELDS if name not in self._mapping]

        issues: list[DiagnosticIssue] = []
        total = stats.total_rows
        if total and stats.failed_rows > total * 0.1:
            issues.append(
                DiagnosticIssue(
                    severity="critical",
                    category="data",
                    message=f"High failure rate: {stats.failed_rows / total * 100:.1f}% of rows failed",
                    affected_rows=stats.failed_rows,
                )
            )
        if stats.duplicate_order_ids > 0:
            issues.append(
                DiagnosticIssue(
                    severity="warning" if stats.duplicate_order_ids > total * 0.05 else "info",
                    category="data",
                    message=(
                        f"Found {stats.duplicate_order_ids} duplicate order IDs "
                        f"({stats.rejected_duplicates} rejected, {stats.tolerated_duplicates} tolerated)"
                    ),
                    affected_rows=stats.duplicate_order_ids,
                )
            )
        if confidence < 0.8:
            issues.append(
                DiagnosticIssue(
                    severity="warning",
                    category="mapping",
                    message=f"Low mapping confidence: {confidence * 100:.1f}%",
                )
            )
        if len(unmapped) > 2:
            issues.append(
                DiagnosticIssue(
                    severity="info",
                    category="mapping",
                    message=f"{len(unmapped)} optional fields not mapped",
                )
            )

        return ProcessingDiagnostics(
            data_quality=quality,
            mapping_confidence=confidence,
            unmapped_fields=unmapped,
            parse_time_ms=stats.parse_time_ms,
            process_time_ms=process_time_ms,
            rows_per_second=stats.rows_per_second,
            issues=issues,
        )

    @staticmethod
    def generate_recommendations(import_result: ImportResult, diagnostics: ProcessingDiagnostics) -> list[str]:
        recommendations: list[str] = []
        completeness = diagnostics.data_quality.completeness
        if completeness < 0.9:
            recommendations.append(
                f"Data completeness is {completeness * 100:.1f}%. "
                "Review your CSV export settings to include all required fields."
            )
        duplicates = import_result.statistics.duplicate_order_ids
        if duplicates > 0:
            recommendations.append(
                f"Found {duplicates} duplicate order IDs. Ensure your export includes unique transaction IDs."
            )
        if diagnostics.mapping_confidence < 0.8:
            recommendations.append(
                "Consider creating a custom mapping for better accuracy. "
                "Run mapping inference to see suggested mappings."
            )
        optional = [name for name in diagnostics.unmapped_fields if name not in REQUIRED_CANONICAL_FIELDS]
        if optional:
            recommendations.append(
                f"Optional fields not mapped: {', '.join(optional)}. "
                "Mapping these would provide more detailed analytics."
            )
        if import_result.statistics.total_rows > 10000:
            recommendations.append("Large dataset detected. Consider streaming ingestion for faster processing.")
        return recommendations

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _caching_key(self) -> str | None:
        if self._config.enable_caching and self._config.cache_key:
            return self._config.cache_key
        return None

    def _empty_result(self, exc: IngestionError) -> ImportResult:
        total = len(self._rows)
        statistics = ParseStatistics(total_rows=total, failed_rows=total)
        return ImportResult(
            total_rows=total,
            successfully_normalized=0,
            failed_rows=total,
            errors=[RowIssue(row_number=0, message=exc.message, code=IssueCode.PASS_FAILED)],
            statistics=statistics,
        )


def _elapsed_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000, 3)
