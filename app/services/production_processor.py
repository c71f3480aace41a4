"""
app/services/production_processor.py

Processing-mode orchestration for vendor CSV files.

STRICT, LENIENT and DIAGNOSTIC each run one ingestion pass with their own
policy. ADAPTIVE runs STRICT and falls back to LENIENT when STRICT fails or
scores below the caller's quality threshold; it never runs more than twice.
Pass-level failures are always routed through the ErrorHandler.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from app.config import get_ingestion_settings
from app.domain.ingestion import ImportResult
from app.domain.vendor_order import FieldMapping, NormalizedRecord
from app.logging_utils import log_event
from app.normalizers.dimension_normalizer import normalize_vendor_id
from app.services.csv_ingestion_service import CSVIngestionService
from app.services.csv_processor import (
    EnhancedCSVProcessor,
    IngestionError,
    InsufficientRowsError,
    MappingSource,
    ProcessingDiagnostics,
    ReportGenerator,
)
from app.services.csv_reader import (
    CSVChunk,
    CSVFormatError,
    CSVTable,
    read_csv_bytes,
    read_csv_file,
    read_csv_text,
    stream_csv_file,
)
from app.services.deduplication import DedupResult, deduplicate, merge_with_updates
from app.services.error_handler import (
    ErrorHandler,
    RecoveryContext,
    RecoveryResult,
    StructuredError,
    get_error_handler,
)
from app.services.mapping_store import InMemoryMappingStore, MappingStore, build_mapping_store
from app.services.performance_monitor import (
    PerformanceMonitor,
    ProcessingMetrics,
    empty_metrics,
    get_performance_monitor,
)
from app.services.vendor_config import ProcessorConfig, ProcessorConfigManager
from app.validators.mapping_validator import SchemaMappingError

logger = logging.getLogger(__name__)


class ProcessingMode:
    STRICT = "strict"
    LENIENT = "lenient"
    ADAPTIVE = "adaptive"
    DIAGNOSTIC = "diagnostic"


PROCESSING_MODES: tuple[str, ...] = (
    ProcessingMode.STRICT,
    ProcessingMode.LENIENT,
    ProcessingMode.ADAPTIVE,
    ProcessingMode.DIAGNOSTIC,
)


class QualityAssessment:
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    UNACCEPTABLE = "unacceptable"


STRICT_MIN_CONFIDENCE = 0.8
STRICT_MIN_ROWS = 10
LENIENT_MAX_CONFIDENCE = 0.5
LENIENT_MAX_ERRORS = 100
STREAMING_MAX_ERRORS = 1000

# Accuracy below these limits is logged as a low-quality error.
STRICT_LOW_QUALITY_LIMIT = 0.9
DEFAULT_LOW_QUALITY_LIMIT = 0.8

_PASS_FAILURES = (IngestionError, SchemaMappingError)


class InvalidVendorIdError(ValueError):
    def __init__(self, vendor_id: str) -> None:
        super().__init__(
            f"Invalid vendor id {vendor_id!r}: use lowercase letters, digits and hyphens (max 100 characters)."
        )
        self.vendor_id = vendor_id


def assess_quality(score: float) -> str:
    if score >= 0.95:
        return QualityAssessment.EXCELLENT
    if score >= 0.85:
        return QualityAssessment.GOOD
    if score >= 0.70:
        return QualityAssessment.FAIR
    if score >= 0.50:
        return QualityAssessment.POOR
    return QualityAssessment.UNACCEPTABLE


@dataclass(frozen=True)
class QualityVerdict:
    score: float
    assessment: str
    passed_threshold: bool

    @classmethod
    def from_score(cls, score: float, threshold: float) -> "QualityVerdict":
        return cls(score=score, assessment=assess_quality(score), passed_threshold=score >= threshold)


@dataclass(frozen=True)
class ProductionOptions:
    """
    Per-call processing options. ``existing_records`` enables deduplication
    against the vendor's stored records; ``merge_updates`` switches that step
    to keep-the-later-order-date merging.
    """

    mode: str = ProcessingMode.ADAPTIVE
    min_quality_threshold: float = 0.7
    enable_recovery: bool = True
    vendor_type: str | None = None
    mapping: FieldMapping | None = None
    report_generator: ReportGenerator | None = None
    existing_records: Sequence[NormalizedRecord] | None = None
    merge_updates: bool = False

    def __post_init__(self) -> None:
        if self.mode not in PROCESSING_MODES:
            raise ValueError(f"Unsupported processing mode '{self.mode}'. Allowed values: {list(PROCESSING_MODES)}.")
        if not 0.0 <= self.min_quality_threshold <= 1.0:
            raise ValueError("min_quality_threshold must be between 0 and 1.")

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ProductionOptions":
        settings = get_ingestion_settings()
        values: dict[str, Any] = {
            "mode": settings.default_mode,
            "min_quality_threshold": settings.min_quality_threshold,
            "enable_recovery": settings.enable_recovery,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


@dataclass(frozen=True)
class ProductionResult:
    success: bool
    vendor_id: str
    mode: str
    timestamp: datetime
    quality: QualityVerdict
    quality_threshold: float
    metrics: ProcessingMetrics
    path_taken: list[str] = field(default_factory=list)
    import_result: ImportResult | None = None
    records: list[NormalizedRecord] = field(default_factory=list)
    dedup: DedupResult | None = None
    diagnostics: ProcessingDiagnostics | None = None
    report: Any = None
    recommendations: list[str] = field(default_factory=list)
    performance_recommendations: list[str] = field(default_factory=list)
    handled_errors: list[StructuredError] = field(default_factory=list)
    recovery: RecoveryResult | None = None
    suggestions: list[str] = field(default_factory=list)
    recovery_attempted: bool = False
    cache_used: bool = False
    mapping: FieldMapping = field(default_factory=dict)
    next_steps: list[str] = field(default_factory=list)


def strict_config(base: ProcessorConfig) -> ProcessorConfig:
    return replace(
        base,
        parse_options=replace(
            base.parse_options,
            continue_on_error=False,
            max_errors=1,
            allow_duplicate_order_ids=False,
        ),
        mapping_confidence_threshold=max(base.mapping_confidence_threshold, STRICT_MIN_CONFIDENCE),
        min_required_rows=max(base.min_required_rows, STRICT_MIN_ROWS),
        abort_on_row_error=True,
    )


def lenient_config(
    base: ProcessorConfig,
    *,
    enable_recovery: bool,
    max_errors: int = LENIENT_MAX_ERRORS,
) -> ProcessorConfig:
    return replace(
        base,
        parse_options=replace(
            base.parse_options,
            continue_on_error=True,
            max_errors=max_errors if enable_recovery else None,
            allow_duplicate_order_ids=True,
        ),
        mapping_confidence_threshold=min(base.mapping_confidence_threshold, LENIENT_MAX_CONFIDENCE),
        min_required_rows=1,
        abort_on_row_error=False,
    )


class ProductionCSVProcessor:
    """
    Entry point for processing vendor files under a processing mode.

    The config manager, performance monitor, error handler and mapping store
    are shared by every run of this processor.
    """

    def __init__(
        self,
        *,
        config_manager: ProcessorConfigManager | None = None,
        performance_monitor: PerformanceMonitor | None = None,
        error_handler: ErrorHandler | None = None,
        mapping_store: MappingStore | None = None,
        streaming_chunk_size: int = 1000,
        log_row_issues: bool = True,
    ) -> None:
        self._config_manager = config_manager or ProcessorConfigManager()
        self._monitor = performance_monitor or PerformanceMonitor()
        self._error_handler = error_handler or ErrorHandler()
        self._mapping_store = mapping_store if mapping_store is not None else InMemoryMappingStore()
        self._streaming_chunk_size = max(1, streaming_chunk_size)
        self._log_row_issues = log_row_issues

    @property
    def config_manager(self) -> ProcessorConfigManager:
        return self._config_manager

    @property
    def performance_monitor(self) -> PerformanceMonitor:
        return self._monitor

    @property
    def error_handler(self) -> ErrorHandler:
        return self._error_handler

    @property
    def mapping_store(self) -> MappingStore:
        return self._mapping_store

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_vendor_file(
        self,
        vendor_id: str,
        file_path: str | Path,
        options: ProductionOptions | None = None,
    ) -> ProductionResult:
        options = options or ProductionOptions()
        vendor_id = self._resolve_vendor_id(vendor_id)
        path = Path(file_path)
        base = self._config_manager.get_config(vendor_id, options.vendor_type)
        try:
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")
            table = read_csv_file(
                path,
                encoding=base.parse_options.encoding,
                delimiter=base.parse_options.delimiter,
                keep_blank_lines=not base.parse_options.skip_empty_rows,
            )
        except (OSError, CSVFormatError) as exc:
            failed = self._failure_result(vendor_id, options.mode, exc, options, file_path=str(path))
            return self._finalize(failed, options)
        return self._dispatch(vendor_id, table, options, base, file_path=str(path))

    def process_vendor_text(
        self,
        vendor_id: str,
        csv_text: str,
        options: ProductionOptions | None = None,
    ) -> ProductionResult:
        options = options or ProductionOptions()
        vendor_id = self._resolve_vendor_id(vendor_id)
        base = self._config_manager.get_config(vendor_id, options.vendor_type)
        try:
            table = read_csv_text(
                csv_text,
                delimiter=base.parse_options.delimiter,
                keep_blank_lines=not base.parse_options.skip_empty_rows,
            )
        except CSVFormatError as exc:
            return self._finalize(self._failure_result(vendor_id, options.mode, exc, options), options)
        return self._dispatch(vendor_id, table, options, base)

    def process_vendor_bytes(
        self,
        vendor_id: str,
        data: bytes,
        options: ProductionOptions | None = None,
        *,
        file_name: str | None = None,
    ) -> ProductionResult:
        """
        Process an uploaded payload. The encoding is taken from a byte-order
        mark when present, otherwise from the vendor config.
        """

        options = options or ProductionOptions()
        vendor_id = self._resolve_vendor_id(vendor_id)
        base = self._config_manager.get_config(vendor_id, options.vendor_type)
        try:
            table = read_csv_bytes(
                data,
                encoding=base.parse_options.encoding,
                delimiter=base.parse_options.delimiter,
                keep_blank_lines=not base.parse_options.skip_empty_rows,
            )
        except CSVFormatError as exc:
            failed = self._failure_result(vendor_id, options.mode, exc, options, file_path=file_name)
            return self._finalize(failed, options)
        return self._dispatch(vendor_id, table, options, base, file_path=file_name)

    def process_large_file(
        self,
        vendor_id: str,
        file_path: str | Path,
        options: ProductionOptions | None = None,
    ) -> ProductionResult:
        """
        Stream a large file through one lenient pass in sequential chunks.
        """

        options = options or ProductionOptions(mode=ProcessingMode.LENIENT)
        vendor_id = self._resolve_vendor_id(vendor_id)
        base = self._config_manager.get_config(vendor_id, options.vendor_type)
        config = lenient_config(base, enable_recovery=options.enable_recovery, max_errors=STREAMING_MAX_ERRORS)
        processor = self._new_processor(config)
        service = CSVIngestionService(options=config.parse_options, log_row_issues=self._log_row_issues)
        state: dict[str, Any] = {"mapping": None, "headers": []}

        def on_chunk(chunk: CSVChunk) -> None:
            if state["mapping"] is None:
                state["headers"] = list(chunk.headers)
                processor.load_table(CSVTable(headers=chunk.headers))
                if options.mapping:
                    processor.set_mapping(options.mapping)
                state["mapping"] = processor.resolve_mapping()
            service.process_rows(
                chunk.rows,
                mapping=state["mapping"],
                vendor_id=vendor_id,
                start_index=chunk.start_index,
            )

        log_event(logger, logging.INFO, "ingestion_streaming_started", vendor_id=vendor_id, file_path=str(file_path))
        started_at = time.perf_counter()
        service.start_pass()
        try:
            streamed = stream_csv_file(
                file_path,
                on_chunk,
                chunk_size=self._streaming_chunk_size,
                encoding=config.parse_options.encoding,
                delimiter=config.parse_options.delimiter,
            )
            import_result = service.finish_pass()
            if import_result.successfully_normalized < config.min_required_rows:
                raise InsufficientRowsError(
                    import_result.successfully_normalized,
                    config.min_required_rows,
                    import_result=import_result,
                )
        except (OSError, CSVFormatError, *_PASS_FAILURES) as exc:
            failed = self._failure_result(
                vendor_id,
                ProcessingMode.LENIENT,
                exc,
                options,
                file_path=str(file_path),
                headers=state["headers"],
            )
            return self._finalize(replace(failed, path_taken=["streaming"]), options)

        logger.info(
            "Streaming completed vendor_id=%s streamed=%s valid=%s",
            vendor_id,
            streamed,
            import_result.successfully_normalized,
        )
        result = self._completed_result(
            vendor_id,
            ProcessingMode.LENIENT,
            processor,
            import_result,
            options,
            started_at=started_at,
            success=import_result.successfully_normalized > 0,
        )
        return self._finalize(replace(result, path_taken=["streaming"]), options)

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _dispatch(
        self,
        vendor_id: str,
        table: CSVTable,
        options: ProductionOptions,
        base: ProcessorConfig,
        *,
        file_path: str | None = None,
    ) -> ProductionResult:
        log_event(
            logger,
            logging.INFO,
            "ingestion_mode_selected",
            vendor_id=vendor_id,
            mode=options.mode,
            rows=len(table.rows),
            file_path=file_path,
        )
        if options.mode == ProcessingMode.ADAPTIVE:
            result = self._process_adaptive(vendor_id, table, options, base, file_path=file_path)
        else:
            result = self._run_mode(vendor_id, options.mode, table, options, base, file_path=file_path)
        return self._finalize(result, options)

    def _process_adaptive(
        self,
        vendor_id: str,
        table: CSVTable,
        options: ProductionOptions,
        base: ProcessorConfig,
        *,
        file_path: str | None,
    ) -> ProductionResult:
        strict = self._run_mode(vendor_id, ProcessingMode.STRICT, table, options, base, file_path=file_path)
        if strict.success and strict.quality.passed_threshold:
            logger.info("Adaptive processing accepted strict result vendor_id=%s", vendor_id)
            return replace(
                strict,
                mode=ProcessingMode.ADAPTIVE,
                next_steps=[
                    "Strict mode successful - data quality is good",
                    "Consider using strict mode for future processing of this vendor",
                ],
            )

        reason = "quality_below_threshold" if strict.success else "strict_failed"
        log_event(
            logger,
            logging.INFO,
            "ingestion_adaptive_fallback",
            vendor_id=vendor_id,
            reason=reason,
            strict_score=strict.quality.score,
        )
        lenient = self._run_mode(vendor_id, ProcessingMode.LENIENT, table, options, base, file_path=file_path)
        first_step = (
            "Strict mode quality threshold not met, using lenient results"
            if strict.success
            else "Strict mode failed, using lenient fallback"
        )
        return replace(
            lenient,
            mode=ProcessingMode.ADAPTIVE,
            path_taken=[ProcessingMode.STRICT, ProcessingMode.LENIENT],
            handled_errors=[*strict.handled_errors, *lenient.handled_errors],
            recovery_attempted=strict.recovery_attempted or lenient.recovery_attempted,
            next_steps=[
                first_step,
                "Review data quality to improve strict mode success rate",
                "Consider vendor-specific configuration tuning",
            ],
        )

    def _run_mode(
        self,
        vendor_id: str,
        mode: str,
        table: CSVTable,
        options: ProductionOptions,
        base: ProcessorConfig,
        *,
        file_path: str | None,
    ) -> ProductionResult:
        if mode == ProcessingMode.STRICT:
            config = strict_config(base)
        elif mode == ProcessingMode.LENIENT:
            config = lenient_config(base, enable_recovery=options.enable_recovery)
        else:
            config = base

        processor = self._new_processor(config)
        processor.load_table(table)
        started_at = time.perf_counter()
        try:
            if options.mapping:
                processor.set_mapping(options.mapping)
            import_result = processor.run_import()
        except _PASS_FAILURES as exc:
            logger.warning("Processing failed vendor_id=%s mode=%s: %s", vendor_id, mode, exc)
            return self._failure_result(
                vendor_id,
                mode,
                exc,
                options,
                file_path=file_path,
                headers=table.headers,
                cache_used=processor.mapping_source == MappingSource.CACHED,
            )

        success = True
        if mode == ProcessingMode.LENIENT:
            success = import_result.successfully_normalized > 0
        return self._completed_result(
            vendor_id,
            mode,
            processor,
            import_result,
            options,
            started_at=started_at,
            success=success,
        )

    # ------------------------------------------------------------------
    # Result building
    # ------------------------------------------------------------------

    def _completed_result(
        self,
        vendor_id: str,
        mode: str,
        processor: EnhancedCSVProcessor,
        import_result: ImportResult,
        options: ProductionOptions,
        *,
        started_at: float,
        success: bool,
    ) -> ProductionResult:
        process_time_ms = round((time.perf_counter() - started_at) * 1000, 3)
        diagnostics = processor.calculate_diagnostics(import_result, process_time_ms=process_time_ms)
        metrics = self._monitor.record_processing(vendor_id, import_result, diagnostics)
        quality = diagnostics.data_quality

        handled: list[StructuredError] = []
        low_quality_limit = STRICT_LOW_QUALITY_LIMIT if mode == ProcessingMode.STRICT else DEFAULT_LOW_QUALITY_LIMIT
        if quality.accuracy < low_quality_limit:
            handled.append(
                self._error_handler.handle_low_quality(
                    vendor_id,
                    quality,
                    import_result,
                    mapping_confidence=diagnostics.mapping_confidence,
                )
            )

        profile = self._monitor.get_vendor_profile(vendor_id)
        performance_recommendations = list(profile.recommendations) if profile is not None else []
        recommendations = processor.generate_recommendations(import_result, diagnostics)
        if mode == ProcessingMode.DIAGNOSTIC:
            recommendations.extend(performance_recommendations)
            if quality.accuracy < 0.9:
                recommendations.append("Consider using lenient mode for production processing")
            else:
                recommendations.append("Data quality is good - strict mode recommended")

        report = None
        if success and mode != ProcessingMode.DIAGNOSTIC and options.report_generator is not None:
            report = options.report_generator(list(import_result.records))

        return ProductionResult(
            success=success,
            vendor_id=vendor_id,
            mode=mode,
            timestamp=datetime.now(timezone.utc),
            quality=QualityVerdict.from_score(quality.accuracy, options.min_quality_threshold),
            quality_threshold=options.min_quality_threshold,
            metrics=metrics,
            path_taken=[mode],
            import_result=import_result,
            records=list(import_result.records),
            diagnostics=diagnostics,
            report=report,
            recommendations=recommendations,
            performance_recommendations=performance_recommendations,
            handled_errors=handled,
            cache_used=processor.mapping_source == MappingSource.CACHED,
            mapping=processor.mapping,
        )

    def _failure_result(
        self,
        vendor_id: str,
        mode: str,
        error: BaseException,
        options: ProductionOptions,
        *,
        file_path: str | None = None,
        headers: Sequence[str] | None = None,
        cache_used: bool = False,
    ) -> ProductionResult:
        import_result = error.import_result if isinstance(error, IngestionError) else None
        row_numbers = sorted({issue.row_number for issue in import_result.errors}) if import_result else None
        handled = self._error_handler.handle_processing_error(
            vendor_id,
            error,
            RecoveryContext(
                import_result=import_result,
                quality=import_result.quality if import_result is not None else None,
                file_path=file_path,
                row_numbers=row_numbers or None,
                headers=list(headers) if headers else None,
            ),
        )

        suggestions = list(handled.error.suggestions)
        if mode == ProcessingMode.STRICT:
            suggestions.extend(
                [
                    "Data does not meet strict quality requirements",
                    "Try using lenient or adaptive processing mode",
                ]
            )
        elif isinstance(error, (OSError, CSVFormatError)):
            suggestions.extend(["Verify file exists and is accessible", "Check CSV format and encoding"])

        return ProductionResult(
            success=False,
            vendor_id=vendor_id,
            mode=mode,
            timestamp=datetime.now(timezone.utc),
            quality=QualityVerdict.from_score(0.0, options.min_quality_threshold),
            quality_threshold=options.min_quality_threshold,
            metrics=empty_metrics(vendor_id),
            path_taken=[mode],
            import_result=import_result,
            handled_errors=[handled.error],
            recovery=handled.recovery,
            suggestions=suggestions,
            recovery_attempted=handled.error.recovery_attempted,
            cache_used=cache_used,
            performance_recommendations=(
                ["Consider using lenient or adaptive mode for this data"] if mode == ProcessingMode.STRICT else []
            ),
        )

    def _finalize(self, result: ProductionResult, options: ProductionOptions) -> ProductionResult:
        result = self._apply_deduplication(result, options)
        next_steps = result.next_steps or self.generate_next_steps(result, options)
        log_event(
            logger,
            logging.INFO,
            "ingestion_completed",
            vendor_id=result.vendor_id,
            mode=result.mode,
            path_taken=result.path_taken,
            success=result.success,
            score=round(result.quality.score, 4),
            assessment=result.quality.assessment,
        )
        return replace(result, next_steps=next_steps)

    @staticmethod
    def _apply_deduplication(result: ProductionResult, options: ProductionOptions) -> ProductionResult:
        if not result.success or options.existing_records is None:
            return result
        existing = list(options.existing_records)
        if options.merge_updates:
            return replace(result, records=merge_with_updates(existing, result.records))
        dedup = deduplicate(result.records, existing)
        return replace(result, records=list(dedup.new_records), dedup=dedup)

    @staticmethod
    def generate_next_steps(result: ProductionResult, options: ProductionOptions) -> list[str]:
        steps: list[str] = []
        if not result.success:
            steps.append("Investigate processing failure")
            steps.append("Review error details and suggestions")
            if result.mode == ProcessingMode.STRICT:
                steps.append("Try lenient or adaptive mode")
            if result.recovery is not None and result.recovery.requires_manual_intervention:
                steps.append("Manual intervention required before reprocessing")
            return steps

        if not result.quality.passed_threshold:
            steps.append(
                f"Quality threshold not met ({result.quality.score * 100:.1f}% < "
                f"{result.quality_threshold * 100:.1f}%)"
            )
            steps.append("Review data quality issues")
            steps.append("Consider data cleaning or preprocessing")
        if result.performance_recommendations:
            steps.append("Review performance recommendations")
        if result.suggestions:
            steps.append("Address suggestions for improvement")
        if result.mode == ProcessingMode.DIAGNOSTIC:
            steps.append("Choose production processing mode based on diagnostics")
        if result.report is not None:
            steps.append("Report generated successfully")
        return steps or ["Processing completed successfully"]

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def get_performance_statistics(self) -> dict[str, Any]:
        return self._monitor.get_statistics()

    def get_error_statistics(self) -> dict[str, Any]:
        return self._error_handler.get_error_statistics()

    def export_all_data(self, base_path: str | Path) -> list[Path]:
        base = str(base_path)
        performance = self._monitor.export_data(f"{base}-performance.json")
        errors = self._error_handler.export_error_data(f"{base}-errors.json")
        configs = self._config_manager.export_configs(f"{base}-config.json")
        logger.info("Exported ingestion data base_path=%s", base)
        return [performance, errors, configs]

    def cleanup_old_data(self, days_to_keep: int = 90) -> dict[str, int]:
        return {
            "metrics_removed": self._monitor.cleanup_old_metrics(days_to_keep),
            "errors_removed": self._error_handler.clear_old_errors(days_to_keep),
        }

    def reset(self) -> None:
        self._monitor.reset()
        self._error_handler.reset()
        self._mapping_store.clear()
        logger.info("Production processor reset")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_processor(self, config: ProcessorConfig) -> EnhancedCSVProcessor:
        return EnhancedCSVProcessor(
            config,
            mapping_store=self._mapping_store,
            log_row_issues=self._log_row_issues,
        )

    @staticmethod
    def _resolve_vendor_id(vendor_id: str) -> str:
        resolved = normalize_vendor_id(vendor_id)
        if resolved is None:
            raise InvalidVendorIdError(vendor_id)
        return resolved


@lru_cache(maxsize=1)
def get_production_processor() -> ProductionCSVProcessor:
    """
    Build and cache the process-wide production processor.
    """

    settings = get_ingestion_settings()
    return ProductionCSVProcessor(
        performance_monitor=get_performance_monitor(),
        error_handler=get_error_handler(),
        mapping_store=build_mapping_store(),
        streaming_chunk_size=settings.streaming_chunk_size,
        log_row_issues=settings.log_row_issues,
    )
