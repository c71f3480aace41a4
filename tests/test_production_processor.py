from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from app.domain.vendor_order import NormalizedRecord
from app.services.error_handler import ErrorCategory, ErrorHandler, ErrorHandlerConfig
from app.services.mapping_store import InMemoryMappingStore
from app.services.performance_monitor import PerformanceMonitor
from app.services.production_processor import (
    InvalidVendorIdError,
    ProcessingMode,
    ProductionCSVProcessor,
    ProductionOptions,
    QualityAssessment,
    assess_quality,
    lenient_config,
    strict_config,
)
from app.services.vendor_config import ProcessorConfig

HEADER = "order_id,order_date,product_name,product_sku,product_category,order_value"


def _csv(rows: list[str], header: str = HEADER) -> str:
    return "\n".join([header, *rows]) + "\n"


def _row(index: int, *, date: str | None = None, value: str = "1200") -> str:
    order_date = f"2024-01-{index:02d}" if date is None else date
    return f"A{index},{order_date},Boiler,SKU-{index},Heating,{value}"


def _clean(count: int) -> str:
    return _csv([_row(index) for index in range(1, count + 1)])


def _low_quality() -> str:
    # Eight of ten order values are not numbers.
    return _csv([_row(index, value="abc" if index <= 8 else "1200") for index in range(1, 11)])


def _last_row_missing_date() -> str:
    rows = [_row(index) for index in range(1, 12)]
    rows.append(_row(12, date=""))
    return _csv(rows)


def _options(mode: str = ProcessingMode.ADAPTIVE, **overrides) -> ProductionOptions:
    return ProductionOptions(mode=mode, **overrides)


@pytest.fixture
def processor() -> ProductionCSVProcessor:
    return ProductionCSVProcessor(
        performance_monitor=PerformanceMonitor(),
        error_handler=ErrorHandler(config=ErrorHandlerConfig(log_errors=False)),
        mapping_store=InMemoryMappingStore(),
        log_row_issues=False,
    )


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


def test_strict_and_lenient_policies() -> None:
    base = ProcessorConfig(vendor_id="acme", mapping_confidence_threshold=0.6, min_required_rows=1)

    strict = strict_config(base)
    lenient = lenient_config(base, enable_recovery=True)
    unbounded = lenient_config(base, enable_recovery=False)

    assert strict.parse_options.continue_on_error is False
    assert strict.parse_options.max_errors == 1
    assert strict.mapping_confidence_threshold == 0.8
    assert strict.min_required_rows == 10
    assert strict.abort_on_row_error is True
    assert lenient.parse_options.allow_duplicate_order_ids is True
    assert lenient.parse_options.max_errors == 100
    assert lenient.mapping_confidence_threshold == 0.5
    assert unbounded.parse_options.max_errors is None


@pytest.mark.parametrize(
    ("score", "expected"),
    [
        (0.95, QualityAssessment.EXCELLENT),
        (0.9, QualityAssessment.GOOD),
        (0.7, QualityAssessment.FAIR),
        (0.5, QualityAssessment.POOR),
        (0.49, QualityAssessment.UNACCEPTABLE),
    ],
)
def test_assess_quality(score: float, expected: str) -> None:
    assert assess_quality(score) == expected


def test_options_validation() -> None:
    with pytest.raises(ValueError):
        ProductionOptions(mode="turbo")
    with pytest.raises(ValueError):
        ProductionOptions(min_quality_threshold=1.5)


def test_options_from_settings_ignore_none_overrides() -> None:
    options = ProductionOptions.from_settings(mode=ProcessingMode.STRICT, min_quality_threshold=None)

    assert options.mode == ProcessingMode.STRICT
    assert options.min_quality_threshold == 0.7


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


def test_adaptive_accepts_clean_strict_pass(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _clean(10), _options())

    assert result.success is True
    assert result.mode == ProcessingMode.ADAPTIVE
    assert result.path_taken == [ProcessingMode.STRICT]
    assert result.quality.score == 1.0
    assert result.quality.assessment == QualityAssessment.EXCELLENT
    assert result.quality.passed_threshold is True
    assert len(result.records) == 10
    assert result.handled_errors == []
    assert result.cache_used is False
    assert result.next_steps[0] == "Strict mode successful - data quality is good"


def test_adaptive_falls_back_when_quality_is_low(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _low_quality(), _options())

    assert result.success is True
    assert result.path_taken == [ProcessingMode.STRICT, ProcessingMode.LENIENT]
    assert result.quality.score == pytest.approx(0.6)
    assert result.quality.assessment == QualityAssessment.POOR
    assert result.quality.passed_threshold is False
    assert result.cache_used is True
    assert [error.category for error in result.handled_errors] == [ErrorCategory.QUALITY, ErrorCategory.QUALITY]
    assert result.next_steps[0] == "Strict mode quality threshold not met, using lenient results"


def test_strict_pass_below_threshold_still_succeeds(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _low_quality(), _options(ProcessingMode.STRICT))

    assert result.success is True
    assert result.path_taken == [ProcessingMode.STRICT]
    assert result.quality.passed_threshold is False
    assert result.diagnostics.data_quality.completeness == 1.0
    assert result.diagnostics.data_quality.consistency == pytest.approx(0.2)
    assert "Quality threshold not met (60.0% < 70.0%)" in result.next_steps


def test_strict_abort_is_routed_through_recovery(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _last_row_missing_date(), _options(ProcessingMode.STRICT))

    assert result.success is False
    assert result.path_taken == [ProcessingMode.STRICT]
    assert result.quality.assessment == QualityAssessment.UNACCEPTABLE
    assert result.import_result.failed_rows == 1
    assert result.handled_errors[0].category == ErrorCategory.VALIDATION
    assert result.handled_errors[0].affected_rows == [13]
    assert result.recovery.strategy == "lenient-parsing-retry"
    assert result.recovery_attempted is True
    assert "Data does not meet strict quality requirements" in result.suggestions
    assert result.performance_recommendations == ["Consider using lenient or adaptive mode for this data"]
    assert "Try lenient or adaptive mode" in result.next_steps


def test_adaptive_falls_back_when_strict_fails(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _last_row_missing_date(), _options())

    assert result.success is True
    assert result.path_taken == [ProcessingMode.STRICT, ProcessingMode.LENIENT]
    assert len(result.records) == 11
    assert result.cache_used is True
    assert result.recovery_attempted is True
    assert len(result.handled_errors) == 1
    assert result.next_steps[0] == "Strict mode failed, using lenient fallback"


def test_strict_requires_ten_rows(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _clean(3), _options(ProcessingMode.STRICT))

    assert result.success is False
    assert result.handled_errors[0].message == "Insufficient valid rows: got 3, need at least 10"
    assert "Check if CSV has enough valid rows" in result.suggestions


def test_diagnostic_mode(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text(
        "acme",
        _clean(3),
        _options(ProcessingMode.DIAGNOSTIC, report_generator=len),
    )

    assert result.success is True
    assert result.report is None
    assert result.recommendations[-1] == "Data quality is good - strict mode recommended"
    assert "Choose production processing mode based on diagnostics" in result.next_steps


def test_lenient_mode_generates_report(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("acme", _clean(3), _options(ProcessingMode.LENIENT, report_generator=len))

    assert result.report == 3
    assert "Report generated successfully" in result.next_steps


def test_caller_mapping_is_used(processor: ProductionCSVProcessor) -> None:
    text = _csv(["A1,2024-01-05", "A2,2024-01-06"], header="Ref,When")

    result = processor.process_vendor_text(
        "acme",
        text,
        _options(ProcessingMode.LENIENT, mapping={"order_id": "Ref", "order_date": "When"}),
    )

    assert result.success is True
    assert result.mapping == {"order_id": "Ref", "order_date": "When"}
    assert [record.order_id for record in result.records] == ["A1", "A2"]


def test_vendor_id_is_normalized(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text("Acme_Heating", _clean(3), _options(ProcessingMode.LENIENT))

    assert result.vendor_id == "acme-heating"
    assert result.records[0].vendor_id == "acme-heating"


def test_invalid_vendor_id(processor: ProductionCSVProcessor) -> None:
    with pytest.raises(InvalidVendorIdError):
        processor.process_vendor_text("bad vendor!", _clean(3))


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


def _existing(order_id: str, day: int, value: float) -> NormalizedRecord:
    return NormalizedRecord(
        order_id=order_id,
        order_date=datetime(2023, 12, day),
        vendor_id="acme",
        finance_selected=False,
        order_value=value,
    )


def test_existing_records_are_deduplicated(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_text(
        "acme",
        _clean(3),
        _options(ProcessingMode.LENIENT, existing_records=[_existing("A1", 1, 1.0)]),
    )

    assert [record.order_id for record in result.records] == ["A2", "A3"]
    assert result.dedup.duplicate_count == 1


def test_merge_updates_keeps_later_records(processor: ProductionCSVProcessor) -> None:
    existing = [_existing("A1", 1, 1.0), _existing("B9", 1, 9.0)]

    result = processor.process_vendor_text(
        "acme",
        _clean(3),
        _options(ProcessingMode.LENIENT, existing_records=existing, merge_updates=True),
    )

    merged = {record.order_id: record for record in result.records}
    assert set(merged) == {"A1", "A2", "A3", "B9"}
    assert merged["A1"].order_value == 1200.0
    assert result.dedup is None


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def test_missing_file(processor: ProductionCSVProcessor, tmp_path: Path) -> None:
    result = processor.process_vendor_file("acme", tmp_path / "missing.csv")

    assert result.success is False
    assert "Verify file exists and is accessible" in result.suggestions
    assert result.next_steps[0] == "Investigate processing failure"


def test_vendor_file(processor: ProductionCSVProcessor, tmp_path: Path) -> None:
    path = tmp_path / "orders.csv"
    path.write_text(_clean(3), encoding="utf-8")

    result = processor.process_vendor_file("acme", path, _options(ProcessingMode.LENIENT))

    assert result.success is True
    assert len(result.records) == 3


def test_vendor_bytes(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_bytes(
        "acme",
        _clean(3).encode("utf-8"),
        _options(ProcessingMode.LENIENT),
        file_name="orders.csv",
    )

    assert result.success is True
    assert len(result.records) == 3


def test_undecodable_bytes_fail_cleanly(processor: ProductionCSVProcessor) -> None:
    result = processor.process_vendor_bytes("acme", b"order_id,order_date\nA1,\xff\xfe\n", _options())

    assert result.success is False
    assert result.handled_errors[0].category == ErrorCategory.PARSING
    assert "Check CSV format and encoding" in result.suggestions


def test_large_file_is_streamed_in_chunks(tmp_path: Path) -> None:
    processor = ProductionCSVProcessor(
        error_handler=ErrorHandler(config=ErrorHandlerConfig(log_errors=False)),
        streaming_chunk_size=2,
        log_row_issues=False,
    )
    path = tmp_path / "orders.csv"
    path.write_text(_clean(5), encoding="utf-8")

    result = processor.process_large_file("acme", path)

    assert result.success is True
    assert result.mode == ProcessingMode.LENIENT
    assert result.path_taken == ["streaming"]
    assert result.import_result.total_rows == 5
    assert [record.order_id for record in result.records] == ["A1", "A2", "A3", "A4", "A5"]


def test_large_file_with_unmappable_headers(tmp_path: Path) -> None:
    processor = ProductionCSVProcessor(
        error_handler=ErrorHandler(config=ErrorHandlerConfig(log_errors=False)),
        streaming_chunk_size=2,
        log_row_issues=False,
    )
    path = tmp_path / "orders.csv"
    path.write_text(_csv(["1,2"], header="###,%%%"), encoding="utf-8")

    result = processor.process_large_file("acme", path)

    assert result.success is False
    assert result.path_taken == ["streaming"]
    assert result.handled_errors[0].category == ErrorCategory.MAPPING


def test_large_file_with_header_only_is_explained(tmp_path: Path) -> None:
    processor = ProductionCSVProcessor(
        error_handler=ErrorHandler(config=ErrorHandlerConfig(log_errors=False)),
        streaming_chunk_size=2,
        log_row_issues=False,
    )
    path = tmp_path / "orders.csv"
    path.write_text(_csv([]), encoding="utf-8")

    result = processor.process_large_file("acme", path)

    assert result.success is False
    assert result.path_taken == ["streaming"]
    assert result.import_result.total_rows == 0
    assert result.handled_errors[0].category == ErrorCategory.VALIDATION
    assert "Insufficient valid rows: got 0, need at least 1" in result.handled_errors[0].message
    assert result.recovery is not None
    assert result.suggestions


def test_large_file_without_valid_rows_is_routed_to_recovery(tmp_path: Path) -> None:
    processor = ProductionCSVProcessor(
        error_handler=ErrorHandler(config=ErrorHandlerConfig(log_errors=False)),
        streaming_chunk_size=2,
        log_row_issues=False,
    )
    path = tmp_path / "orders.csv"
    path.write_text(_csv([_row(1, date=""), _row(2, date="")]), encoding="utf-8")

    result = processor.process_large_file("acme", path)

    assert result.success is False
    assert result.import_result.total_rows == 2
    assert result.import_result.failed_rows == 2
    assert result.recovery is not None
    assert result.handled_errors[0].recovery_attempted is True


# ---------------------------------------------------------------------------
# Housekeeping
# ---------------------------------------------------------------------------


def test_statistics_export_and_reset(processor: ProductionCSVProcessor, tmp_path: Path) -> None:
    processor.process_vendor_text("acme", _clean(3), _options(ProcessingMode.LENIENT))
    processor.process_vendor_text("acme", _clean(3), _options(ProcessingMode.STRICT))

    assert processor.get_performance_statistics()["total_processings"] == 1
    assert processor.get_error_statistics()["total_errors"] == 1

    paths = processor.export_all_data(tmp_path / "ingest")
    assert [path.name for path in paths] == [
        "ingest-performance.json",
        "ingest-errors.json",
        "ingest-config.json",
    ]
    assert all(path.exists() for path in paths)

    assert processor.cleanup_old_data(days_to_keep=90) == {"metrics_removed": 0, "errors_removed": 0}

    processor.reset()
    assert processor.mapping_store.keys() == []
    assert processor.get_error_statistics()["total_errors"] == 0
