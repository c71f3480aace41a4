"""
app/domain/ingestion.py

Domain models used by the vendor CSV ingestion pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.domain.vendor_order import NormalizedRecord


class IssueSeverity:
    ERROR = "error"
    WARNING = "warning"


class IssueCode:
    EMPTY_ROW = "empty_row"
    REQUIRED_FIELD_MISSING = "required_field_missing"
    INVALID_ORDER_DATE = "invalid_order_date"
    INVALID_VALUE = "invalid_value"
    UNRECOGNIZED_DIMENSION = "unrecognized_dimension"
    DUPLICATE_ORDER_ID_REJECTED = "duplicate_order_id_rejected"
    DUPLICATE_ORDER_ID_TOLERATED = "duplicate_order_id_tolerated"
    MAX_ERRORS_REACHED = "max_errors_reached"
    ROW_FAILED = "row_failed"
    PASS_FAILED = "pass_failed"


@dataclass(frozen=True)
class RowIssue:
    """
    One row-level error or warning.

    Errors are fatal for the row; warnings leave the record intact.
    """

    row_number: int
    message: str
    code: str
    severity: str = IssueSeverity.ERROR
    field: str | None = None
    value: str | None = None

    @property
    def is_fatal(self) -> bool:
        return self.severity == IssueSeverity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "message": self.message,
            "code": self.code,
            "severity": self.severity,
            "field": self.field,
            "value": self.value,
        }


@dataclass(frozen=True)
class ParseOptions:
    """
    Per-pass ingestion policy.
    """

    assume_finance_selected: bool = False
    continue_on_error: bool = True
    max_errors: int | None = None
    trim_whitespace: bool = True
    skip_empty_rows: bool = True
    encoding: str = "utf-8"
    delimiter: str | None = None
    allow_duplicate_order_ids: bool = False


@dataclass
class ParseStatistics:
    """
    Counters accumulated over one ingestion pass.
    """

    total_rows: int = 0
    successful_rows: int = 0
    failed_rows: int = 0
    skipped_rows: int = 0
    empty_rows: int = 0
    duplicate_order_ids: int = 0
    rejected_duplicates: int = 0
    tolerated_duplicates: int = 0
    missing_required_fields: dict[str, int] = field(default_factory=dict)
    invalid_data_types: dict[str, int] = field(default_factory=dict)
    parse_time_ms: float = 0.0
    rows_per_second: int = 0
    halted: bool = False
    halt_reason: str | None = None

    def count_missing(self, field_name: str) -> None:
        self.missing_required_fields[field_name] = self.missing_required_fields.get(field_name, 0) + 1

    def count_invalid(self, field_name: str) -> None:
        self.invalid_data_types[field_name] = self.invalid_data_types.get(field_name, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_rows": self.total_rows,
            "successful_rows": self.successful_rows,
            "failed_rows": self.failed_rows,
            "skipped_rows": self.skipped_rows,
            "empty_rows": self.empty_rows,
            "duplicate_order_ids": self.duplicate_order_ids,
            "rejected_duplicates": self.rejected_duplicates,
            "tolerated_duplicates": self.tolerated_duplicates,
            "missing_required_fields": dict(self.missing_required_fields),
            "invalid_data_types": dict(self.invalid_data_types),
            "parse_time_ms": self.parse_time_ms,
            "rows_per_second": self.rows_per_second,
            "halted": self.halted,
            "halt_reason": self.halt_reason,
        }


@dataclass(frozen=True)
class DataQuality:
    """
    Quality scores in [0, 1] derived from a statistics snapshot.
    """

    completeness: float
    consistency: float
    accuracy: float


def compute_data_quality(statistics: ParseStatistics) -> DataQuality:
    """
    completeness = successful / total
    consistency  = 1 - sum(invalid type counts) / total, floored at 0
    accuracy     = mean(completeness, consistency)
    """

    total = statistics.total_rows
    if total <= 0:
        return DataQuality(completeness=0.0, consistency=0.0, accuracy=0.0)

    completeness = statistics.successful_rows / total
    invalid_total = sum(statistics.invalid_data_types.values())
    consistency = max(0.0, 1.0 - invalid_total / total)
    return DataQuality(
        completeness=completeness,
        consistency=consistency,
        accuracy=(completeness + consistency) / 2,
    )


@dataclass(frozen=True)
class ImportResult:
    """
    Outcome of one ingestion pass.
    """

    total_rows: int
    successfully_normalized: int
    failed_rows: int
    records: list[NormalizedRecord] = field(default_factory=list)
    errors: list[RowIssue] = field(default_factory=list)
    warnings: list[RowIssue] = field(default_factory=list)
    statistics: ParseStatistics = field(default_factory=ParseStatistics)

    @property
    def quality(self) -> DataQuality:
        return compute_data_quality(self.statistics)

    @property
    def error_rate(self) -> float:
        if self.total_rows <= 0:
            return 0.0
        return self.failed_rows / self.total_rows
