"""
app/services/csv_ingestion_service.py

One ingestion pass over vendor CSV rows: map, normalize, count and classify.

A pass owns its accumulators (seen order ids, statistics, issues). They are
reset by ``start_pass`` so a service instance can be reused for several
files, but never shared by two passes at the same time.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Mapping

from app.domain.ingestion import (
    ImportResult,
    IssueCode,
    IssueSeverity,
    ParseOptions,
    ParseStatistics,
    RowIssue,
)
from app.domain.vendor_order import NormalizedRecord
from app.mappers.schema_mapper import SchemaMapper
from app.validators.row_normalizer import RowOutcome, VendorRowNormalizer

logger = logging.getLogger(__name__)

# Rows are numbered as in a spreadsheet: the header is row 1.
FIRST_DATA_ROW = 2

_INVALID_TYPE_CODES = frozenset({IssueCode.INVALID_ORDER_DATE, IssueCode.INVALID_VALUE})


class CSVIngestionService:
    """
    Coordinates row mapping, normalization and statistics for one pass.
    """

    def __init__(
        self,
        *,
        options: ParseOptions | None = None,
        mapper: SchemaMapper | None = None,
        normalizer: VendorRowNormalizer | None = None,
        log_row_issues: bool = True,
    ) -> None:
        self._options = options or ParseOptions()
        self._mapper = mapper or SchemaMapper()
        self._normalizer = normalizer or VendorRowNormalizer()
        self._log_row_issues = log_row_issues
        self._reset()

    @property
    def options(self) -> ParseOptions:
        return self._options

    @property
    def statistics(self) -> ParseStatistics:
        return self._statistics

    @property
    def halted(self) -> bool:
        return self._statistics.halted

    def parse_and_normalize(
        self,
        rows: Iterable[Mapping[str, Any]],
        *,
        mapping: Mapping[str, str],
        vendor_id: str,
    ) -> ImportResult:
        """
        Run a complete pass over ``rows`` and return its result.
        """

        self.start_pass()
        self.process_rows(rows, mapping=mapping, vendor_id=vendor_id)
        return self.finish_pass()

    def start_pass(self) -> None:
        self._reset()
        self._started_at = time.perf_counter()

    def process_rows(
        self,
        rows: Iterable[Mapping[str, Any]],
        *,
        mapping: Mapping[str, str],
        vendor_id: str,
        start_index: int = 0,
    ) -> bool:
        """
        Process a batch of rows within the current pass.

        Returns False once the pass has halted; later batches are ignored.
        """

        if self._statistics.halted:
            return False

        stats = self._statistics
        for offset, raw_row in enumerate(rows):
            row_number = start_index + offset + FIRST_DATA_ROW
            stats.total_rows += 1

            if self._normalizer.is_completely_empty_row(raw_row):
                stats.empty_rows += 1
                if self._options.skip_empty_rows:
                    stats.skipped_rows += 1
                    continue
                stats.failed_rows += 1
                self._record_issue(
                    RowIssue(
                        row_number=row_number,
                        message="Completely empty row.",
                        code=IssueCode.EMPTY_ROW,
                    )
                )
                if self._should_halt(row_number):
                    return False
                continue

            mapped_row = self._mapper.map_row(
                raw_row=raw_row,
                mapping=mapping,
                trim=self._options.trim_whitespace,
            )
            outcome = self._normalizer.normalize_row(
                mapped_row=mapped_row,
                row_number=row_number,
                vendor_id=vendor_id,
                options=self._options,
                seen_order_ids=self._seen_order_ids,
            )
            self._tally(outcome)

            if outcome.record is not None:
                stats.successful_rows += 1
                self._records.append(outcome.record)
                continue

            stats.failed_rows += 1
            if not outcome.errors:
                self._record_issue(
                    RowIssue(
                        row_number=row_number,
                        message="Row could not be normalized.",
                        code=IssueCode.ROW_FAILED,
                    )
                )
            if self._should_halt(row_number):
                return False

        return True

    def finish_pass(self) -> ImportResult:
        stats = self._statistics
        elapsed_ms = (time.perf_counter() - self._started_at) * 1000
        stats.parse_time_ms = round(elapsed_ms, 3)
        stats.rows_per_second = round(stats.total_rows / (elapsed_ms / 1000)) if elapsed_ms > 0 else 0

        logger.info(
            "Ingestion pass finished total=%s successful=%s failed=%s skipped=%s duplicates=%s halted=%s",
            stats.total_rows,
            stats.successful_rows,
            stats.failed_rows,
            stats.skipped_rows,
            stats.duplicate_order_ids,
            stats.halted,
        )
        return ImportResult(
            total_rows=stats.total_rows,
            successfully_normalized=stats.successful_rows,
            failed_rows=stats.failed_rows,
            records=list(self._records),
            errors=list(self._errors),
            warnings=list(self._warnings),
            statistics=stats,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._statistics = ParseStatistics()
        self._seen_order_ids: set[str] = set()
        self._records: list[NormalizedRecord] = []
        self._errors: list[RowIssue] = []
        self._warnings: list[RowIssue] = []
        self._started_at = time.perf_counter()

    def _tally(self, outcome: RowOutcome) -> None:
        stats = self._statistics
        for issue in [*outcome.errors, *outcome.warnings]:
            if issue.code == IssueCode.REQUIRED_FIELD_MISSING and issue.field:
                stats.count_missing(issue.field)
            elif issue.code in _INVALID_TYPE_CODES and issue.field:
                stats.count_invalid(issue.field)
            elif issue.code == IssueCode.DUPLICATE_ORDER_ID_REJECTED:
                stats.duplicate_order_ids += 1
                stats.rejected_duplicates += 1
            elif issue.code == IssueCode.DUPLICATE_ORDER_ID_TOLERATED:
                stats.duplicate_order_ids += 1
                stats.tolerated_duplicates += 1
            self._record_issue(issue)

    def _should_halt(self, row_number: int) -> bool:
        max_errors = self._options.max_errors
        if max_errors is not None and len(self._errors) >= max_errors:
            reason = f"Stopping: Maximum error limit ({max_errors}) reached at row {row_number}."
            self._errors.append(
                RowIssue(
                    row_number=row_number,
                    message=reason,
                    code=IssueCode.MAX_ERRORS_REACHED,
                )
            )
        elif not self._options.continue_on_error:
            reason = f"Stopping at row {row_number}: continue_on_error is disabled."
        else:
            return False

        self._statistics.halted = True
        self._statistics.halt_reason = reason
        logger.warning("Ingestion pass halted: %s", reason)
        return True

    def _record_issue(self, issue: RowIssue) -> None:
        if issue.severity == IssueSeverity.ERROR:
            self._errors.append(issue)
            if self._log_row_issues:
                logger.warning(
                    "CSV validation error row=%s field=%s message=%s value=%r",
                    issue.row_number,
                    issue.field,
                    issue.message,
                    issue.value,
                )
        else:
            self._warnings.append(issue)
            if self._log_row_issues:
                logger.debug(
                    "CSV validation warning row=%s field=%s message=%s value=%r",
                    issue.row_number,
                    issue.field,
                    issue.message,
                    issue.value,
                )
