"""
app/services/error_handler.py

Classification, alerting, escalation and recovery for ingestion failures.

Every failure routed here becomes a StructuredError with a severity and a
category. Recovery strategies are plain descriptors evaluated in
registration order; the first one that applies and succeeds wins.
"""

from __future__ import annotations

import json
import logging
import threading
import traceback
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable

from app.config import get_error_handler_settings
from app.domain.ingestion import DataQuality, ImportResult
from app.logging_utils import log_event
from app.mappers.schema_mapper import infer_mapping
from app.validators.mapping_validator import validate_mapping

logger = logging.getLogger(__name__)


class ErrorSeverity:
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


ERROR_SEVERITIES: tuple[str, ...] = (
    ErrorSeverity.CRITICAL,
    ErrorSeverity.HIGH,
    ErrorSeverity.MEDIUM,
    ErrorSeverity.LOW,
    ErrorSeverity.INFO,
)


class ErrorCategory:
    VALIDATION = "validation"
    PARSING = "parsing"
    MAPPING = "mapping"
    NORMALIZATION = "normalization"
    SYSTEM = "system"
    CONFIGURATION = "configuration"
    QUALITY = "quality"


ERROR_CATEGORIES: tuple[str, ...] = (
    ErrorCategory.VALIDATION,
    ErrorCategory.PARSING,
    ErrorCategory.MAPPING,
    ErrorCategory.NORMALIZATION,
    ErrorCategory.SYSTEM,
    ErrorCategory.CONFIGURATION,
    ErrorCategory.QUALITY,
)

# First matching bucket wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (ErrorCategory.MAPPING, ("mapping", "field", "column")),
    (ErrorCategory.PARSING, ("parse", "csv", "delimiter")),
    (ErrorCategory.VALIDATION, ("valid", "required", "missing")),
    (ErrorCategory.NORMALIZATION, ("normalize", "format", "date", "currency")),
    (ErrorCategory.CONFIGURATION, ("config", "setting", "option")),
    (ErrorCategory.SYSTEM, ("memory", "performance", "timeout")),
)

DEFAULT_SEVERITY_BY_CATEGORY: dict[str, str] = {
    ErrorCategory.VALIDATION: ErrorSeverity.HIGH,
    ErrorCategory.MAPPING: ErrorSeverity.HIGH,
    ErrorCategory.PARSING: ErrorSeverity.MEDIUM,
    ErrorCategory.NORMALIZATION: ErrorSeverity.MEDIUM,
    ErrorCategory.QUALITY: ErrorSeverity.LOW,
    ErrorCategory.CONFIGURATION: ErrorSeverity.INFO,
}

CATEGORY_SUGGESTIONS: dict[str, tuple[str, ...]] = {
    ErrorCategory.MAPPING: (
        "Check CSV headers match expected format",
        "Consider creating a custom mapping for this vendor",
        "Run mapping inference to review the suggested mapping",
    ),
    ErrorCategory.PARSING: (
        "Verify CSV format and delimiter",
        "Check for special characters or encoding issues",
        "Retry with continue_on_error enabled",
    ),
    ErrorCategory.VALIDATION: (
        "Review required fields in your CSV",
        "Check for empty or malformed values",
        "Allow duplicate order ids if repeats are expected",
    ),
    ErrorCategory.NORMALIZATION: (
        "Check date and currency formats",
        "Verify numeric values are properly formatted",
        "Consider preprocessing your CSV data",
    ),
}

ESCALATION_KEY_LENGTH = 50


@dataclass(frozen=True)
class ErrorHandlerConfig:
    enable_recovery: bool = True
    log_errors: bool = True
    alert_on_high: bool = False
    notification_channels: tuple[str, ...] = ("log",)
    auto_escalate_after: int = 5
    max_history: int = 10_000


@dataclass(frozen=True)
class RecoveryContext:
    """
    What the handler knows about the failed run.
    """

    import_result: ImportResult | None = None
    quality: DataQuality | None = None
    file_path: str | None = None
    row_numbers: list[int] | None = None
    headers: list[str] | None = None

    @property
    def error_rate(self) -> float | None:
        if self.import_result is None or self.import_result.total_rows <= 0:
            return None
        return self.import_result.failed_rows / self.import_result.total_rows

    def summary(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"file_path": self.file_path}
        if self.import_result is not None:
            payload.update(
                total_rows=self.import_result.total_rows,
                failed_rows=self.import_result.failed_rows,
                successfully_normalized=self.import_result.successfully_normalized,
                error_rate=self.error_rate,
            )
        return payload


@dataclass
class StructuredError:
    """
    One classified failure. Only the recovery fields change after creation.
    """

    id: str
    timestamp: datetime
    vendor_id: str
    severity: str
    category: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    stack_trace: str | None = None
    affected_rows: list[int] | None = None
    suggestions: list[str] = field(default_factory=list)
    recovery_attempted: bool = False
    recovery_successful: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "vendor_id": self.vendor_id,
            "severity": self.severity,
            "category": self.category,
            "message": self.message,
            "details": self.details,
            "stack_trace": self.stack_trace,
            "affected_rows": self.affected_rows,
            "suggestions": list(self.suggestions),
            "recovery_attempted": self.recovery_attempted,
            "recovery_successful": self.recovery_successful,
        }


@dataclass(frozen=True)
class RecoveryResult:
    success: bool
    strategy: str
    message: str
    data: Any = None
    warnings: list[str] = field(default_factory=list)
    requires_manual_intervention: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "strategy": self.strategy,
            "message": self.message,
            "data": self.data,
            "warnings": list(self.warnings),
            "requires_manual_intervention": self.requires_manual_intervention,
        }


RecoveryAction = Callable[[StructuredError, RecoveryContext], RecoveryResult]


@dataclass(frozen=True)
class RecoveryStrategy:
    """
    A recovery descriptor: when it applies and what it does.
    """

    name: str
    description: str
    action: RecoveryAction
    categories: frozenset[str] | None = None
    min_rows: int | None = None
    max_error_rate: float | None = None

    def applies_to(self, error: StructuredError, context: RecoveryContext) -> bool:
        result = context.import_result
        if self.min_rows is not None and result is not None and result.total_rows < self.min_rows:
            return False
        if self.max_error_rate is not None:
            error_rate = context.error_rate
            if error_rate is not None and error_rate > self.max_error_rate:
                return False
        if self.categories is not None and error.category not in self.categories:
            return False
        return True


@dataclass(frozen=True)
class Alert:
    error_id: str
    vendor_id: str
    title: str
    channel: str
    timestamp: datetime


@dataclass(frozen=True)
class HandledError:
    """
    Outcome of routing one failure through the handler.
    """

    error: StructuredError
    recovery: RecoveryResult
    alerted: bool = False
    escalated: bool = False


class RecoveryUnavailableError(RuntimeError):
    """
    Raised by a recovery action that cannot help with the given failure.
    """


# ---------------------------------------------------------------------------
# Default recovery actions
# ---------------------------------------------------------------------------


def _lenient_parsing_retry(error: StructuredError, context: RecoveryContext) -> RecoveryResult:
    return RecoveryResult(
        success=True,
        strategy="lenient-parsing-retry",
        message="Retry with lenient parsing settings.",
        data={
            "overrides": {
                "continue_on_error": True,
                "allow_duplicate_order_ids": True,
                "max_errors": None,
            }
        },
        warnings=["Some data quality may be reduced"],
    )


def _skip_problematic_rows(error: StructuredError, context: RecoveryContext) -> RecoveryResult:
    rows = list(context.row_numbers or [])
    if not rows and context.import_result is not None:
        rows = sorted({issue.row_number for issue in context.import_result.errors})
    return RecoveryResult(
        success=True,
        strategy="skip-problematic-rows",
        message=f"Skip {len(rows)} problematic row(s) and continue processing.",
        data={"skip_rows": rows},
        warnings=["Some data was excluded from analysis"],
    )


def _fallback_mapping(error: StructuredError, context: RecoveryContext) -> RecoveryResult:
    if not context.headers:
        raise RecoveryUnavailableError("No headers available to infer a fallback mapping.")
    inference = infer_mapping(context.headers)
    validation = validate_mapping(inference.suggested_mapping)
    if not validation.valid:
        raise RecoveryUnavailableError(
            "Fallback mapping is missing required fields: " + ", ".join(validation.missing)
        )
    return RecoveryResult(
        success=True,
        strategy="fallback-mapping",
        message="Use the inferred mapping regardless of its confidence.",
        data={"mapping": dict(inference.suggested_mapping), "confidence": inference.confidence},
        warnings=["Mapping may not be optimal"],
    )


def _manual_intervention(error: StructuredError, context: RecoveryContext) -> RecoveryResult:
    return RecoveryResult(
        success=False,
        strategy="manual-intervention",
        message="Manual intervention required to resolve this error.",
        warnings=["Processing cannot continue automatically"],
        requires_manual_intervention=True,
    )


def default_recovery_strategies() -> list[RecoveryStrategy]:
    return [
        RecoveryStrategy(
            name="lenient-parsing-retry",
            description="Retry processing with lenient parsing settings",
            action=_lenient_parsing_retry,
            categories=frozenset({ErrorCategory.PARSING, ErrorCategory.VALIDATION}),
            max_error_rate=0.3,
        ),
        RecoveryStrategy(
            name="skip-problematic-rows",
            description="Skip rows with validation errors and continue processing",
            action=_skip_problematic_rows,
            categories=frozenset({ErrorCategory.VALIDATION, ErrorCategory.NORMALIZATION}),
            min_rows=10,
        ),
        RecoveryStrategy(
            name="fallback-mapping",
            description="Use the inferred field mapping when it was rejected",
            action=_fallback_mapping,
            categories=frozenset({ErrorCategory.MAPPING}),
        ),
        RecoveryStrategy(
            name="manual-intervention",
            description="Error requires manual intervention",
            action=_manual_intervention,
        ),
    ]


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


class ErrorHandler:
    """
    Keeps the structured error log and runs recovery for failed runs.
    """

    def __init__(
        self,
        *,
        config: ErrorHandlerConfig | None = None,
        strategies: Iterable[RecoveryStrategy] | None = None,
    ) -> None:
        self._config = config or ErrorHandlerConfig()
        self._strategies = list(strategies) if strategies is not None else default_recovery_strategies()
        # Oldest entries drop off once max_history is reached.
        self._errors: deque[StructuredError] = deque(maxlen=self._config.max_history)
        self._alerts: deque[Alert] = deque(maxlen=self._config.max_history)
        self._occurrences: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> ErrorHandlerConfig:
        return self._config

    @property
    def errors(self) -> list[StructuredError]:
        with self._lock:
            return list(self._errors)

    @property
    def alerts(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    def register_strategy(self, strategy: RecoveryStrategy, *, index: int | None = None) -> None:
        with self._lock:
            if index is None:
                self._strategies.append(strategy)
            else:
                self._strategies.insert(index, strategy)

    def handle_processing_error(
        self,
        vendor_id: str,
        error: BaseException,
        context: RecoveryContext | None = None,
    ) -> HandledError:
        """
        Classify ``error``, log it, alert/escalate as needed and try recovery.
        """

        context = context or RecoveryContext()
        structured, occurrences = self._create_structured_error(vendor_id, error, context)

        if self._config.log_errors:
            self._log_error(structured)
        alerted = self._check_for_alerts(structured)
        escalated = self._check_for_escalation(structured, occurrences)

        if not self._config.enable_recovery:
            recovery = RecoveryResult(
                success=False,
                strategy="none",
                message="Recovery not attempted (disabled in config)",
            )
        else:
            recovery = self._attempt_recovery(structured, context)

        return HandledError(error=structured, recovery=recovery, alerted=alerted, escalated=escalated)

    def handle_low_quality(
        self,
        vendor_id: str,
        quality: DataQuality,
        import_result: ImportResult,
        *,
        mapping_confidence: float | None = None,
    ) -> StructuredError:
        """
        Record a medium-severity quality error for a run that completed with
        low accuracy.
        """

        total = import_result.total_rows
        structured = StructuredError(
            id=self._new_id(ErrorCategory.QUALITY, ErrorSeverity.MEDIUM),
            timestamp=datetime.now(timezone.utc),
            vendor_id=vendor_id,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.QUALITY,
            message=f"Low data quality detected: {quality.accuracy * 100:.1f}% accuracy",
            details={
                "completeness": quality.completeness,
                "consistency": quality.consistency,
                "accuracy": quality.accuracy,
                "successful_rows": import_result.successfully_normalized,
                "total_rows": total,
                "error_rate": import_result.failed_rows / total if total else 0.0,
            },
            suggestions=quality_suggestions(quality, import_result, mapping_confidence=mapping_confidence),
        )
        with self._lock:
            self._errors.append(structured)
        if self._config.log_errors:
            log_event(
                logger,
                logging.WARNING,
                "ingestion_low_quality",
                vendor_id=vendor_id,
                message=structured.message,
                suggestions=structured.suggestions,
            )
        return structured

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    @staticmethod
    def determine_category(message: str, context: RecoveryContext | None = None) -> str:
        lowered = message.lower()
        for category, keywords in CATEGORY_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return category
        if context is not None and context.import_result is not None:
            return ErrorCategory.QUALITY
        return ErrorCategory.SYSTEM

    @staticmethod
    def determine_severity(category: str, context: RecoveryContext | None = None) -> str:
        if category == ErrorCategory.SYSTEM:
            return ErrorSeverity.CRITICAL
        error_rate = context.error_rate if context is not None else None
        if error_rate is not None:
            if error_rate > 0.5:
                return ErrorSeverity.HIGH
            if error_rate > 0.2:
                return ErrorSeverity.MEDIUM
            if error_rate > 0.05:
                return ErrorSeverity.LOW
        return DEFAULT_SEVERITY_BY_CATEGORY.get(category, ErrorSeverity.MEDIUM)

    @staticmethod
    def suggestions_for(message: str, category: str, context: RecoveryContext | None = None) -> list[str]:
        suggestions = list(CATEGORY_SUGGESTIONS.get(category, ()))
        if category == ErrorCategory.QUALITY and context is not None and context.import_result is not None:
            result = context.import_result
            if result.total_rows and result.successfully_normalized / result.total_rows < 0.8:
                suggestions.append("Data quality is low - review CSV export settings")

        lowered = message.lower()
        if "insufficient" in lowered or "not enough" in lowered:
            suggestions.append("Check if CSV has enough valid rows")
            suggestions.append("Review data filtering criteria")
        if "threshold" in lowered or "confidence" in lowered:
            suggestions.append("Lower the mapping confidence threshold for this vendor")
            suggestions.append("Consider manual mapping for better accuracy")
        return suggestions

    def _create_structured_error(
        self,
        vendor_id: str,
        error: BaseException,
        context: RecoveryContext,
    ) -> tuple[StructuredError, int]:
        message = str(error) or error.__class__.__name__
        category = self.determine_category(message, context)
        severity = self.determine_severity(category, context)

        escalation_key = (category, message[:ESCALATION_KEY_LENGTH])
        stack_trace = None
        if error.__traceback__ is not None:
            stack_trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))

        with self._lock:
            occurrences = self._occurrences.get(escalation_key, 0) + 1
            self._occurrences[escalation_key] = occurrences
            structured = StructuredError(
                id=self._new_id(category, severity),
                timestamp=datetime.now(timezone.utc),
                vendor_id=vendor_id,
                severity=severity,
                category=category,
                message=message,
                details={
                    "error_type": error.__class__.__name__,
                    "occurrence_count": occurrences,
                    "context": context.summary(),
                },
                stack_trace=stack_trace,
                affected_rows=list(context.row_numbers) if context.row_numbers else None,
                suggestions=self.suggestions_for(message, category, context),
            )
            self._errors.append(structured)
        return structured, occurrences

    @staticmethod
    def _new_id(category: str, severity: str) -> str:
        return f"{category}-{severity}-{uuid.uuid4().hex[:12]}"

    # ------------------------------------------------------------------
    # Alerting, escalation, recovery
    # ------------------------------------------------------------------

    def _log_error(self, error: StructuredError) -> None:
        level = logging.ERROR if error.severity in {ErrorSeverity.CRITICAL, ErrorSeverity.HIGH} else logging.WARNING
        log_event(
            logger,
            level,
            "ingestion_error",
            error_id=error.id,
            vendor_id=error.vendor_id,
            severity=error.severity,
            category=error.category,
            message=error.message,
            suggestions=error.suggestions,
        )

    def _check_for_alerts(self, error: StructuredError) -> bool:
        if error.severity == ErrorSeverity.CRITICAL:
            title = "CRITICAL error requires immediate attention"
        elif error.severity == ErrorSeverity.HIGH and self._config.alert_on_high:
            title = "HIGH severity error detected"
        else:
            return False

        for channel in self._config.notification_channels:
            alert = Alert(
                error_id=error.id,
                vendor_id=error.vendor_id,
                title=title,
                channel=channel,
                timestamp=datetime.now(timezone.utc),
            )
            with self._lock:
                self._alerts.append(alert)
            log_event(
                logger,
                logging.ERROR,
                "ingestion_alert",
                channel=channel,
                title=title,
                vendor_id=error.vendor_id,
                error_id=error.id,
                message=error.message,
            )
        return True

    def _check_for_escalation(self, error: StructuredError, occurrences: int) -> bool:
        if occurrences < self._config.auto_escalate_after:
            return False
        log_event(
            logger,
            logging.WARNING,
            "ingestion_error_escalated",
            vendor_id=error.vendor_id,
            category=error.category,
            message=error.message,
            occurrences=occurrences,
        )
        return True

    def _attempt_recovery(self, error: StructuredError, context: RecoveryContext) -> RecoveryResult:
        with self._lock:
            strategies = [strategy for strategy in self._strategies if strategy.applies_to(error, context)]

        if not strategies:
            logger.info("No recovery strategy applies error_id=%s", error.id)
            return RecoveryResult(
                success=False,
                strategy="none",
                message="No applicable recovery strategies found",
                requires_manual_intervention=True,
            )

        for strategy in strategies:
            try:
                result = strategy.action(error, context)
            except Exception as exc:  # noqa: BLE001
                logger.info("Recovery strategy failed strategy=%s error_id=%s: %s", strategy.name, error.id, exc)
                continue
            if result.success:
                error.recovery_attempted = True
                error.recovery_successful = True
                log_event(
                    logger,
                    logging.INFO,
                    "ingestion_recovery_succeeded",
                    vendor_id=error.vendor_id,
                    error_id=error.id,
                    strategy=strategy.name,
                )
                return result

        error.recovery_attempted = True
        error.recovery_successful = False
        log_event(
            logger,
            logging.WARNING,
            "ingestion_recovery_failed",
            vendor_id=error.vendor_id,
            error_id=error.id,
        )
        return RecoveryResult(
            success=False,
            strategy="all-failed",
            message="All recovery strategies failed; manual intervention required",
            requires_manual_intervention=True,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_error_statistics(self) -> dict[str, Any]:
        by_severity = {severity: 0 for severity in ERROR_SEVERITIES}
        by_category = {category: 0 for category in ERROR_CATEGORIES}
        by_vendor: dict[str, int] = {}
        attempted = 0
        successful = 0

        for error in self.errors:
            by_severity[error.severity] = by_severity.get(error.severity, 0) + 1
            by_category[error.category] = by_category.get(error.category, 0) + 1
            by_vendor[error.vendor_id] = by_vendor.get(error.vendor_id, 0) + 1
            if error.recovery_attempted:
                attempted += 1
                if error.recovery_successful:
                    successful += 1

        return {
            "total_errors": sum(by_vendor.values()),
            "by_severity": by_severity,
            "by_category": by_category,
            "by_vendor": by_vendor,
            "recovery_rate": successful / attempted if attempted else 0.0,
        }

    def get_recent_errors(self, limit: int = 10) -> list[StructuredError]:
        return sorted(self.errors, key=lambda item: item.timestamp, reverse=True)[:limit]

    def clear_old_errors(self, days_to_keep: int = 30) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        with self._lock:
            before = len(self._errors)
            self._errors = deque(
                (error for error in self._errors if error.timestamp >= cutoff),
                maxlen=self._config.max_history,
            )
            removed = before - len(self._errors)
        if removed:
            logger.info("Removed %s errors older than %s days", removed, days_to_keep)
        return removed

    def export_error_data(self, file_path: str | Path) -> Path:
        path = Path(file_path)
        payload = {
            "errors": [error.to_dict() for error in self.errors],
            "statistics": self.get_error_statistics(),
            "config": {
                "enable_recovery": self._config.enable_recovery,
                "log_errors": self._config.log_errors,
                "alert_on_high": self._config.alert_on_high,
                "notification_channels": list(self._config.notification_channels),
                "auto_escalate_after": self._config.auto_escalate_after,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        logger.info("Exported error data path=%s errors=%s", path, len(payload["errors"]))
        return path

    def reset(self) -> None:
        with self._lock:
            self._errors.clear()
            self._alerts.clear()
            self._occurrences.clear()


def quality_suggestions(
    quality: DataQuality,
    import_result: ImportResult,
    *,
    mapping_confidence: float | None = None,
) -> list[str]:
    suggestions: list[str] = []
    if quality.completeness < 0.9:
        suggestions.append(
            f"Data completeness is {quality.completeness * 100:.1f}% - review CSV export for missing fields"
        )
    if quality.consistency < 0.9:
        suggestions.append(
            f"Data consistency is {quality.consistency * 100:.1f}% - check data types and formats"
        )
    duplicates = import_result.statistics.duplicate_order_ids
    if duplicates > 0:
        suggestions.append(f"Found {duplicates} duplicate order IDs - ensure unique transaction IDs")
    if mapping_confidence is not None and mapping_confidence < 0.8:
        suggestions.append(
            f"Mapping confidence is {mapping_confidence * 100:.1f}% - consider custom mapping"
        )
    total = import_result.total_rows
    if total and import_result.failed_rows > total * 0.1:
        suggestions.append(
            f"High failure rate ({import_result.failed_rows / total * 100:.1f}%) - review error details"
        )
    return suggestions


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_error_handler() -> ErrorHandler:
    """
    Build and cache the process-wide error handler with env-driven settings.
    """

    settings = get_error_handler_settings()
    return ErrorHandler(
        config=ErrorHandlerConfig(
            enable_recovery=settings.enable_recovery,
            log_errors=settings.log_errors,
            alert_on_high=settings.alert_on_high,
            auto_escalate_after=settings.auto_escalate_after,
            max_history=settings.max_history,
        )
    )
