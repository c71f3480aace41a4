"""
app/services/performance_monitor.py

Per-run processing metrics and per-vendor performance profiles.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any

from app.config import PerformanceThresholdSettings, get_performance_threshold_settings
from app.domain.ingestion import DataQuality, ImportResult
from app.logging_utils import log_event
from app.services.csv_processor import ProcessingDiagnostics

logger = logging.getLogger(__name__)

TREND_WINDOW = 30
RECENT_ALERT_WINDOW = 10


@dataclass(frozen=True)
class ProcessingMetrics:
    vendor_id: str
    timestamp: datetime
    total_rows: int
    successful_rows: int
    failed_rows: int
    parse_time_ms: float
    process_time_ms: float
    total_time_ms: float
    rows_per_second: int
    data_quality: DataQuality
    mapping_confidence: float
    unmapped_fields: int
    error_rate: float
    duplicate_rate: float
    warning_count: int

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat()
        return payload


def empty_metrics(vendor_id: str) -> ProcessingMetrics:
    return ProcessingMetrics(
        vendor_id=vendor_id,
        timestamp=datetime.now(timezone.utc),
        total_rows=0,
        successful_rows=0,
        failed_rows=0,
        parse_time_ms=0.0,
        process_time_ms=0.0,
        total_time_ms=0.0,
        rows_per_second=0,
        data_quality=DataQuality(completeness=0.0, consistency=0.0, accuracy=0.0),
        mapping_confidence=0.0,
        unmapped_fields=0,
        error_rate=0.0,
        duplicate_rate=0.0,
        warning_count=0,
    )


@dataclass
class VendorProfile:
    """
    Running averages and recent trends for one vendor.
    """

    vendor_id: str
    best_performance: ProcessingMetrics
    worst_performance: ProcessingMetrics
    processing_count: int = 0
    average_rows_per_second: float = 0.0
    average_parse_time_ms: float = 0.0
    average_accuracy: float = 0.0
    average_error_rate: float = 0.0
    performance_trend: list[tuple[datetime, int]] = field(default_factory=list)
    quality_trend: list[tuple[datetime, float]] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "processing_count": self.processing_count,
            "average_performance": {
                "rows_per_second": self.average_rows_per_second,
                "parse_time_ms": self.average_parse_time_ms,
                "accuracy": self.average_accuracy,
                "error_rate": self.average_error_rate,
            },
            "best_performance": self.best_performance.to_dict(),
            "worst_performance": self.worst_performance.to_dict(),
            "trends": {
                "performance": [
                    {"date": stamp.isoformat(), "rows_per_second": value} for stamp, value in self.performance_trend
                ],
                "quality": [{"date": stamp.isoformat(), "accuracy": value} for stamp, value in self.quality_trend],
            },
            "recommendations": list(self.recommendations),
        }


def moving_average(current: float, new_value: float, count: int) -> float:
    return (current * (count - 1) + new_value) / count


class PerformanceMonitor:
    """
    Records metrics for every processing run and keeps vendor profiles.
    """

    def __init__(self, thresholds: PerformanceThresholdSettings | None = None) -> None:
        self._thresholds = thresholds or PerformanceThresholdSettings()
        # Oldest runs drop off once max_history is reached; vendor profiles keep their totals.
        self._metrics: deque[ProcessingMetrics] = deque(maxlen=self._thresholds.max_history)
        self._profiles: dict[str, VendorProfile] = {}
        self._lock = threading.Lock()

    @property
    def thresholds(self) -> PerformanceThresholdSettings:
        return self._thresholds

    def record_processing(
        self,
        vendor_id: str,
        import_result: ImportResult,
        diagnostics: ProcessingDiagnostics,
    ) -> ProcessingMetrics:
        total_rows = import_result.total_rows
        parse_time_ms = import_result.statistics.parse_time_ms
        process_time_ms = diagnostics.process_time_ms
        total_time_ms = parse_time_ms + process_time_ms
        metrics = ProcessingMetrics(
            vendor_id=vendor_id,
            timestamp=datetime.now(timezone.utc),
            total_rows=total_rows,
            successful_rows=import_result.successfully_normalized,
            failed_rows=import_result.failed_rows,
            parse_time_ms=parse_time_ms,
            process_time_ms=process_time_ms,
            total_time_ms=total_time_ms,
            rows_per_second=round(total_rows / total_time_ms * 1000) if total_time_ms > 0 else 0,
            data_quality=diagnostics.data_quality,
            mapping_confidence=diagnostics.mapping_confidence,
            unmapped_fields=len(diagnostics.unmapped_fields),
            error_rate=import_result.failed_rows / total_rows if total_rows > 0 else 0.0,
            duplicate_rate=import_result.statistics.duplicate_order_ids / total_rows if total_rows > 0 else 0.0,
            warning_count=len(import_result.warnings),
        )

        with self._lock:
            self._metrics.append(metrics)
            self._update_vendor_profile(vendor_id, metrics)
        self.check_thresholds(metrics)
        return metrics

    def _update_vendor_profile(self, vendor_id: str, metrics: ProcessingMetrics) -> None:
        profile = self._profiles.get(vendor_id)
        if profile is None:
            profile = VendorProfile(vendor_id=vendor_id, best_performance=metrics, worst_performance=metrics)
            self._profiles[vendor_id] = profile

        profile.processing_count += 1
        count = profile.processing_count
        profile.average_rows_per_second = moving_average(
            profile.average_rows_per_second, metrics.rows_per_second, count
        )
        profile.average_parse_time_ms = moving_average(profile.average_parse_time_ms, metrics.parse_time_ms, count)
        profile.average_accuracy = moving_average(profile.average_accuracy, metrics.data_quality.accuracy, count)
        profile.average_error_rate = moving_average(profile.average_error_rate, metrics.error_rate, count)

        if metrics.rows_per_second > profile.best_performance.rows_per_second:
            profile.best_performance = metrics
        if metrics.rows_per_second < profile.worst_performance.rows_per_second:
            profile.worst_performance = metrics

        profile.performance_trend.append((metrics.timestamp, metrics.rows_per_second))
        profile.quality_trend.append((metrics.timestamp, metrics.data_quality.accuracy))
        del profile.performance_trend[:-TREND_WINDOW]
        del profile.quality_trend[:-TREND_WINDOW]

        profile.recommendations = self._generate_recommendations(profile, metrics)

    def check_thresholds(self, metrics: ProcessingMetrics) -> list[str]:
        """
        Return and log one alert line per threshold the run breached.
        """

        thresholds = self._thresholds
        alerts: list[str] = []
        if metrics.rows_per_second < thresholds.min_rows_per_second:
            alerts.append(
                f"Performance alert: {metrics.rows_per_second} rows/sec (min: {thresholds.min_rows_per_second})"
            )
        if metrics.parse_time_ms > thresholds.max_parse_time_ms:
            alerts.append(f"Parse time alert: {metrics.parse_time_ms}ms (max: {thresholds.max_parse_time_ms}ms)")
        if metrics.data_quality.accuracy < thresholds.min_data_accuracy:
            alerts.append(
                f"Data quality alert: {metrics.data_quality.accuracy * 100:.1f}% "
                f"(min: {thresholds.min_data_accuracy * 100:.0f}%)"
            )
        if metrics.error_rate > thresholds.max_error_rate:
            alerts.append(
                f"Error rate alert: {metrics.error_rate * 100:.1f}% (max: {thresholds.max_error_rate * 100:.0f}%)"
            )
        if metrics.duplicate_rate > thresholds.max_duplicate_rate:
            alerts.append(
                f"Duplicate rate alert: {metrics.duplicate_rate * 100:.1f}% "
                f"(max: {thresholds.max_duplicate_rate * 100:.0f}%)"
            )

        if alerts:
            log_event(
                logger,
                logging.WARNING,
                "ingestion_performance_alert",
                vendor_id=metrics.vendor_id,
                alerts=alerts,
            )
        return alerts

    @staticmethod
    def _generate_recommendations(profile: VendorProfile, latest: ProcessingMetrics) -> list[str]:
        recommendations: list[str] = []
        if latest.rows_per_second < 1000 and latest.total_rows > 10000:
            recommendations.append("Consider using streaming for large files (>10K rows)")
        if latest.parse_time_ms > 1000 and latest.total_rows < 1000:
            recommendations.append("Small file with slow parsing - check for complex validation rules")
        if profile.processing_count > 3 and latest.mapping_confidence > 0.8:
            recommendations.append("Enable mapping caching for this vendor")
        if latest.error_rate > 0.2:
            recommendations.append("High error rate - consider lenient processing mode")
        if latest.duplicate_rate > 0.05:
            recommendations.append("High duplicate rate - review data source for unique IDs")
        if latest.data_quality.accuracy < 0.8:
            recommendations.append("Low data quality - validate CSV export settings")
        if latest.unmapped_fields > 3:
            recommendations.append(f"{latest.unmapped_fields} unmapped fields - consider custom mapping")

        if len(profile.performance_trend) >= 5:
            recent = [value for _, value in profile.performance_trend[-5:]]
            if sum(recent) / len(recent) < profile.average_rows_per_second * 0.7:
                recommendations.append("Performance degradation detected - investigate recent changes")
        return recommendations

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_statistics(self) -> dict[str, Any]:
        with self._lock:
            metrics = list(self._metrics)
            vendor_count = len(self._profiles)

        if not metrics:
            return {
                "total_processings": 0,
                "average_performance": {"rows_per_second": 0, "parse_time_ms": 0, "accuracy": 0.0},
                "vendor_count": 0,
                "alerts": [],
            }

        alerts: list[dict[str, Any]] = []
        for item in metrics[-RECENT_ALERT_WINDOW:]:
            if item.rows_per_second < self._thresholds.min_rows_per_second:
                alerts.append(
                    {
                        "vendor_id": item.vendor_id,
                        "metric": "rows_per_second",
                        "value": item.rows_per_second,
                        "threshold": self._thresholds.min_rows_per_second,
                    }
                )
            if item.data_quality.accuracy < self._thresholds.min_data_accuracy:
                alerts.append(
                    {
                        "vendor_id": item.vendor_id,
                        "metric": "data_accuracy",
                        "value": item.data_quality.accuracy,
                        "threshold": self._thresholds.min_data_accuracy,
                    }
                )

        count = len(metrics)
        return {
            "total_processings": count,
            "average_performance": {
                "rows_per_second": round(sum(item.rows_per_second for item in metrics) / count),
                "parse_time_ms": round(sum(item.parse_time_ms for item in metrics) / count),
                "accuracy": sum(item.data_quality.accuracy for item in metrics) / count,
            },
            "vendor_count": vendor_count,
            "alerts": alerts,
        }

    def get_vendor_profile(self, vendor_id: str) -> VendorProfile | None:
        with self._lock:
            return self._profiles.get(vendor_id)

    def get_all_vendor_profiles(self) -> dict[str, VendorProfile]:
        with self._lock:
            return dict(self._profiles)

    def get_performance_trend(self, vendor_id: str, days: int = 30) -> dict[str, list[Any]]:
        profile = self.get_vendor_profile(vendor_id)
        if profile is None:
            return {"dates": [], "performance": [], "quality": []}

        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        performance = [(stamp, value) for stamp, value in profile.performance_trend if stamp >= cutoff]
        quality = [value for stamp, value in profile.quality_trend if stamp >= cutoff]
        return {
            "dates": [stamp for stamp, _ in performance],
            "performance": [value for _, value in performance],
            "quality": quality,
        }

    def get_global_recommendations(self) -> list[dict[str, Any]]:
        return [
            {"vendor_id": vendor_id, "recommendations": list(profile.recommendations)}
            for vendor_id, profile in self.get_all_vendor_profiles().items()
            if profile.recommendations
        ]

    def export_data(self, file_path: str | Path) -> Path:
        path = Path(file_path)
        with self._lock:
            metrics = [item.to_dict() for item in self._metrics]
            profiles = {vendor_id: profile.to_dict() for vendor_id, profile in self._profiles.items()}
        payload = {
            "metrics": metrics,
            "vendor_profiles": profiles,
            "thresholds": asdict(self._thresholds),
            "statistics": self.get_statistics(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
        logger.info("Exported performance data path=%s metrics=%s", path, len(metrics))
        return path

    def cleanup_old_metrics(self, days_to_keep: int = 90) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
        with self._lock:
            before = len(self._metrics)
            self._metrics = deque(
                (item for item in self._metrics if item.timestamp >= cutoff),
                maxlen=self._thresholds.max_history,
            )
            removed = before - len(self._metrics)
        if removed:
            logger.info("Removed %s metrics older than %s days", removed, days_to_keep)
        return removed

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._profiles.clear()


@lru_cache(maxsize=1)
def get_performance_monitor() -> PerformanceMonitor:
    return PerformanceMonitor(thresholds=get_performance_threshold_settings())
