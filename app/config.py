"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_ALLOWED_MODES = {"strict", "lenient", "adaptive", "diagnostic"}
_ALLOWED_MAPPING_STORES = {"memory", "sql"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_choice_env(name: str, default: str, allowed: set[str]) -> str:
    """
    Read a lowercase string restricted to ``allowed``.

    Raises RuntimeError for values outside the allowed set so a typo never
    silently selects the default.
    """

    value = _get_str_env(name, default).lower()
    if value not in allowed:
        raise RuntimeError(
            f"{name} '{value}' is not valid. Allowed values: {sorted(allowed)}."
        )
    return value


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for vendor CSV ingestion.
    """

    default_mode: str = "adaptive"
    min_quality_threshold: float = 0.7
    enable_recovery: bool = True
    streaming_chunk_size: int = 1000
    mapping_store: str = "memory"
    log_row_issues: bool = True
    max_upload_bytes: int = 50 * 1024 * 1024


@dataclass(frozen=True)
class ErrorHandlerSettings:
    """
    Error classification, alerting and recovery settings.
    """

    enable_recovery: bool = True
    log_errors: bool = True
    alert_on_high: bool = False
    auto_escalate_after: int = 5
    max_history: int = 10_000


@dataclass(frozen=True)
class PerformanceThresholdSettings:
    """
    Thresholds that raise performance alerts for a processing run.
    """

    min_rows_per_second: int = 1000
    max_parse_time_ms: float = 5000.0
    min_data_accuracy: float = 0.7
    max_error_rate: float = 0.3
    max_duplicate_rate: float = 0.1
    max_history: int = 10_000


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached vendor ingestion settings from environment variables.
    """

    return IngestionSettings(
        default_mode=_get_choice_env("VENDOR_INGEST_DEFAULT_MODE", "adaptive", _ALLOWED_MODES),
        min_quality_threshold=min(
            1.0, max(0.0, _get_float_env("VENDOR_INGEST_MIN_QUALITY_THRESHOLD", 0.7))
        ),
        enable_recovery=_get_bool_env("VENDOR_INGEST_ENABLE_RECOVERY", True),
        streaming_chunk_size=max(1, _get_int_env("VENDOR_INGEST_STREAMING_CHUNK_SIZE", 1000)),
        mapping_store=_get_choice_env("VENDOR_INGEST_MAPPING_STORE", "memory", _ALLOWED_MAPPING_STORES),
        log_row_issues=_get_bool_env("VENDOR_INGEST_LOG_ROW_ISSUES", True),
        max_upload_bytes=max(1, _get_int_env("VENDOR_INGEST_MAX_UPLOAD_BYTES", 50 * 1024 * 1024)),
    )


@lru_cache(maxsize=1)
def get_error_handler_settings() -> ErrorHandlerSettings:
    """
    Return cached error handler settings from environment variables.
    """

    return ErrorHandlerSettings(
        enable_recovery=_get_bool_env("INGEST_ERRORS_ENABLE_RECOVERY", True),
        log_errors=_get_bool_env("INGEST_ERRORS_LOG_ERRORS", True),
        alert_on_high=_get_bool_env("INGEST_ERRORS_ALERT_ON_HIGH", False),
        auto_escalate_after=max(1, _get_int_env("INGEST_ERRORS_AUTO_ESCALATE_AFTER", 5)),
        max_history=max(1, _get_int_env("INGEST_ERRORS_MAX_HISTORY", 10_000)),
    )


@lru_cache(maxsize=1)
def get_performance_threshold_settings() -> PerformanceThresholdSettings:
    """
    Return cached performance alert thresholds from environment variables.
    """

    return PerformanceThresholdSettings(
        min_rows_per_second=max(0, _get_int_env("INGEST_PERF_MIN_ROWS_PER_SECOND", 1000)),
        max_parse_time_ms=max(0.0, _get_float_env("INGEST_PERF_MAX_PARSE_TIME_MS", 5000.0)),
        min_data_accuracy=_get_float_env("INGEST_PERF_MIN_DATA_ACCURACY", 0.7),
        max_error_rate=_get_float_env("INGEST_PERF_MAX_ERROR_RATE", 0.3),
        max_duplicate_rate=_get_float_env("INGEST_PERF_MAX_DUPLICATE_RATE", 0.1),
        max_history=max(1, _get_int_env("INGEST_PERF_MAX_HISTORY", 10_000)),
    )
