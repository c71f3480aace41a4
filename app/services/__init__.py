"""
app/services package marker.
"""

from app.services.csv_ingestion_service import CSVIngestionService
from app.services.csv_processor import (
    AutoInferenceDisabledError,
    EnhancedCSVProcessor,
    IngestionError,
    InsufficientRowsError,
    MappingConfidenceError,
    MappingValidationError,
    StrictAbortError,
)
from app.services.error_handler import ErrorHandler, get_error_handler
from app.services.mapping_store import InMemoryMappingStore, SavedMapping, SQLMappingStore, build_mapping_store
from app.services.performance_monitor import PerformanceMonitor, get_performance_monitor
from app.services.production_processor import (
    ProcessingMode,
    ProductionCSVProcessor,
    ProductionOptions,
    get_production_processor,
)
from app.services.vendor_config import ProcessorConfig, ProcessorConfigManager

__all__ = [
    "AutoInferenceDisabledError",
    "CSVIngestionService",
    "EnhancedCSVProcessor",
    "ErrorHandler",
    "get_error_handler",
    "InMemoryMappingStore",
    "IngestionError",
    "InsufficientRowsError",
    "MappingConfidenceError",
    "MappingValidationError",
    "PerformanceMonitor",
    "get_performance_monitor",
    "ProcessingMode",
    "ProcessorConfig",
    "ProcessorConfigManager",
    "ProductionCSVProcessor",
    "ProductionOptions",
    "get_production_processor",
    "SavedMapping",
    "SQLMappingStore",
    "StrictAbortError",
    "build_mapping_store",
]
