"""
app/services/vendor_config.py

Vendor-type configuration templates and the processor configuration they
resolve to.

A vendor id is matched to a template (financial, ecommerce, legacy,
retailer) by keyword; vendors registered explicitly take precedence over
the template for their type.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from app.domain.ingestion import ParseOptions
from app.services.mapping_store import MappingStore, mapping_cache_key

if TYPE_CHECKING:
    from app.services.csv_processor import EnhancedCSVProcessor

logger = logging.getLogger(__name__)


class VendorType:
    DEFAULT = "default"
    FINANCIAL = "financial"
    ECOMMERCE = "ecommerce"
    LEGACY = "legacy"
    RETAILER = "retailer"


class DataQualityTier:
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Checked in order; the first type with a matching keyword wins.
VENDOR_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (VendorType.FINANCIAL, ("bank", "lender", "finance", "credit")),
    (VendorType.ECOMMERCE, ("shop", "store", "market", "ecom")),
    (VendorType.LEGACY, ("legacy", "old", "v1", "system")),
    (VendorType.RETAILER, ("retail", "chain", "outlet")),
)


@dataclass(frozen=True)
class ProcessorConfig:
    """
    Everything one EnhancedCSVProcessor run needs besides the data itself.
    """

    vendor_id: str
    parse_options: ParseOptions = field(default_factory=ParseOptions)
    auto_infer_mapping: bool = True
    mapping_confidence_threshold: float = 0.6
    min_required_rows: int = 1
    max_duplicate_rate: float = 0.1
    enable_caching: bool = True
    cache_key: str | None = None
    abort_on_row_error: bool = False


@dataclass(frozen=True)
class VendorConfig:
    """
    Tunable ingestion policy for one vendor or vendor-type template.
    """

    vendor_id: str
    vendor_name: str | None = None
    vendor_type: str = VendorType.DEFAULT
    data_quality: str = DataQualityTier.MEDIUM

    assume_finance_selected: bool = False
    continue_on_error: bool = True
    max_errors: int | None = None
    allow_duplicate_order_ids: bool = False
    skip_empty_rows: bool = True
    trim_whitespace: bool = True
    delimiter: str | None = None
    encoding: str = "utf-8"

    mapping_confidence_threshold: float = 0.6
    auto_infer_mapping: bool = True
    min_required_rows: int = 1
    max_duplicate_rate: float = 0.1
    enable_caching: bool = True
    cache_key: str | None = None

    def to_parse_options(self) -> ParseOptions:
        return ParseOptions(
            assume_finance_selected=self.assume_finance_selected,
            continue_on_error=self.continue_on_error,
            max_errors=self.max_errors,
            trim_whitespace=self.trim_whitespace,
            skip_empty_rows=self.skip_empty_rows,
            encoding=self.encoding,
            delimiter=self.delimiter,
            allow_duplicate_order_ids=self.allow_duplicate_order_ids,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "VendorConfig":
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValueError(f"Unknown vendor config keys: {', '.join(unknown)}")
        if not payload.get("vendor_id"):
            raise ValueError("Vendor config requires a vendor_id.")
        return cls(**payload)


DEFAULT_VENDOR_CONFIG = VendorConfig(vendor_id=VendorType.DEFAULT)


def default_vendor_templates() -> dict[str, VendorConfig]:
    return {
        VendorType.FINANCIAL: VendorConfig(
            vendor_id=VendorType.FINANCIAL,
            vendor_name="Financial Institution",
            vendor_type=VendorType.FINANCIAL,
            data_quality=DataQualityTier.HIGH,
            assume_finance_selected=True,
            continue_on_error=False,
            max_errors=10,
            delimiter=",",
            mapping_confidence_threshold=0.9,
            min_required_rows=100,
            max_duplicate_rate=0.01,
        ),
        VendorType.ECOMMERCE: VendorConfig(
            vendor_id=VendorType.ECOMMERCE,
            vendor_name="E-commerce Platform",
            vendor_type=VendorType.ECOMMERCE,
            max_errors=200,
            allow_duplicate_order_ids=True,
            mapping_confidence_threshold=0.7,
            min_required_rows=50,
            max_duplicate_rate=0.05,
        ),
        VendorType.LEGACY: VendorConfig(
            vendor_id=VendorType.LEGACY,
            vendor_name="Legacy System",
            vendor_type=VendorType.LEGACY,
            data_quality=DataQualityTier.LOW,
            allow_duplicate_order_ids=True,
            skip_empty_rows=False,
            encoding="iso-8859-1",
            mapping_confidence_threshold=0.5,
            enable_caching=False,
        ),
        VendorType.RETAILER: VendorConfig(
            vendor_id=VendorType.RETAILER,
            vendor_name="High-Volume Retailer",
            vendor_type=VendorType.RETAILER,
            data_quality=DataQualityTier.HIGH,
            max_errors=50,
            mapping_confidence_threshold=0.8,
            min_required_rows=500,
            max_duplicate_rate=0.02,
        ),
    }


def detect_vendor_type(vendor_id: str) -> str:
    """
    Guess the vendor type from keywords in the vendor id.

    Returns ``VendorType.DEFAULT`` when nothing matches.
    """

    lowered = vendor_id.lower()
    for vendor_type, keywords in VENDOR_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return vendor_type
    return VendorType.DEFAULT


class ProcessorConfigManager:
    """
    Resolves vendor ids into ProcessorConfig values.
    """

    def __init__(self, *, default_config: VendorConfig | None = None) -> None:
        self._default = default_config or DEFAULT_VENDOR_CONFIG
        self._configs: dict[str, VendorConfig] = default_vendor_templates()
        self._lock = threading.Lock()

    @property
    def default_config(self) -> VendorConfig:
        return self._default

    def detect_vendor_type(self, vendor_id: str) -> str:
        return detect_vendor_type(vendor_id)

    def get_vendor_config(self, vendor_id: str, vendor_type: str | None = None) -> tuple[VendorConfig, str]:
        """
        Return the config that applies to ``vendor_id`` and the resolved type.

        An explicitly registered vendor wins over its type template; unknown
        types fall back to the default config.
        """

        resolved_type = vendor_type or self.detect_vendor_type(vendor_id)
        with self._lock:
            registered = self._configs.get(vendor_id)
            if registered is not None and vendor_type is None:
                return registered, registered.vendor_type
            return self._configs.get(resolved_type, self._default), resolved_type

    def get_config(self, vendor_id: str, vendor_type: str | None = None) -> ProcessorConfig:
        base, resolved_type = self.get_vendor_config(vendor_id, vendor_type)
        return ProcessorConfig(
            vendor_id=vendor_id,
            parse_options=base.to_parse_options(),
            auto_infer_mapping=base.auto_infer_mapping,
            mapping_confidence_threshold=base.mapping_confidence_threshold,
            min_required_rows=base.min_required_rows,
            max_duplicate_rate=base.max_duplicate_rate,
            enable_caching=base.enable_caching,
            cache_key=base.cache_key or mapping_cache_key(vendor_id, resolved_type),
        )

    def register_vendor_config(self, vendor_id: str, **overrides: Any) -> VendorConfig:
        """
        Register ``vendor_id`` on top of the default config.
        """

        with self._lock:
            config = replace(self._default, **overrides, vendor_id=vendor_id)
            self._configs[vendor_id] = config
        logger.info("Registered vendor configuration vendor_id=%s type=%s", vendor_id, config.vendor_type)
        return config

    def update_vendor_config(self, vendor_id: str, **updates: Any) -> VendorConfig:
        with self._lock:
            existing = self._configs.get(vendor_id)
            if existing is not None:
                config = replace(existing, **updates)
                self._configs[vendor_id] = config
        if existing is None:
            logger.warning("Vendor %s not found, creating new configuration", vendor_id)
            return self.register_vendor_config(vendor_id, **updates)
        logger.info("Updated vendor configuration vendor_id=%s", vendor_id)
        return config

    def get_all_configs(self) -> dict[str, VendorConfig]:
        with self._lock:
            return dict(self._configs)

    def export_configs(self, file_path: str | Path) -> Path:
        path = Path(file_path)
        payload = {vendor_id: config.to_dict() for vendor_id, config in self.get_all_configs().items()}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.info("Exported %s vendor configurations to %s", len(payload), path)
        return path

    def import_configs(self, file_path: str | Path) -> int:
        """
        Load configurations written by ``export_configs``. Returns how many
        were imported.
        """

        payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Vendor config file must contain a JSON object.")
        imported = {vendor_id: VendorConfig.from_dict(item) for vendor_id, item in payload.items()}
        with self._lock:
            self._configs.update(imported)
        logger.info("Imported %s vendor configurations from %s", len(imported), file_path)
        return len(imported)

    def get_statistics(self) -> dict[str, Any]:
        by_type: dict[str, int] = {}
        by_quality: dict[str, int] = {}
        configs = self.get_all_configs()
        for config in configs.values():
            by_type[config.vendor_type] = by_type.get(config.vendor_type, 0) + 1
            by_quality[config.data_quality] = by_quality.get(config.data_quality, 0) + 1
        return {
            "total_vendors": len(configs),
            "by_type": by_type,
            "by_quality": by_quality,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }

    def get_optimization_recommendations(
        self,
        vendor_id: str,
        *,
        error_rate: float | None = None,
        duplicate_rate: float | None = None,
        mapping_confidence: float | None = None,
        processing_count: int | None = None,
    ) -> list[str]:
        config, _ = self.get_vendor_config(vendor_id)
        recommendations: list[str] = []

        if error_rate is not None and error_rate > 0.1 and not config.continue_on_error:
            recommendations.append("Consider enabling continue_on_error for high error rate data")
        if duplicate_rate is not None and duplicate_rate > 0.05 and not config.allow_duplicate_order_ids:
            recommendations.append("Consider allowing duplicate order IDs for this vendor")
        if (
            mapping_confidence is not None
            and mapping_confidence < 0.7
            and config.mapping_confidence_threshold > 0.7
        ):
            recommendations.append("Lower mapping confidence threshold for better compatibility")
        if processing_count is not None and processing_count > 3 and not config.enable_caching:
            recommendations.append("Enable caching for frequently processed vendor")
        return recommendations

    def create_processor(
        self,
        vendor_id: str,
        vendor_type: str | None = None,
        *,
        mapping_store: MappingStore | None = None,
    ) -> "EnhancedCSVProcessor":
        from app.services.csv_processor import EnhancedCSVProcessor

        return EnhancedCSVProcessor(self.get_config(vendor_id, vendor_type), mapping_store=mapping_store)
