"""
app/domain/vendor_order.py

Canonical vendor order schema and the normalized record produced by ingestion.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any


class CanonicalField:
    ORDER_ID = "order_id"
    ORDER_DATE = "order_date"
    PRODUCT_NAME = "product_name"
    PRODUCT_SKU = "product_sku"
    PRODUCT_CATEGORY = "product_category"
    ORDER_VALUE = "order_value"
    FINANCE_SELECTED = "finance_selected"
    FINANCE_PROVIDER = "finance_provider"
    FINANCE_TERM_MONTHS = "finance_term_months"
    FINANCE_DECISION_STATUS = "finance_decision_status"
    FINANCE_DECISION_DATE = "finance_decision_date"
    CUSTOMER_ID = "customer_id"
    CUSTOMER_SEGMENT = "customer_segment"
    VENDOR_ID = "vendor_id"
    SALES_CHANNEL = "sales_channel"
    GEOGRAPHY_COUNTRY = "geography_country"
    GEOGRAPHY_REGION = "geography_region"
    GEOGRAPHY_POSTAL_CODE = "geography_postal_code"
    CURRENCY = "currency"


# Declaration order drives header inference: earlier fields claim headers first.
CANONICAL_FIELDS: tuple[str, ...] = (
    CanonicalField.ORDER_ID,
    CanonicalField.ORDER_DATE,
    CanonicalField.PRODUCT_NAME,
    CanonicalField.PRODUCT_SKU,
    CanonicalField.PRODUCT_CATEGORY,
    CanonicalField.ORDER_VALUE,
    CanonicalField.FINANCE_SELECTED,
    CanonicalField.FINANCE_PROVIDER,
    CanonicalField.FINANCE_TERM_MONTHS,
    CanonicalField.FINANCE_DECISION_STATUS,
    CanonicalField.FINANCE_DECISION_DATE,
    CanonicalField.CUSTOMER_ID,
    CanonicalField.CUSTOMER_SEGMENT,
    CanonicalField.VENDOR_ID,
    CanonicalField.SALES_CHANNEL,
    CanonicalField.GEOGRAPHY_COUNTRY,
    CanonicalField.GEOGRAPHY_REGION,
    CanonicalField.GEOGRAPHY_POSTAL_CODE,
    CanonicalField.CURRENCY,
)

REQUIRED_CANONICAL_FIELDS: tuple[str, ...] = (
    CanonicalField.ORDER_ID,
    CanonicalField.ORDER_DATE,
)

# Canonical field -> source column header.
FieldMapping = dict[str, str]


class FinanceStatus:
    APPROVED = "approved"
    DECLINED = "declined"
    PENDING = "pending"
    CANCELLED = "cancelled"
    OTHER = "other"


FINANCE_STATUSES: tuple[str, ...] = (
    FinanceStatus.APPROVED,
    FinanceStatus.DECLINED,
    FinanceStatus.PENDING,
    FinanceStatus.CANCELLED,
    FinanceStatus.OTHER,
)


@dataclass(frozen=True)
class Geography:
    """
    Location of the customer behind an order.
    """

    country: str
    region: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True)
class NormalizedRecord:
    """
    One vendor order after normalization.

    ``deal_size_band`` is derived from ``order_value`` and is never read from
    the source file.
    """

    order_id: str
    order_date: datetime
    vendor_id: str
    finance_selected: bool
    product_name: str = "Unknown"
    product_sku: str | None = None
    product_category: str | None = None
    order_value: float | None = None
    finance_provider: str | None = None
    finance_term_months: int | None = None
    finance_decision_status: str = FinanceStatus.OTHER
    finance_decision_date: datetime | None = None
    customer_id: str | None = None
    sales_channel: str | None = None
    customer_segment: str | None = None
    geography: Geography | None = None
    currency: str | None = None
    deal_size_band: str | None = None

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.vendor_id, self.order_id)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["order_date"] = self.order_date.isoformat()
        if self.finance_decision_date is not None:
            payload["finance_decision_date"] = self.finance_decision_date.isoformat()
        return payload
