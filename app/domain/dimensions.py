"""
app/domain/dimensions.py

Dimensional vocabularies used to slice vendor order data: sales channel,
customer segment, deal size, currency, country and vendor identifiers.
"""

from __future__ import annotations

import re


class SalesChannel:
    WEB = "web"
    IN_STORE = "in-store"
    TELESALES = "telesales"
    PHONE = "phone"
    MARKETPLACE = "marketplace"


SALES_CHANNELS: tuple[str, ...] = (
    SalesChannel.WEB,
    SalesChannel.IN_STORE,
    SalesChannel.TELESALES,
    SalesChannel.PHONE,
    SalesChannel.MARKETPLACE,
)


class CustomerSegment:
    SME_SMALL = "sme-small"
    SME_MEDIUM = "sme-medium"
    ENTERPRISE = "enterprise"
    STARTUP = "startup"


CUSTOMER_SEGMENTS: tuple[str, ...] = (
    CustomerSegment.SME_SMALL,
    CustomerSegment.SME_MEDIUM,
    CustomerSegment.ENTERPRISE,
    CustomerSegment.STARTUP,
)


class DealSizeBand:
    UNDER_1K = "under-1k"
    FROM_1K_TO_5K = "1k-5k"
    FROM_5K_TO_10K = "5k-10k"
    OVER_10K = "over-10k"


class Currency:
    GBP = "GBP"
    EUR = "EUR"
    USD = "USD"
    AUD = "AUD"
    CAD = "CAD"
    JPY = "JPY"


CURRENCIES: tuple[str, ...] = (
    Currency.GBP,
    Currency.EUR,
    Currency.USD,
    Currency.AUD,
    Currency.CAD,
    Currency.JPY,
)

# ISO 3166-1 alpha-2 codes of the markets vendors report from.
COUNTRY_CODES: frozenset[str] = frozenset(
    {
        "GB", "US", "DE", "FR", "IT", "ES", "NL", "BE", "AT", "CH",
        "SE", "NO", "DK", "FI", "PL", "CZ", "IE", "PT", "GR", "HU",
        "RO", "BG", "HR", "SI", "SK", "LT", "LV", "EE", "CA", "MX",
        "AU", "NZ", "SG", "HK", "JP", "KR", "IN", "TH", "MY", "ID",
        "PH", "VN", "TW", "AE", "SA", "IL", "BR", "AR", "CL", "CO",
        "PE", "ZA", "EG", "NG",
    }
)

DIMENSION_LABELS: dict[str, dict[str, str]] = {
    "sales_channel": {
        SalesChannel.WEB: "Web / Online",
        SalesChannel.IN_STORE: "In-Store",
        SalesChannel.TELESALES: "Telesales",
        SalesChannel.PHONE: "Phone",
        SalesChannel.MARKETPLACE: "Marketplace",
    },
    "customer_segment": {
        CustomerSegment.SME_SMALL: "SME - Small",
        CustomerSegment.SME_MEDIUM: "SME - Medium",
        CustomerSegment.ENTERPRISE: "Enterprise",
        CustomerSegment.STARTUP: "Startup",
    },
    "deal_size_band": {
        DealSizeBand.UNDER_1K: "Under £1k",
        DealSizeBand.FROM_1K_TO_5K: "£1k - £5k",
        DealSizeBand.FROM_5K_TO_10K: "£5k - £10k",
        DealSizeBand.OVER_10K: "Over £10k",
    },
}

_VENDOR_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
VENDOR_ID_MAX_LENGTH = 100


def calculate_deal_size_band(order_value: float | None) -> str | None:
    """
    Derive the deal size band from an order value.

    Missing, zero and negative values have no band.
    """

    if order_value is None or order_value <= 0:
        return None
    if order_value < 1000:
        return DealSizeBand.UNDER_1K
    if order_value < 5000:
        return DealSizeBand.FROM_1K_TO_5K
    if order_value < 10000:
        return DealSizeBand.FROM_5K_TO_10K
    return DealSizeBand.OVER_10K


def is_valid_sales_channel(value: object) -> bool:
    return value in SALES_CHANNELS


def is_valid_customer_segment(value: object) -> bool:
    return value in CUSTOMER_SEGMENTS


def is_valid_currency(value: object) -> bool:
    return value in CURRENCIES


def is_valid_country_code(value: object) -> bool:
    return isinstance(value, str) and value.upper() in COUNTRY_CODES


def is_valid_vendor_id(value: object) -> bool:
    """
    Vendor ids are lowercase alphanumerics and hyphens, 1-100 characters,
    and never start or end with a hyphen.
    """

    if not isinstance(value, str):
        return False
    if not 0 < len(value) <= VENDOR_ID_MAX_LENGTH:
        return False
    if value.startswith("-") or value.endswith("-"):
        return False
    return bool(_VENDOR_ID_PATTERN.match(value))


def dimension_label(dimension: str, value: str | None) -> str:
    if value is None:
        return "Unknown"
    return DIMENSION_LABELS.get(dimension, {}).get(value, value)
