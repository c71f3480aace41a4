"""
app/normalizers/dimension_normalizer.py

Normalizers for dimensional fields: sales channel, customer segment,
currency, country and vendor id.
"""

from __future__ import annotations

import re

from app.domain.dimensions import (
    COUNTRY_CODES,
    Currency,
    CustomerSegment,
    SalesChannel,
    is_valid_vendor_id,
)
from app.normalizers.value_normalizer import ABSENT, ParseOutcome, RawValue, invalid, parsed

SALES_CHANNEL_ALIASES: dict[str, str] = {
    "web": SalesChannel.WEB,
    "online": SalesChannel.WEB,
    "website": SalesChannel.WEB,
    "ecommerce": SalesChannel.WEB,
    "e commerce": SalesChannel.WEB,
    "web store": SalesChannel.WEB,
    "in store": SalesChannel.IN_STORE,
    "instore": SalesChannel.IN_STORE,
    "store": SalesChannel.IN_STORE,
    "retail": SalesChannel.IN_STORE,
    "showroom": SalesChannel.IN_STORE,
    "pos": SalesChannel.IN_STORE,
    "branch": SalesChannel.IN_STORE,
    "telesales": SalesChannel.TELESALES,
    "tele sales": SalesChannel.TELESALES,
    "outbound": SalesChannel.TELESALES,
    "phone": SalesChannel.PHONE,
    "telephone": SalesChannel.PHONE,
    "inbound": SalesChannel.PHONE,
    "call": SalesChannel.PHONE,
    "call centre": SalesChannel.PHONE,
    "call center": SalesChannel.PHONE,
    "marketplace": SalesChannel.MARKETPLACE,
    "amazon": SalesChannel.MARKETPLACE,
    "ebay": SalesChannel.MARKETPLACE,
    "reseller": SalesChannel.MARKETPLACE,
    "third party": SalesChannel.MARKETPLACE,
}

CUSTOMER_SEGMENT_ALIASES: dict[str, str] = {
    "sme small": CustomerSegment.SME_SMALL,
    "small": CustomerSegment.SME_SMALL,
    "micro": CustomerSegment.SME_SMALL,
    "sole trader": CustomerSegment.SME_SMALL,
    "sme medium": CustomerSegment.SME_MEDIUM,
    "medium": CustomerSegment.SME_MEDIUM,
    "mid market": CustomerSegment.SME_MEDIUM,
    "sme": CustomerSegment.SME_MEDIUM,
    "enterprise": CustomerSegment.ENTERPRISE,
    "large": CustomerSegment.ENTERPRISE,
    "corporate": CustomerSegment.ENTERPRISE,
    "startup": CustomerSegment.STARTUP,
    "start up": CustomerSegment.STARTUP,
}

CURRENCY_ALIASES: dict[str, str] = {
    "gbp": Currency.GBP,
    "£": Currency.GBP,
    "pound": Currency.GBP,
    "pounds": Currency.GBP,
    "sterling": Currency.GBP,
    "eur": Currency.EUR,
    "€": Currency.EUR,
    "euro": Currency.EUR,
    "euros": Currency.EUR,
    "usd": Currency.USD,
    "$": Currency.USD,
    "us$": Currency.USD,
    "dollar": Currency.USD,
    "aud": Currency.AUD,
    "a$": Currency.AUD,
    "cad": Currency.CAD,
    "c$": Currency.CAD,
    "jpy": Currency.JPY,
    "¥": Currency.JPY,
    "yen": Currency.JPY,
}

COUNTRY_NAME_ALIASES: dict[str, str] = {
    "uk": "GB",
    "united kingdom": "GB",
    "great britain": "GB",
    "england": "GB",
    "scotland": "GB",
    "wales": "GB",
    "usa": "US",
    "united states": "US",
    "united states of america": "US",
    "germany": "DE",
    "france": "FR",
    "ireland": "IE",
    "spain": "ES",
    "italy": "IT",
    "netherlands": "NL",
    "australia": "AU",
    "canada": "CA",
    "new zealand": "NZ",
    "japan": "JP",
}

_SEPARATORS = re.compile(r"[\s_-]+")
_VENDOR_ID_SEPARATORS = re.compile(r"[\s_]+")


def _vocabulary_key(raw: str) -> str:
    return _SEPARATORS.sub(" ", raw.strip().lower()).strip()


def _lookup(raw: RawValue, aliases: dict[str, str]) -> ParseOutcome:
    if raw is None:
        return ABSENT
    key = _vocabulary_key(raw)
    if not key:
        return ABSENT
    match = aliases.get(key)
    if match is None:
        return invalid(raw)
    return parsed(match, raw)


def parse_sales_channel(raw: RawValue) -> ParseOutcome:
    return _lookup(raw, SALES_CHANNEL_ALIASES)


def parse_customer_segment(raw: RawValue) -> ParseOutcome:
    return _lookup(raw, CUSTOMER_SEGMENT_ALIASES)


def parse_currency(raw: RawValue) -> ParseOutcome:
    return _lookup(raw, CURRENCY_ALIASES)


def parse_country(raw: RawValue) -> ParseOutcome:
    """
    Accept ISO alpha-2 codes from the supported market list, or a few
    common country names.
    """

    if raw is None:
        return ABSENT
    text = raw.strip()
    if not text:
        return ABSENT
    if text.upper() in COUNTRY_CODES:
        return parsed(text.upper(), raw)
    return _lookup(raw, COUNTRY_NAME_ALIASES)


def normalize_vendor_id(raw: RawValue) -> str | None:
    """
    Lowercase a vendor identifier and turn spaces/underscores into hyphens.

    Returns None when the result is not a valid vendor id.
    """

    if raw is None:
        return None
    candidate = _VENDOR_ID_SEPARATORS.sub("-", raw.strip().lower())
    return candidate if is_valid_vendor_id(candidate) else None


def parse_vendor_id(raw: RawValue) -> ParseOutcome:
    if raw is None or not raw.strip():
        return ABSENT
    vendor_id = normalize_vendor_id(raw)
    if vendor_id is None:
        return invalid(raw)
    return parsed(vendor_id, raw)
