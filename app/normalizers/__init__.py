"""
app/normalizers package marker.
"""

from app.normalizers.date_normalizer import DATE_FORMATS, normalize_date, parse_date
from app.normalizers.dimension_normalizer import (
    normalize_vendor_id,
    parse_country,
    parse_currency,
    parse_customer_segment,
    parse_sales_channel,
    parse_vendor_id,
)
from app.normalizers.status_normalizer import normalize_status
from app.normalizers.value_normalizer import (
    ParseOutcome,
    RawValue,
    normalize_boolean,
    normalize_integer,
    normalize_number,
    normalize_string,
    parse_boolean,
    parse_integer,
    parse_number,
    to_raw_value,
)

__all__ = [
    "DATE_FORMATS",
    "ParseOutcome",
    "RawValue",
    "normalize_boolean",
    "normalize_date",
    "normalize_integer",
    "normalize_number",
    "normalize_status",
    "normalize_string",
    "normalize_vendor_id",
    "parse_boolean",
    "parse_country",
    "parse_currency",
    "parse_customer_segment",
    "parse_date",
    "parse_integer",
    "parse_number",
    "parse_sales_channel",
    "parse_vendor_id",
    "to_raw_value",
]
