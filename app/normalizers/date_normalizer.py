"""
app/normalizers/date_normalizer.py

Date parsing for vendor exports that mix ISO, UK, US and European layouts.
"""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil import parser as date_parser

from app.normalizers.value_normalizer import ABSENT, ParseOutcome, RawValue, invalid, parsed

# Priority order: an ambiguous value such as 03/04/2024 resolves as UK day-first.
DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
)


def parse_date(raw: RawValue) -> ParseOutcome:
    """
    Parse a date using the known formats, then a generic parser as fallback.

    Timezone-aware results are converted to naive UTC so records compare
    consistently.
    """

    if raw is None:
        return ABSENT
    text = raw.strip()
    if not text:
        return ABSENT

    for fmt in DATE_FORMATS:
        try:
            return parsed(datetime.strptime(text, fmt), raw)
        except ValueError:
            continue

    # The generic parser happily turns bare words into "today"; require digits.
    if not any(ch.isdigit() for ch in text):
        return invalid(raw)
    try:
        value = date_parser.parse(text)
    except (ValueError, OverflowError):
        return invalid(raw)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed(value, raw)


def normalize_date(raw: RawValue) -> datetime | None:
    return parse_date(raw).value
