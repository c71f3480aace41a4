"""
app/normalizers/value_normalizer.py

Total conversions from raw CSV cell text into typed values.

Every parser returns a ``ParseOutcome`` instead of raising: the caller decides
whether an unparseable value is fatal (required fields) or a warning.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any

# Raw cell content after trimming: text, or None when the cell is absent/blank.
RawValue = str | None

TRUE_TOKENS: frozenset[str] = frozenset({"true", "yes", "y", "1", "on", "enabled"})

_NUMBER_NOISE = re.compile(r"[£$€,\s]")
_INTEGER_NOISE = re.compile(r"[,\s]")


class OutcomeStatus:
    PARSED = "parsed"
    ABSENT = "absent"
    INVALID = "invalid"


@dataclass(frozen=True)
class ParseOutcome:
    """
    Result of converting one raw value.
    """

    status: str
    value: Any = None
    raw: RawValue = None

    @property
    def is_parsed(self) -> bool:
        return self.status == OutcomeStatus.PARSED

    @property
    def is_absent(self) -> bool:
        return self.status == OutcomeStatus.ABSENT

    @property
    def is_invalid(self) -> bool:
        return self.status == OutcomeStatus.INVALID


def parsed(value: Any, raw: RawValue) -> ParseOutcome:
    return ParseOutcome(status=OutcomeStatus.PARSED, value=value, raw=raw)


def invalid(raw: RawValue) -> ParseOutcome:
    return ParseOutcome(status=OutcomeStatus.INVALID, raw=raw)


ABSENT = ParseOutcome(status=OutcomeStatus.ABSENT)


def to_raw_value(cell: Any, *, trim: bool = True) -> RawValue:
    """
    Convert a raw CSV cell (text, number, or missing) into a RawValue.
    """

    if cell is None:
        return None
    if isinstance(cell, (list, tuple)):
        # csv.DictReader collects overflow columns into a list.
        cell = ",".join(str(item) for item in cell)
    text = str(cell)
    if trim:
        text = text.strip()
    if not text.strip():
        return None
    return text


def parse_boolean(raw: RawValue) -> ParseOutcome:
    """
    Only the documented true tokens are true; every other value is false.
    """

    if raw is None:
        return ABSENT
    return parsed(raw.strip().lower() in TRUE_TOKENS, raw)


def parse_number(raw: RawValue) -> ParseOutcome:
    """
    Parse a decimal amount, ignoring currency symbols, thousands separators
    and whitespace.
    """

    if raw is None:
        return ABSENT
    cleaned = _NUMBER_NOISE.sub("", raw)
    if not cleaned:
        return ABSENT
    try:
        value = float(cleaned)
    except ValueError:
        return invalid(raw)
    if math.isnan(value) or math.isinf(value):
        return invalid(raw)
    return parsed(value, raw)


def parse_integer(raw: RawValue) -> ParseOutcome:
    """
    Parse a whole number; decimal input is floored.
    """

    if raw is None:
        return ABSENT
    cleaned = _INTEGER_NOISE.sub("", raw)
    if not cleaned:
        return ABSENT
    try:
        return parsed(int(cleaned), raw)
    except ValueError:
        pass
    try:
        value = float(cleaned)
    except ValueError:
        return invalid(raw)
    if math.isnan(value) or math.isinf(value):
        return invalid(raw)
    return parsed(math.floor(value), raw)


def normalize_string(raw: Any) -> str | None:
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def normalize_boolean(raw: RawValue) -> bool:
    return bool(parse_boolean(raw).value)


def normalize_number(raw: RawValue) -> float | None:
    return parse_number(raw).value


def normalize_integer(raw: RawValue) -> int | None:
    return parse_integer(raw).value
