"""
app/normalizers/status_normalizer.py

Maps free-text finance decision statuses onto the closed status vocabulary.
"""

from __future__ import annotations

import re

from app.domain.vendor_order import FinanceStatus

# Insertion order matters for the substring fallback.
STATUS_KEYWORDS: dict[str, str] = {
    "approved": FinanceStatus.APPROVED,
    "funded": FinanceStatus.APPROVED,
    "accepted": FinanceStatus.APPROVED,
    "complete": FinanceStatus.APPROVED,
    "success": FinanceStatus.APPROVED,
    "ok": FinanceStatus.APPROVED,
    "yes": FinanceStatus.APPROVED,
    "paid": FinanceStatus.APPROVED,
    "declined": FinanceStatus.DECLINED,
    "rejected": FinanceStatus.DECLINED,
    "failed": FinanceStatus.DECLINED,
    "deny": FinanceStatus.DECLINED,
    "denied": FinanceStatus.DECLINED,
    "no": FinanceStatus.DECLINED,
    "refused": FinanceStatus.DECLINED,
    "pending": FinanceStatus.PENDING,
    "in review": FinanceStatus.PENDING,
    "under review": FinanceStatus.PENDING,
    "review": FinanceStatus.PENDING,
    "processing": FinanceStatus.PENDING,
    "submitted": FinanceStatus.PENDING,
    "cancelled": FinanceStatus.CANCELLED,
    "canceled": FinanceStatus.CANCELLED,
    "withdrawn": FinanceStatus.CANCELLED,
    "void": FinanceStatus.CANCELLED,
}

_SEPARATORS = re.compile(r"[_-]")


def normalize_status(raw: str | None) -> str:
    """
    Return the finance status for a raw value; unknown values become ``other``.
    """

    if raw is None:
        return FinanceStatus.OTHER
    normalized = _SEPARATORS.sub(" ", raw.strip().lower())
    if not normalized:
        return FinanceStatus.OTHER

    direct = STATUS_KEYWORDS.get(normalized)
    if direct is not None:
        return direct

    for keyword, status in STATUS_KEYWORDS.items():
        if keyword in normalized:
            return status
    return FinanceStatus.OTHER
