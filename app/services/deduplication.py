"""
app/services/deduplication.py

Duplicate detection for normalized vendor orders keyed by (vendor_id, order_id).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from app.domain.vendor_order import NormalizedRecord

DedupKey = tuple[str, str]


@dataclass(frozen=True)
class DedupResult:
    """
    Partition of an incoming batch against an existing corpus.
    """

    new_records: list[NormalizedRecord] = field(default_factory=list)
    duplicate_records: list[NormalizedRecord] = field(default_factory=list)
    duplicates_by_key: dict[DedupKey, list[NormalizedRecord]] = field(default_factory=dict)
    new_count: int = 0
    duplicate_count: int = 0
    duplicate_rate: float = 0.0


@dataclass(frozen=True)
class WithinBatchDedup:
    deduped_records: list[NormalizedRecord] = field(default_factory=list)
    duplicates: dict[DedupKey, list[NormalizedRecord]] = field(default_factory=dict)
    count: int = 0


def dedup_key(record: NormalizedRecord) -> DedupKey:
    return (record.vendor_id, record.order_id)


def extract_keys(records: Iterable[NormalizedRecord]) -> set[DedupKey]:
    return {dedup_key(record) for record in records}


def deduplicate(
    incoming: Sequence[NormalizedRecord],
    existing: Iterable[NormalizedRecord],
) -> DedupResult:
    """
    Split ``incoming`` into records not yet in ``existing`` and duplicates.

    Duplicate rate is duplicates / incoming, and 0 for an empty batch.
    """

    existing_keys = extract_keys(existing)
    new_records: list[NormalizedRecord] = []
    duplicate_records: list[NormalizedRecord] = []
    duplicates_by_key: dict[DedupKey, list[NormalizedRecord]] = {}

    for record in incoming:
        key = dedup_key(record)
        if key in existing_keys:
            duplicate_records.append(record)
            duplicates_by_key.setdefault(key, []).append(record)
        else:
            new_records.append(record)

    total = len(incoming)
    return DedupResult(
        new_records=new_records,
        duplicate_records=duplicate_records,
        duplicates_by_key=duplicates_by_key,
        new_count=len(new_records),
        duplicate_count=len(duplicate_records),
        duplicate_rate=len(duplicate_records) / total if total else 0.0,
    )


def deduplicate_within(records: Sequence[NormalizedRecord]) -> WithinBatchDedup:
    """
    Keep the first occurrence of every key; later occurrences are reported.
    """

    seen: set[DedupKey] = set()
    kept: list[NormalizedRecord] = []
    duplicates: dict[DedupKey, list[NormalizedRecord]] = {}
    for record in records:
        key = dedup_key(record)
        if key in seen:
            duplicates.setdefault(key, []).append(record)
            continue
        seen.add(key)
        kept.append(record)
    return WithinBatchDedup(
        deduped_records=kept,
        duplicates=duplicates,
        count=len(records) - len(kept),
    )


def is_duplicate(record: NormalizedRecord, existing: Iterable[NormalizedRecord]) -> bool:
    key = dedup_key(record)
    return any(dedup_key(item) == key for item in existing)


def filter_new_records(
    incoming: Sequence[NormalizedRecord],
    existing: Iterable[NormalizedRecord],
) -> list[NormalizedRecord]:
    return deduplicate(incoming, existing).new_records


def merge_with_updates(
    existing: Iterable[NormalizedRecord],
    incoming: Iterable[NormalizedRecord],
) -> list[NormalizedRecord]:
    """
    Merge two record sets, keeping the version with the later order_date for
    each key. Ties keep the existing record.
    """

    merged: dict[DedupKey, NormalizedRecord] = {}
    for record in existing:
        merged[dedup_key(record)] = record
    for record in incoming:
        key = dedup_key(record)
        current = merged.get(key)
        if current is None or record.order_date > current.order_date:
            merged[key] = record
    return list(merged.values())


def dedup_stats(result: DedupResult) -> dict[str, object]:
    return {
        "total": result.new_count + result.duplicate_count,
        "new": result.new_count,
        "duplicates": result.duplicate_count,
        "duplicate_percentage": f"{result.duplicate_rate * 100:.2f}%",
    }
