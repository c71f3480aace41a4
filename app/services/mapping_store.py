"""
app/services/mapping_store.py

Mapping cache: saved vendor field mappings keyed by "{vendor_id}-{vendor_type}".

The store is injected into each processor run. The in-memory store is the
default; the SQL store persists mappings through MappingConfigRepository.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from app.config import get_ingestion_settings
from app.domain.vendor_order import CANONICAL_FIELDS, FieldMapping
from app.repositories.mapping_config_repository import MappingConfigRepository
from db.models.mapping_config import MappingConfig
from db.session import SessionLocal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SavedMapping:
    """
    A field mapping saved for reuse on later files from the same vendor.
    """

    vendor_id: str
    mapping: FieldMapping
    confidence: float
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source_headers: list[str] = field(default_factory=list)
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "mapping": dict(self.mapping),
            "confidence": self.confidence,
            "created_at": self.created_at.isoformat(),
            "source_headers": list(self.source_headers),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SavedMapping":
        """
        Rebuild a saved mapping from ``to_dict`` output.

        Raises ValueError for payloads without a vendor id or with unknown
        canonical fields.
        """

        vendor_id = payload.get("vendor_id")
        if not isinstance(vendor_id, str) or not vendor_id.strip():
            raise ValueError("Saved mapping requires a vendor_id.")
        raw_mapping = payload.get("mapping") or {}
        if not isinstance(raw_mapping, dict):
            raise ValueError("Saved mapping 'mapping' must be an object.")
        unknown = sorted(key for key in raw_mapping if key not in CANONICAL_FIELDS)
        if unknown:
            raise ValueError(f"Saved mapping contains unknown canonical fields: {', '.join(unknown)}")

        created_raw = payload.get("created_at")
        created_at = (
            datetime.fromisoformat(created_raw) if isinstance(created_raw, str) else datetime.now(timezone.utc)
        )
        return cls(
            vendor_id=vendor_id.strip(),
            mapping={str(key): str(value) for key, value in raw_mapping.items()},
            confidence=float(payload.get("confidence", 0.0)),
            created_at=created_at,
            source_headers=[str(item) for item in payload.get("source_headers") or []],
            notes=payload.get("notes"),
        )


def mapping_cache_key(vendor_id: str, vendor_type: str) -> str:
    return f"{vendor_id}-{vendor_type}"


class MappingStore(Protocol):
    def get(self, cache_key: str) -> SavedMapping | None: ...

    def put(self, cache_key: str, saved: SavedMapping) -> None: ...

    def delete(self, cache_key: str) -> bool: ...

    def clear(self) -> None: ...

    def keys(self) -> list[str]: ...


class InMemoryMappingStore:
    """
    Process-local mapping cache guarded by a lock.
    """

    def __init__(self) -> None:
        self._entries: dict[str, SavedMapping] = {}
        self._lock = threading.Lock()

    def get(self, cache_key: str) -> SavedMapping | None:
        with self._lock:
            return self._entries.get(cache_key)

    def put(self, cache_key: str, saved: SavedMapping) -> None:
        with self._lock:
            self._entries[cache_key] = saved

    def delete(self, cache_key: str) -> bool:
        with self._lock:
            return self._entries.pop(cache_key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)


class SQLMappingStore:
    """
    Mapping cache persisted in the vendor_mapping_configs table.

    Each operation commits on its own session; ``session_factory`` is called
    once per operation.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, cache_key: str) -> SavedMapping | None:
        session = self._session_factory()
        try:
            row = MappingConfigRepository(session).get_active(cache_key=cache_key)
            return _to_saved_mapping(row) if row is not None else None
        finally:
            session.close()

    def put(self, cache_key: str, saved: SavedMapping) -> None:
        session = self._session_factory()
        try:
            MappingConfigRepository(session).save(
                cache_key=cache_key,
                vendor_id=saved.vendor_id,
                field_mapping=saved.mapping,
                source_headers=saved.source_headers,
                confidence=saved.confidence,
                saved_at=saved.created_at,
                notes=saved.notes,
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete(self, cache_key: str) -> bool:
        session = self._session_factory()
        try:
            removed = MappingConfigRepository(session).deactivate(cache_key=cache_key)
            session.commit()
            return removed
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def clear(self) -> None:
        session = self._session_factory()
        try:
            count = MappingConfigRepository(session).deactivate_all()
            session.commit()
            logger.info("Deactivated %s saved mappings", count)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def keys(self) -> list[str]:
        session = self._session_factory()
        try:
            return MappingConfigRepository(session).list_active_keys()
        finally:
            session.close()


def _to_saved_mapping(row: MappingConfig) -> SavedMapping:
    saved_at = row.saved_at
    if saved_at.tzinfo is None:
        saved_at = saved_at.replace(tzinfo=timezone.utc)
    return SavedMapping(
        vendor_id=row.vendor_id,
        mapping=dict(row.field_mapping_json),
        confidence=row.confidence,
        created_at=saved_at,
        source_headers=list(row.source_headers_json or []),
        notes=row.notes,
    )


def build_mapping_store() -> MappingStore:
    """
    Build the mapping store selected by VENDOR_INGEST_MAPPING_STORE.
    """

    if get_ingestion_settings().mapping_store == "sql":
        return SQLMappingStore(SessionLocal)
    return InMemoryMappingStore()
