"""
app/repositories/mapping_config_repository.py

Persistence helpers for saved vendor field mappings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.mapping_config import MappingConfig


class MappingConfigRepository:
    """
    Repository for CRUD-like operations on mapping configurations.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_active(self, *, cache_key: str) -> MappingConfig | None:
        """
        Return the active mapping stored under ``cache_key``, if any.
        """

        stmt = (
            select(MappingConfig)
            .where(MappingConfig.cache_key == cache_key.strip())
            .where(MappingConfig.is_active.is_(True))
        )
        return self._session.execute(stmt).scalars().first()

    def list_active_keys(self) -> list[str]:
        stmt = (
            select(MappingConfig.cache_key)
            .where(MappingConfig.is_active.is_(True))
            .order_by(MappingConfig.cache_key)
        )
        return list(self._session.execute(stmt).scalars().all())

    def save(
        self,
        *,
        cache_key: str,
        vendor_id: str,
        field_mapping: dict[str, str],
        source_headers: Sequence[str],
        confidence: float,
        saved_at: datetime,
        notes: str | None = None,
    ) -> MappingConfig:
        """
        Insert or update the mapping keyed by ``cache_key`` and mark it active.
        """

        normalized_key = cache_key.strip()
        stmt = select(MappingConfig).where(MappingConfig.cache_key == normalized_key)
        existing = self._session.execute(stmt).scalars().first()

        if existing is None:
            existing = MappingConfig(
                cache_key=normalized_key,
                vendor_id=vendor_id,
                field_mapping_json=dict(field_mapping),
                source_headers_json=list(source_headers),
                confidence=confidence,
                notes=notes,
                saved_at=saved_at,
                is_active=True,
            )
            self._session.add(existing)
        else:
            existing.vendor_id = vendor_id
            existing.field_mapping_json = dict(field_mapping)
            existing.source_headers_json = list(source_headers)
            existing.confidence = confidence
            existing.notes = notes
            existing.saved_at = saved_at
            existing.is_active = True

        self._session.flush()
        return existing

    def deactivate(self, *, cache_key: str) -> bool:
        """
        Deactivate the mapping under ``cache_key``. Returns False when absent.
        """

        existing = self.get_active(cache_key=cache_key)
        if existing is None:
            return False
        existing.is_active = False
        self._session.flush()
        return True

    def deactivate_all(self) -> int:
        stmt = select(MappingConfig).where(MappingConfig.is_active.is_(True))
        rows = list(self._session.execute(stmt).scalars().all())
        for row in rows:
            row.is_active = False
        self._session.flush()
        return len(rows)
