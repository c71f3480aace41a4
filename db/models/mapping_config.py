"""
db/models/mapping_config.py

Persisted vendor field mappings keyed by mapping cache key.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Float, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MappingConfig(Base, TimestampMixin):
    __tablename__ = "vendor_mapping_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    cache_key: Mapped[str] = mapped_column(
        String(160),
        nullable=False,
        comment="Vendor id plus vendor type, e.g. acme-tech-ecommerce",
    )
    vendor_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Vendor the mapping was saved for",
    )
    field_mapping_json: Mapped[dict[str, str]] = mapped_column(
        JSON,
        nullable=False,
        comment="Canonical field -> source column",
    )
    source_headers_json: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Headers of the file the mapping was built from",
    )
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    saved_at: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("cache_key", name="uq_vendor_mapping_configs_cache_key"),
        Index("ix_vendor_mapping_configs_vendor_id", "vendor_id"),
        Index("ix_vendor_mapping_configs_is_active", "is_active"),
    )
