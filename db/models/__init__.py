"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.mapping_config import MappingConfig

__all__ = [
    "MappingConfig",
]
