"""
Database infrastructure: declarative base, engine/session management,
schema bootstrap.
"""

from guildroster.core.database.base import Base, IdMixin, TimestampMixin
from guildroster.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
    is_storage_conflict,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    "is_storage_conflict",
]
