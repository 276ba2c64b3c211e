"""
Database infrastructure for HunterFit.

Exports the declarative base, the classmethod ``DatabaseService`` and the
per-hunter mutation guard.
"""

from .base import (
    Base,
    IdMixin,
    TimestampMixin,
    UTCDateTime,
    UUIDPrimaryKeyMixin,
    enum_column,
    new_uuid,
    utc_now,
)
from .guard import HunterMutationGuard
from .service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "Base",
    "IdMixin",
    "TimestampMixin",
    "enum_column",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "new_uuid",
    "utc_now",
    "HunterMutationGuard",
    "DatabaseService",
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
]
