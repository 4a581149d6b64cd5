"""Database module for the offline verification-log client.

This module provides SQLAlchemy ORM models and session management for
the verification log, the DID document cache and the revocation snapshot.
"""

from app.db.models import (
    Base,
    VerificationLog,
    DIDCacheRow,
    RevocationRow,
    SchemaVersion,
)
from app.db.session import Database, get_database, reset_database
from app.db.migrations import apply_schema_versions, get_schema_version

__all__ = [
    "Base",
    "VerificationLog",
    "DIDCacheRow",
    "RevocationRow",
    "SchemaVersion",
    "Database",
    "get_database",
    "reset_database",
    "apply_schema_versions",
    "get_schema_version",
]
