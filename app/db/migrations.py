"""Per-collection schema version bookkeeping.

Each collection (verification_logs, did_cache, revocations) carries its
own version in the schema_versions table. Upgrades are additive:
create_all() adds missing tables and indexes, and this module only
records the version the running code expects. An existing table is never
dropped or rewritten; if a stored version is newer than the code's, the
newer schema is left alone and the running code tolerates it.

This module is idempotent - safe to run on every start.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from app.core.config import SCHEMA_VERSIONS
from app.db.models import SchemaVersion

if TYPE_CHECKING:
    from app.db.session import Database

log = logging.getLogger(__name__)


def apply_schema_versions(database: "Database") -> dict[str, int]:
    """Record the expected version of every collection.

    Args:
        database: Initialized database (tables already created).

    Returns:
        Mapping of collection name to the version now stored.
    """
    stored: dict[str, int] = {}
    with database.session() as db:
        for collection, version in SCHEMA_VERSIONS.items():
            row = db.get(SchemaVersion, collection)
            if row is None:
                db.add(SchemaVersion(collection=collection, version=version))
                log.info(f"Schema {collection}: created at v{version}")
                stored[collection] = version
            elif row.version < version:
                log.info(f"Schema {collection}: upgraded v{row.version} -> v{version}")
                row.version = version
                row.updated_at = datetime.utcnow()
                stored[collection] = version
            elif row.version > version:
                log.warning(
                    f"Schema {collection}: stored v{row.version} is newer than "
                    f"supported v{version}, leaving it untouched"
                )
                stored[collection] = row.version
            else:
                stored[collection] = row.version
    return stored


def get_schema_version(database: "Database", collection: str) -> Optional[int]:
    """Return the stored version of a collection, or None if unknown."""
    with database.session() as db:
        row = db.get(SchemaVersion, collection)
        return row.version if row is not None else None
