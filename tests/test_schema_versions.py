"""Tests for per-collection schema version bookkeeping."""

from unittest.mock import patch

from app.db.migrations import apply_schema_versions, get_schema_version
from app.db.models import SchemaVersion
from app.db.session import Database


def test_init_records_every_collection(database):
    assert get_schema_version(database, "verification_logs") == 1
    assert get_schema_version(database, "did_cache") == 1
    assert get_schema_version(database, "revocations") == 1
    assert get_schema_version(database, "unknown") is None


def test_reapply_is_idempotent(database):
    assert apply_schema_versions(database) == apply_schema_versions(database)


def test_older_version_is_upgraded(database):
    with database.session() as db:
        db.get(SchemaVersion, "did_cache").version = 0

    with patch.dict("app.db.migrations.SCHEMA_VERSIONS", {"did_cache": 2}, clear=True):
        stored = apply_schema_versions(database)

    assert stored == {"did_cache": 2}
    assert get_schema_version(database, "did_cache") == 2


def test_newer_stored_version_left_alone(database):
    with database.session() as db:
        db.get(SchemaVersion, "revocations").version = 7

    stored = apply_schema_versions(database)

    assert stored["revocations"] == 7
    assert get_schema_version(database, "revocations") == 7


def test_data_survives_reinit(db_url):
    from app.offline.revocation import RevocationCache

    first = Database(db_url)
    first.init()
    RevocationCache(first).refresh([{"id": "cred123"}])
    first.dispose()

    second = Database(db_url)
    second.init()
    try:
        assert RevocationCache(second).is_revoked("cred123")
    finally:
        second.dispose()
