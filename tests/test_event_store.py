"""Tests for the durable event store.

Covers append/list, the synced transition, clear, stats, search,
persistence across reopen and the JSON/CSV export projections.
"""

import csv
import io
import json

import pytest

from app.db.session import Database
from app.offline.event_store import EventStore
from app.offline.events import LogAppended
from app.offline.exceptions import StorageUnavailable


class TestAppendAndList:
    def test_append_then_list_has_one_pending_record(self, store):
        payload = {"verified": True, "issuer": "did:example:issuer", "n": [1, 2]}

        record_id = store.append(payload)
        records = store.list_all()

        assert len(records) == 1
        record = records[0]
        assert record.id == record_id
        assert record.synced is False
        assert json.loads(record.payload) == payload

    def test_string_payload_stored_verbatim(self, store):
        record_id = store.append('{"status": "success"}')
        assert store.get(record_id).payload == '{"status": "success"}'

    def test_ids_are_monotonic(self, store):
        ids = [store.append({"n": i}) for i in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    def test_list_all_is_insertion_order(self, store):
        ids = [store.append({"n": i}) for i in range(3)]
        assert [r.id for r in store.list_all()] == ids

    def test_timestamp_assigned_at_write(self, store, clock):
        record_id = store.append({"a": 1})
        assert store.get(record_id).timestamp == clock.last

    def test_list_for_display_is_newest_first(self, store):
        ids = [store.append({"n": i}) for i in range(3)]
        assert [r.id for r in store.list_for_display()] == list(reversed(ids))

    def test_get_missing_returns_none(self, store):
        assert store.get(999) is None


class TestMarkSynced:
    def test_mark_synced_transitions_once(self, store):
        record_id = store.append({"a": 1})

        assert store.mark_synced(record_id) is True
        assert store.get(record_id).synced is True

    def test_mark_synced_twice_is_idempotent(self, store):
        record_id = store.append({"a": 1})
        store.mark_synced(record_id)
        snapshot = store.list_all()

        assert store.mark_synced(record_id) is False
        assert store.list_all() == snapshot

    def test_mark_synced_unknown_id(self, store):
        assert store.mark_synced(12345) is False

    def test_list_pending_excludes_synced(self, store):
        first = store.append({"n": 1})
        second = store.append({"n": 2})
        store.mark_synced(first)

        assert [r.id for r in store.list_pending()] == [second]

    def test_stats(self, store):
        ids = [store.append({"n": i}) for i in range(3)]
        store.mark_synced(ids[0])

        stats = store.stats()
        assert (stats.total, stats.synced, stats.pending) == (3, 1, 2)


class TestClearAll:
    def test_clear_all_removes_everything(self, store):
        for i in range(4):
            store.append({"n": i})

        assert store.clear_all() == 4
        assert store.list_all() == []
        assert store.stats().total == 0


class TestSearch:
    def test_search_matches_payload_case_insensitive(self, store):
        store.append({"issuer": "Acme University"})
        store.append({"issuer": "Other Org"})

        results = store.search("acme")
        assert len(results) == 1
        assert "Acme" in results[0].payload

    def test_list_for_display_with_query(self, store):
        store.append({"issuer": "Acme"})
        store.append({"issuer": "Acme again"})
        store.append({"issuer": "Other"})

        assert len(store.list_for_display("acme")) == 2


class TestEvents:
    def test_append_publishes_log_appended(self, store, bus):
        seen = []
        bus.subscribe(LogAppended, seen.append)

        record_id = store.append({"a": 1})

        assert seen == [LogAppended(record_id=record_id)]


class TestDurability:
    def test_records_survive_reopen(self, db_url, clock):
        db = Database(db_url)
        db.init()
        first = EventStore(db, clock=clock)
        kept = first.append({"a": 1})
        synced = first.append({"b": 2})
        first.mark_synced(synced)
        db.dispose()

        reopened = Database(db_url)
        reopened.init()
        records = EventStore(reopened).list_all()
        reopened.dispose()

        assert [(r.id, r.synced) for r in records] == [(kept, False), (synced, True)]

    def test_missing_tables_raise_storage_unavailable(self, tmp_path):
        db = Database(f"sqlite:///{tmp_path / 'uninitialized.db'}")
        store = EventStore(db)

        with pytest.raises(StorageUnavailable):
            store.append({"a": 1})
        with pytest.raises(StorageUnavailable):
            store.list_all()
        db.dispose()


class TestExport:
    def test_export_json_reconstitutes_payloads(self, store):
        good = store.append({"status": "success", "issuer": "Acme"})
        bad = store.append("not json at all")
        store.mark_synced(good)

        exported = json.loads(store.export_json())

        assert exported[0]["id"] == good
        assert exported[0]["synced"] is True
        assert exported[0]["data"] == {"status": "success", "issuer": "Acme"}
        assert exported[1]["id"] == bad
        assert exported[1]["data"] == {"raw": "not json at all"}

    def test_export_csv_columns_and_rows(self, store):
        store.append({"status": "success", "issuer": {"id": "did:ex:1", "name": "Acme"},
                      "subject": "did:ex:holder"})
        store.append("raw text")

        rows = list(csv.DictReader(io.StringIO(store.export_csv())))

        assert list(rows[0].keys()) == [
            "id", "timestamp", "synced", "status", "issuer", "subject", "data",
        ]
        assert rows[0]["status"] == "success"
        assert rows[0]["issuer"] == "Acme"
        assert rows[0]["subject"] == "did:ex:holder"
        assert rows[0]["synced"] == "false"
        assert rows[1]["status"] == ""
        assert rows[1]["data"] == "raw text"

    def test_export_csv_tolerates_unexpected_field_types(self, store):
        store.append({"verified": True, "status": 200, "issuer": "did:ex:i"})
        store.append({"verified": True, "credential": "eyJhbGciOiJFUzI1NiJ9.e30.c2ln"})

        rows = list(csv.DictReader(io.StringIO(store.export_csv())))

        assert len(rows) == 2
        assert rows[0]["status"] == ""
        assert rows[0]["issuer"] == "did:ex:i"
        assert json.loads(rows[1]["data"])["credential"].startswith("eyJ")

    def test_exports_do_not_change_sync_state(self, store):
        store.append({"a": 1})
        store.export_json()
        store.export_csv()

        assert store.stats().pending == 1
