"""Durable event store for verification results.

Append-only local log of verification attempts. Each record starts
pending (synced=False) and is flipped to synced exactly once by the sync
engine after the remote authority accepts it. Records are only removed
by clear_all().

Storage errors surface as StorageUnavailable; the process never crashes
on them.
"""

import csv
import io
import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import CSV_EXPORT_COLUMNS
from app.db.models import VerificationLog
from app.db.session import Database
from app.offline.events import EventBus, LogAppended
from app.offline.exceptions import StorageUnavailable
from app.offline.payload import (
    UnknownPayload,
    decode_outcome,
    reconstitute_or_wrap,
    serialize,
)

log = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class VerificationLogRecord:
    """Snapshot of one stored verification event."""
    id: int
    timestamp: int  # ms since epoch
    payload: str  # Serialized verification result
    synced: bool

    def payload_data(self) -> Any:
        """Structured payload, or {"raw": ...} if it does not parse."""
        return reconstitute_or_wrap(self.payload)


@dataclass(frozen=True)
class LogStats:
    total: int
    synced: int
    pending: int


def _to_record(row: VerificationLog) -> VerificationLogRecord:
    return VerificationLogRecord(
        id=row.id,
        timestamp=row.timestamp,
        payload=row.data,
        synced=bool(row.synced),
    )


class EventStore:
    """Append-only store of verification log records.

    Record order from list_all() is insertion order. Presentation order is
    the caller's business (see list_for_display()).
    """

    def __init__(
        self,
        database: Database,
        bus: Optional[EventBus] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the store.

        Args:
            database: Initialized database.
            bus: Event bus to publish LogAppended on (optional).
            clock: Millisecond clock for record timestamps.
        """
        self._database = database
        self._bus = bus
        self._clock = clock

    def append(self, payload: Any) -> int:
        """Persist a new pending record.

        Args:
            payload: Serialized result string, or any JSON-serializable value.

        Returns:
            The assigned record id.

        Raises:
            StorageUnavailable: If the local store cannot be written.
        """
        data = serialize(payload)
        try:
            with self._database.session() as db:
                row = VerificationLog(timestamp=self._clock(), data=data, synced=False)
                db.add(row)
                db.flush()
                record_id = row.id
        except SQLAlchemyError as e:
            log.error(f"append failed: {type(e).__name__}: {e}")
            raise StorageUnavailable(f"Could not store verification log: {e}") from e

        log.info(f"Stored log id={record_id}", extra={"record_id": record_id})
        if self._bus is not None:
            self._bus.publish(LogAppended(record_id=record_id))
        return record_id

    def get(self, record_id: int) -> Optional[VerificationLogRecord]:
        try:
            with self._database.session() as db:
                row = db.get(VerificationLog, record_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read verification log: {e}") from e

    def list_all(self) -> list[VerificationLogRecord]:
        """Every record, in insertion order."""
        try:
            with self._database.session() as db:
                rows = db.query(VerificationLog).order_by(VerificationLog.id.asc()).all()
                return [_to_record(r) for r in rows]
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read verification logs: {e}") from e

    def list_pending(self) -> list[VerificationLogRecord]:
        """Records not yet accepted by the remote, in insertion order."""
        try:
            with self._database.session() as db:
                rows = (
                    db.query(VerificationLog)
                    .filter(VerificationLog.synced == False)  # noqa: E712
                    .order_by(VerificationLog.id.asc())
                    .all()
                )
                return [_to_record(r) for r in rows]
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read pending logs: {e}") from e

    def list_for_display(self, query: Optional[str] = None) -> list[VerificationLogRecord]:
        """Newest-first records, optionally filtered by search()."""
        records = self.search(query) if query else self.list_all()
        return sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)

    def mark_synced(self, record_id: int) -> bool:
        """Flip a record to synced. Idempotent.

        Returns:
            True if the record transitioned now, False if it was already
            synced or does not exist.
        """
        try:
            with self._database.session() as db:
                updated = (
                    db.query(VerificationLog)
                    .filter(
                        VerificationLog.id == record_id,
                        VerificationLog.synced == False,  # noqa: E712
                    )
                    .update({VerificationLog.synced: True}, synchronize_session=False)
                )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not mark log {record_id} synced: {e}") from e
        return updated == 1

    def clear_all(self) -> int:
        """Delete every record. Irreversible.

        Returns:
            Number of records removed.
        """
        try:
            with self._database.session() as db:
                count = db.query(VerificationLog).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not clear verification logs: {e}") from e
        log.info(f"Cleared {count} verification logs")
        return count

    def stats(self) -> LogStats:
        try:
            with self._database.session() as db:
                total = db.query(func.count(VerificationLog.id)).scalar() or 0
                synced = (
                    db.query(func.count(VerificationLog.id))
                    .filter(VerificationLog.synced == True)  # noqa: E712
                    .scalar()
                    or 0
                )
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not count verification logs: {e}") from e
        return LogStats(total=total, synced=synced, pending=total - synced)

    def search(self, query: str) -> list[VerificationLogRecord]:
        """Case-insensitive match over the serialized payload and the id."""
        needle = query.lower()
        matches = []
        for record in self.list_all():
            haystack = (record.payload + str(record.id)).lower()
            if needle in haystack:
                matches.append(record)
        return matches

    # -------------------------------------------------------------------------
    # Read-only export projections
    # -------------------------------------------------------------------------

    def export_json(self) -> str:
        """All records as a JSON array with payloads reconstituted."""
        rows = []
        for record in self.list_all():
            entry = asdict(record)
            entry["data"] = record.payload_data()
            del entry["payload"]
            rows.append(entry)
        return json.dumps(rows, ensure_ascii=False, indent=2, default=str)

    def export_csv(self) -> str:
        """All records as CSV with the common result fields broken out."""
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=list(CSV_EXPORT_COLUMNS), lineterminator="\n")
        writer.writeheader()
        for record in self.list_all():
            outcome = decode_outcome(record.payload)
            if isinstance(outcome, UnknownPayload):
                status = issuer = subject = ""
            else:
                status = outcome.status or ""
                issuer = outcome.display_issuer() if outcome.issuer is not None else ""
                subject = outcome.display_subject()
            writer.writerow({
                "id": record.id,
                "timestamp": record.timestamp,
                "synced": "true" if record.synced else "false",
                "status": status,
                "issuer": issuer,
                "subject": subject,
                "data": record.payload,
            })
        return buf.getvalue()
