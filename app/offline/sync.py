"""Sync engine: pushes pending verification records to the remote authority.

Per record: pending --(remote accept)--> synced. Nothing else; synced is
terminal.

- One pass attempts every pending record once. A rejection or transport
  failure leaves that record pending and the pass moves on.
- No internal retries: the next trigger (append, reconnect, manual sync)
  retries.
- Passes never overlap. A call arriving during a pass returns a skipped
  report and asks the running call for a follow-up pass, so records
  appended mid-pass are still picked up. The follow-up skips records
  already tried in that call unless the caller asked for failures to be
  retried (reconnect does).
- Delivery is at-least-once: the remote must tolerate duplicates.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from app.offline.event_store import EventStore, VerificationLogRecord
from app.offline.events import EventBus, SyncCompleted
from app.offline.exceptions import DeserializationFailure, OfflineError
from app.offline.payload import reconstitute
from app.offline.remote import RemoteAuthorityClient

log = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync_all() call."""
    attempted: int = 0
    synced: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)
    skipped: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.skipped and self.error is None and not self.failed

    def merge(self, other: "SyncReport") -> None:
        self.attempted += other.attempted
        self.synced.extend(other.synced)
        self.failed.update(other.failed)
        for record_id in other.synced:
            self.failed.pop(record_id, None)
        if other.error:
            self.error = other.error

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "synced": list(self.synced),
            "failed": {str(k): v for k, v in self.failed.items()},
            "skipped": self.skipped,
            "error": self.error,
        }


def build_submission(record: VerificationLogRecord) -> dict:
    """Body sent to the remote for one record.

    The stored payload is reconstituted; if it does not parse, the raw
    serialized form travels as {"raw": ...} instead of being dropped.
    """
    try:
        data: Any = reconstitute(record.payload)
    except DeserializationFailure as e:
        log.warning(
            f"Log id {record.id} payload unparsable, sending raw fallback",
            extra={"record_id": record.id},
        )
        data = {"raw": e.raw}
    return {
        "id": record.id,
        "timestamp": record.timestamp,
        "synced": False,
        "data": data,
    }


class SyncEngine:
    """Drives reconciliation of pending records with the remote."""

    def __init__(
        self,
        store: EventStore,
        remote: RemoteAuthorityClient,
        bus: Optional[EventBus] = None,
    ):
        self._store = store
        self._remote = remote
        self._bus = bus
        self._lock = asyncio.Lock()
        self._rerun_requested = False
        self._retry_failed_requested = False

    @property
    def in_progress(self) -> bool:
        return self._lock.locked()

    async def sync_all(self, retry_failed: bool = False) -> SyncReport:
        """Attempt delivery of every pending record.

        Args:
            retry_failed: When this call lands on a running pass, also
                retry the records that pass already failed. Set by the
                reconnect trigger.

        Returns:
            The report for this call. If another pass was running, the
            report is marked skipped and that pass runs a follow-up pass.
        """
        if self._lock.locked():
            self._rerun_requested = True
            if retry_failed:
                self._retry_failed_requested = True
                log.info("Sync already in progress, queued a follow-up pass retrying failures")
            else:
                log.info("Sync already in progress, queued a follow-up pass for new records")
            return SyncReport(skipped=True)

        report = SyncReport()
        attempted: set[int] = set()
        async with self._lock:
            while True:
                self._rerun_requested = False
                self._retry_failed_requested = False
                report.merge(await self._pass(attempted))
                if not self._rerun_requested:
                    break
                # Follow-up passes skip records already tried in this call
                # unless a retry of failures was requested
                if self._retry_failed_requested:
                    attempted.difference_update(report.failed)

        log.info(
            f"Sync attempt complete: attempted={report.attempted} "
            f"synced={len(report.synced)} failed={len(report.failed)}"
        )
        if self._bus is not None:
            self._bus.publish(SyncCompleted(report=report))
        return report

    async def _pass(self, attempted: set[int]) -> SyncReport:
        report = SyncReport()
        try:
            pending = self._store.list_pending()
        except OfflineError as e:
            log.error(f"Sync aborted, cannot read pending logs: {e.message}")
            report.error = e.message
            return report

        for record in pending:
            if record.id in attempted:
                continue
            attempted.add(record.id)
            report.attempted += 1
            try:
                await self._remote.submit_log(build_submission(record))
            except OfflineError as e:
                log.warning(
                    f"Sync failed for log id {record.id}: {e.message}",
                    extra={"record_id": record.id, "error_code": e.code},
                )
                report.failed[record.id] = e.code
                continue

            try:
                self._store.mark_synced(record.id)
            except OfflineError as e:
                # Accepted remotely but not recorded; resent next pass
                log.error(
                    f"Accepted log id {record.id} could not be marked synced: {e.message}",
                    extra={"record_id": record.id, "error_code": e.code},
                )
                report.failed[record.id] = e.code
                continue

            log.info(f"Synced log id {record.id}", extra={"record_id": record.id})
            report.synced.append(record.id)
        return report
