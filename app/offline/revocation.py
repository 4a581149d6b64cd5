"""Local revocation snapshot.

Replica of the remote authority's revocation list, replaced wholesale on
every successful refresh (clear then bulk insert in one transaction).
Lookups never touch the network.

A "not found" answer means "not known to be revoked", not "confirmed
valid": the snapshot is only as fresh as the last successful refresh.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.db.models import RevocationRow
from app.db.session import Database
from app.offline.exceptions import InvalidRemoteData, StorageUnavailable

log = logging.getLogger(__name__)


class RevocationEntry(BaseModel):
    """One revoked credential as published by the remote authority.

    Numeric ids are accepted and stored as their string form.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    reason: Optional[str] = None


_revocation_list = TypeAdapter(list[RevocationEntry])


def parse_revocation_list(remote_list: Any) -> list[RevocationEntry]:
    """Validate a remote revocation list.

    Raises:
        InvalidRemoteData: If it is not a list of {id, reason?} objects.
    """
    if not isinstance(remote_list, list):
        raise InvalidRemoteData(
            f"Revocation list must be a JSON array, got {type(remote_list).__name__}"
        )
    try:
        return _revocation_list.validate_python(remote_list)
    except ValidationError as e:
        raise InvalidRemoteData(
            f"Malformed revocation list ({e.error_count()} errors): {e.errors()[0]['msg']}"
        )


class RevocationCache:
    """Revocation snapshot backed by the revocations table."""

    def __init__(self, database: Database):
        self._database = database

    def refresh(self, remote_list: Any) -> int:
        """Atomically replace the snapshot with remote_list.

        The list is validated before anything is written, and the clear
        and the inserts commit together, so a failure leaves the previous
        snapshot untouched. An empty list is valid and empties the snapshot.

        Returns:
            Number of entries now in the snapshot.

        Raises:
            InvalidRemoteData: If remote_list is malformed.
            StorageUnavailable: If the local store cannot be written.
        """
        entries = parse_revocation_list(remote_list)
        # Later duplicates win, matching a put-per-entry replay
        by_id = {e.id: e for e in entries}

        try:
            with self._database.session() as db:
                db.query(RevocationRow).delete(synchronize_session=False)
                db.add_all(
                    RevocationRow(id=e.id, reason=e.reason) for e in by_id.values()
                )
        except SQLAlchemyError as e:
            log.error(f"Revocation snapshot write failed, keeping previous: {e}")
            raise StorageUnavailable(f"Could not store revocation list: {e}") from e

        log.info(f"Revocation list cached: {len(by_id)} entries")
        return len(by_id)

    def _lookup(self, credential_id: str) -> Optional[RevocationRow]:
        try:
            with self._database.session() as db:
                row = db.get(RevocationRow, credential_id)
                if row is not None:
                    db.expunge(row)
                return row
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read revocation list: {e}") from e

    def is_revoked(self, credential_id: str) -> bool:
        return self._lookup(credential_id) is not None

    def reason_for(self, credential_id: str) -> Optional[str]:
        row = self._lookup(credential_id)
        return row.reason if row is not None else None

    def entries(self) -> list[RevocationEntry]:
        try:
            with self._database.session() as db:
                rows = db.query(RevocationRow).order_by(RevocationRow.id.asc()).all()
                return [RevocationEntry(id=r.id, reason=r.reason) for r in rows]
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not read revocation list: {e}") from e

    @property
    def size(self) -> int:
        try:
            with self._database.session() as db:
                return db.query(func.count(RevocationRow.id)).scalar() or 0
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not count revocation list: {e}") from e
