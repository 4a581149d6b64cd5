"""Bounded DID document cache.

Fixed-capacity key -> document cache with least-recently-used eviction,
persisted in the did_cache table.

- get() counts as an access: it refreshes last_accessed and bumps
  usage_count.
- put() inserts or replaces, stamping last_accessed. When the insert
  pushes the count over capacity, exactly one entry is evicted: the one
  with the smallest last_accessed (ties: earliest inserted). The
  (last_accessed, seq) index keeps that lookup cheap.
- There is no TTL; entries leave only through eviction.

Cache failures never fail the caller: an unavailable store reads as a
miss and writes are dropped with a warning.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import DID_CACHE_MAX_ENTRIES
from app.db.models import DIDCacheRow
from app.db.session import Database
from app.offline.event_store import now_ms

log = logging.getLogger(__name__)


@dataclass
class DIDCacheEntry:
    """Cached DID document with access metadata.

    Attributes:
        key: Credential/DID identifier.
        document: Resolved document body (JSON-serializable).
        last_accessed: ms since epoch of the last read or write.
        usage_count: Number of accesses so far.
    """
    key: str
    document: Any
    last_accessed: int = 0
    usage_count: int = 1


@dataclass
class DIDCacheMetrics:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "errors": self.errors,
        }


def _to_entry(row: DIDCacheRow) -> DIDCacheEntry:
    return DIDCacheEntry(
        key=row.key,
        document=json.loads(row.document),
        last_accessed=row.last_accessed,
        usage_count=row.usage_count,
    )


class DIDCache:
    """Persistent LRU-style cache for DID documents."""

    def __init__(
        self,
        database: Database,
        capacity: int = DID_CACHE_MAX_ENTRIES,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize cache.

        Args:
            database: Initialized database.
            capacity: Maximum entries before eviction.
            clock: Millisecond clock used for last_accessed.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._database = database
        self._capacity = capacity
        self._clock = clock
        self.metrics = DIDCacheMetrics()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: str) -> Optional[DIDCacheEntry]:
        """Look up a document, recording the access on a hit.

        Returns:
            The entry (with updated access metadata), or None on a miss or
            when the cache store is unavailable.
        """
        try:
            with self._database.session() as db:
                row = db.get(DIDCacheRow, key)
                if row is None:
                    self.metrics.misses += 1
                    return None
                row.last_accessed = self._clock()
                row.usage_count = row.usage_count + 1
                entry = _to_entry(row)
        except (SQLAlchemyError, ValueError) as e:
            self.metrics.errors += 1
            log.warning(f"DID cache read failed for {key[:40]}, treating as miss: {e}")
            return None

        self.metrics.hits += 1
        return entry

    def put(self, entry: DIDCacheEntry) -> Optional[str]:
        """Insert or replace an entry, evicting at most one other entry.

        Returns:
            The evicted key, if an eviction happened.
        """
        try:
            document = json.dumps(entry.document, ensure_ascii=False, default=str)
            with self._database.session() as db:
                now = self._clock()
                row = db.get(DIDCacheRow, entry.key)
                if row is None:
                    next_seq = (db.query(func.max(DIDCacheRow.seq)).scalar() or 0) + 1
                    db.add(DIDCacheRow(
                        key=entry.key,
                        document=document,
                        last_accessed=now,
                        usage_count=max(entry.usage_count, 1),
                        seq=next_seq,
                    ))
                else:
                    row.document = document
                    row.last_accessed = now
                    row.usage_count = row.usage_count + 1
                db.flush()

                evicted = None
                count = db.query(func.count(DIDCacheRow.key)).scalar() or 0
                if count > self._capacity:
                    oldest = (
                        db.query(DIDCacheRow)
                        .filter(DIDCacheRow.key != entry.key)
                        .order_by(DIDCacheRow.last_accessed.asc(), DIDCacheRow.seq.asc())
                        .first()
                    )
                    if oldest is not None:
                        evicted = oldest.key
                        db.delete(oldest)
            entry.last_accessed = now
        except (SQLAlchemyError, TypeError, ValueError) as e:
            self.metrics.errors += 1
            log.warning(f"DID cache write failed for {entry.key[:40]}, skipping: {e}")
            return None

        if evicted is not None:
            self.metrics.evictions += 1
            log.info(f"DID cache evicted {evicted[:40]}")
        return evicted

    def keys(self) -> list[str]:
        """Cached keys, least recently accessed first."""
        try:
            with self._database.session() as db:
                rows = (
                    db.query(DIDCacheRow.key)
                    .order_by(DIDCacheRow.last_accessed.asc(), DIDCacheRow.seq.asc())
                    .all()
                )
                return [r[0] for r in rows]
        except SQLAlchemyError as e:
            log.warning(f"DID cache listing failed: {e}")
            return []

    @property
    def size(self) -> int:
        """Current number of cached entries (0 if the store is unavailable)."""
        try:
            with self._database.session() as db:
                return db.query(func.count(DIDCacheRow.key)).scalar() or 0
        except SQLAlchemyError as e:
            log.warning(f"DID cache count failed: {e}")
            return 0
