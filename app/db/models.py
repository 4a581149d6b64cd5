"""SQLAlchemy ORM models for the offline verification-log client.

This module defines the local schema for three independent collections:
- Verification logs (durable write-ahead log of verification events)
- DID cache (bounded document cache with recency index)
- Revocations (wholesale-replaced snapshot of the remote revocation list)

Plus a bookkeeping table holding one schema version per collection.
Each collection is owned by exactly one component; there are no foreign
keys between them.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class VerificationLog(Base):
    """A recorded verification attempt.

    `data` and `timestamp` are immutable after insert. `synced` moves from
    False to True once, after the remote authority accepts the record.
    """

    __tablename__ = "verification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(BigInteger, nullable=False)  # ms since epoch
    data = Column(Text, nullable=False)  # Serialized verification result
    synced = Column(Boolean, default=False, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<VerificationLog(id={self.id!r}, synced={self.synced!r})>"


class DIDCacheRow(Base):
    """Cached DID document keyed by credential/DID identifier.

    `seq` is the insertion sequence; it breaks ties between entries with
    the same `last_accessed` so eviction order is deterministic.
    """

    __tablename__ = "did_cache"

    key = Column(String(512), primary_key=True)
    document = Column(Text, nullable=False)  # JSON
    last_accessed = Column(BigInteger, nullable=False)  # ms since epoch
    usage_count = Column(Integer, default=1, nullable=False)
    seq = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_did_cache_lru", "last_accessed", "seq"),
    )

    def __repr__(self) -> str:
        return f"<DIDCacheRow(key={self.key!r}, last_accessed={self.last_accessed!r})>"


class RevocationRow(Base):
    """One entry of the local revocation snapshot."""

    __tablename__ = "revocations"

    id = Column(String(512), primary_key=True)  # Credential identifier
    reason = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<RevocationRow(id={self.id!r})>"


class SchemaVersion(Base):
    """Schema version recorded for each collection."""

    __tablename__ = "schema_versions"

    collection = Column(String(64), primary_key=True)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<SchemaVersion(collection={self.collection!r}, version={self.version!r})>"
