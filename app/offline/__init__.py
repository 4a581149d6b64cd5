"""Offline verification-log core.

Durable event store, bounded DID cache, revocation snapshot, sync engine
and connectivity monitor, wired together by OfflineClient.
"""

from .exceptions import (
    ErrorCode,
    OfflineError,
    StorageUnavailable,
    RemoteRejected,
    NetworkUnreachable,
    InvalidRemoteData,
    DeserializationFailure,
    InvalidCredential,
    ResolutionUnavailable,
)
from .events import EventBus, LogAppended, ConnectivityChanged, SyncCompleted
from .event_store import EventStore, VerificationLogRecord, LogStats
from .did_cache import DIDCache, DIDCacheEntry
from .revocation import RevocationCache, RevocationEntry
from .sync import SyncEngine, SyncReport
from .connectivity import ConnectivityMonitor
from .remote import RemoteAuthorityClient
from .did_resolver import DIDResolver
from .verifier import VerificationService
from .client import OfflineClient, get_offline_client, set_offline_client, reset_offline_client

__all__ = [
    # Exceptions
    "ErrorCode",
    "OfflineError",
    "StorageUnavailable",
    "RemoteRejected",
    "NetworkUnreachable",
    "InvalidRemoteData",
    "DeserializationFailure",
    "InvalidCredential",
    "ResolutionUnavailable",
    # Events
    "EventBus",
    "LogAppended",
    "ConnectivityChanged",
    "SyncCompleted",
    # Components
    "EventStore",
    "VerificationLogRecord",
    "LogStats",
    "DIDCache",
    "DIDCacheEntry",
    "RevocationCache",
    "RevocationEntry",
    "SyncEngine",
    "SyncReport",
    "ConnectivityMonitor",
    "RemoteAuthorityClient",
    "DIDResolver",
    "VerificationService",
    # Wiring
    "OfflineClient",
    "get_offline_client",
    "set_offline_client",
    "reset_offline_client",
]
