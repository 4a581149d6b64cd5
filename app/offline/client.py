"""OfflineClient: process-scoped wiring of the offline components.

Owns one event bus and connects the components through it:
- LogAppended          -> sync_all() when online (fire-and-forget)
- ConnectivityChanged  -> on offline -> online: sync_all() and a
                          revocation refresh

Connectivity state and the sync-in-progress guard live inside
ConnectivityMonitor and SyncEngine; other code goes through this object.
"""

import asyncio
import logging
from typing import Optional

from app.db.session import Database
from app.offline.connectivity import ConnectivityMonitor
from app.offline.did_cache import DIDCache
from app.offline.did_resolver import DIDResolver
from app.offline.event_store import EventStore
from app.offline.events import ConnectivityChanged, EventBus, LogAppended
from app.offline.exceptions import OfflineError
from app.offline.remote import RemoteAuthorityClient
from app.offline.revocation import RevocationCache
from app.offline.sync import SyncEngine, SyncReport
from app.offline.verifier import VerificationService

log = logging.getLogger(__name__)


class OfflineClient:
    def __init__(
        self,
        database: Database,
        remote: RemoteAuthorityClient,
        *,
        initial_online: bool = True,
        did_cache_capacity: int = 100,
        sync_on_startup: bool = True,
        refresh_revocations_on_startup: bool = True,
        bus: Optional[EventBus] = None,
    ):
        self.database = database
        self.remote = remote
        self.bus = bus or EventBus()
        self._sync_on_startup = sync_on_startup
        self._refresh_on_startup = refresh_revocations_on_startup

        self.connectivity = ConnectivityMonitor(self.bus, initial_online)
        self.events = EventStore(database, bus=self.bus)
        self.did_cache = DIDCache(database, capacity=did_cache_capacity)
        self.revocations = RevocationCache(database)
        self.sync_engine = SyncEngine(self.events, remote, bus=self.bus)
        self.resolver = DIDResolver(self.did_cache, remote, self.connectivity)
        self.verifier = VerificationService(
            self.events, self.revocations, self.resolver, remote, self.connectivity,
        )

        self.bus.subscribe(LogAppended, self._on_log_appended)
        self.bus.subscribe(ConnectivityChanged, self._on_connectivity_changed)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Initial sync and revocation refresh, when online."""
        if not self.connectivity.online:
            log.info("Starting offline; sync deferred until reconnect")
            return
        jobs = []
        if self._sync_on_startup:
            jobs.append(self.sync_engine.sync_all())
        if self._refresh_on_startup:
            jobs.append(self._refresh_quietly())
        if jobs:
            await asyncio.gather(*jobs)

    async def stop(self) -> None:
        """Wait for in-flight background work."""
        await self.bus.drain()

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def sync_now(self) -> SyncReport:
        """Manual sync trigger."""
        return await self.sync_engine.sync_all()

    async def refresh_revocations(self) -> int:
        """Pull the remote revocation list and replace the snapshot.

        Returns:
            Number of entries in the new snapshot.

        Raises:
            NetworkUnreachable / RemoteRejected / InvalidRemoteData /
            StorageUnavailable: The previous snapshot is kept.
        """
        remote_list = await self.remote.fetch_revocations()
        return self.revocations.refresh(remote_list)

    def set_online(self, online: bool) -> bool:
        return self.connectivity.set_online(online)

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh_revocations()
        except OfflineError as e:
            log.warning(f"Failed to update revocation list: {e.message}")

    async def _on_log_appended(self, event: LogAppended) -> None:
        if self.connectivity.online:
            await self.sync_engine.sync_all()

    async def _on_connectivity_changed(self, event: ConnectivityChanged) -> None:
        if not event.came_online:
            return
        log.info("Back online, syncing logs and refreshing revocation list")
        await asyncio.gather(
            self.sync_engine.sync_all(retry_failed=True),
            self._refresh_quietly(),
        )


# Process-scoped instance
_offline_client: Optional[OfflineClient] = None


def get_offline_client() -> OfflineClient:
    """Get or create the OfflineClient singleton from configuration."""
    global _offline_client
    if _offline_client is None:
        from app.core.config import (
            DID_CACHE_MAX_ENTRIES,
            REFRESH_REVOCATIONS_ON_STARTUP,
            START_ONLINE,
            SYNC_ON_STARTUP,
        )
        from app.db.session import get_database
        from app.offline.remote import get_remote_client

        _offline_client = OfflineClient(
            get_database(),
            get_remote_client(),
            initial_online=START_ONLINE,
            did_cache_capacity=DID_CACHE_MAX_ENTRIES,
            sync_on_startup=SYNC_ON_STARTUP,
            refresh_revocations_on_startup=REFRESH_REVOCATIONS_ON_STARTUP,
        )
    return _offline_client


def set_offline_client(client: Optional[OfflineClient]) -> None:
    """Install a specific client (for testing and embedding)."""
    global _offline_client
    _offline_client = client


def reset_offline_client() -> None:
    set_offline_client(None)
