"""DID document resolution, cache first.

The bounded DID cache is consulted before any remote call. On a miss the
document is fetched from the verification service (POST /v1/verify) and
cached under the credential identifier. Offline misses fail with
ResolutionUnavailable.
"""

import logging
from typing import Any

from app.offline.connectivity import ConnectivityMonitor
from app.offline.did_cache import DIDCache, DIDCacheEntry
from app.offline.exceptions import InvalidCredential, ResolutionUnavailable
from app.offline.payload import credential_id_of
from app.offline.remote import RemoteAuthorityClient

log = logging.getLogger(__name__)


class DIDResolver:
    def __init__(
        self,
        cache: DIDCache,
        remote: RemoteAuthorityClient,
        connectivity: ConnectivityMonitor,
    ):
        self._cache = cache
        self._remote = remote
        self._connectivity = connectivity

    async def resolve(self, payload: Any) -> Any:
        """Resolve the document for the credential in payload.

        Raises:
            InvalidCredential: If the payload carries no credential id.
            ResolutionUnavailable: If offline and the document is not cached.
            RemoteRejected / NetworkUnreachable: If the remote fetch fails.
        """
        cred_id = credential_id_of(payload)
        if not cred_id:
            raise InvalidCredential("Missing credential ID")

        cached = self._cache.get(cred_id)
        if cached is not None:
            log.info(f"DID cache hit: uses={cached.usage_count}", extra={"credential_id": cred_id})
            return cached.document

        if not self._connectivity.online:
            raise ResolutionUnavailable(f"Offline and DID not cached: {cred_id[:40]}")

        document = await self._remote.verify(payload)
        self._cache.put(DIDCacheEntry(key=cred_id, document=document))
        return document
