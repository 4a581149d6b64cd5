"""Verification workflow around the external verification service.

Two entry points, mirroring how results reach the device:
- verify_text(): uploaded content (JSON / JWT / base64url text) that
  still has to be verified; goes through the DID resolver so previously
  seen credentials verify offline from the cache.
- record_scan(): a result already produced by the scanning SDK.

Both enrich the result with the local revocation snapshot and append it
to the durable event store (pending sync). The cryptographic verification
itself is the remote service's job.
"""

import logging
from typing import Any, Optional

from app.offline.connectivity import ConnectivityMonitor
from app.offline.did_resolver import DIDResolver
from app.offline.event_store import EventStore
from app.offline.exceptions import InvalidCredential, ResolutionUnavailable, StorageUnavailable
from app.offline.payload import credential_id_of, looks_like_credential, parse_scanned_text
from app.offline.remote import RemoteAuthorityClient
from app.offline.revocation import RevocationCache

log = logging.getLogger(__name__)

REVOCATION_GOOD = "good"
REVOCATION_REVOKED = "revoked"
REVOCATION_UNKNOWN = "unknown"


class VerificationService:
    def __init__(
        self,
        store: EventStore,
        revocations: RevocationCache,
        resolver: DIDResolver,
        remote: RemoteAuthorityClient,
        connectivity: ConnectivityMonitor,
    ):
        self._store = store
        self._revocations = revocations
        self._resolver = resolver
        self._remote = remote
        self._connectivity = connectivity

    async def verify_text(self, content: Any) -> dict:
        """Verify uploaded content and record the result.

        Raises:
            InvalidCredential: Content does not look like a credential.
            ResolutionUnavailable: Offline and nothing cached for it.
            RemoteRejected / NetworkUnreachable / InvalidRemoteData: The
                verification service call failed.
            StorageUnavailable: The result could not be recorded.
        """
        payload = parse_scanned_text(content)
        self._validate(payload)

        if credential_id_of(payload):
            result = await self._resolver.resolve(payload)
        else:
            if not self._connectivity.online:
                raise ResolutionUnavailable("Offline: verification service unreachable")
            result = await self._remote.verify(payload)

        if not isinstance(result, dict):
            result = {"raw": result}
        return self._record(result)

    def record_scan(self, data: Any) -> dict:
        """Record a result already verified by the scanner. Works offline."""
        self._validate(data)
        return self._record(data)

    @staticmethod
    def _validate(payload: Any) -> None:
        ok, msg = looks_like_credential(payload)
        if not ok:
            raise InvalidCredential(msg or "Missing credential field")

    def _record(self, result: dict) -> dict:
        enriched = self.enrich(result)
        record_id = self._store.append(enriched)
        log.info("Verification recorded", extra={"record_id": record_id})
        return enriched

    def enrich(self, result: dict) -> dict:
        """Copy of result with revocationStatus/revocationReason added."""
        status, reason = self.revocation_status(credential_id_of(result))
        enriched = dict(result)
        enriched["revocationStatus"] = status
        if reason:
            enriched["revocationReason"] = reason
        return enriched

    def revocation_status(self, credential_id: Optional[str]) -> tuple[str, Optional[str]]:
        """Status from the local snapshot. Never touches the network."""
        if not credential_id:
            return REVOCATION_GOOD, None
        try:
            if self._revocations.is_revoked(credential_id):
                return REVOCATION_REVOKED, self._revocations.reason_for(credential_id)
        except StorageUnavailable as e:
            log.warning(f"Revocation lookup unavailable for {credential_id[:40]}: {e.message}")
            return REVOCATION_UNKNOWN, None
        return REVOCATION_GOOD, None
