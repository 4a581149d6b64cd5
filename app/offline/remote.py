"""
HTTP client for the remote log/revocation authority.

Endpoints used:
- POST /api/logs                      - submit one verification record
- GET  /api/revocations               - current revocation list
- POST /v1/verify                     - verification service (JSON or raw text body)
- GET  /v1/verify/vc-verification     - capability descriptor

Transport failures (including timeouts) raise NetworkUnreachable and
non-2xx answers raise RemoteRejected. No retries happen here; callers
retry by calling again.
"""

import logging
from typing import Any, Optional, Union

import httpx

from app.core.config import (
    CAPABILITIES_PATH,
    LOGS_PATH,
    REMOTE_API_BASE,
    REMOTE_TIMEOUT_SECONDS,
    REVOCATIONS_PATH,
    VERIFY_PATH,
)
from app.offline.exceptions import InvalidRemoteData, NetworkUnreachable, RemoteRejected

log = logging.getLogger(__name__)


class RemoteAuthorityClient:
    """Async client for the remote authority.

    A fresh httpx.AsyncClient is opened per call so no connection state
    outlives a single round trip.
    """

    def __init__(
        self,
        base_url: str = REMOTE_API_BASE,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
    ):
        """Initialize client.

        Args:
            base_url: Remote authority base URL (trailing slash ignored).
            timeout: HTTP request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = self._url(path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            log.info(f"remote_error: {method} {url}: {type(e).__name__}: {e}")
            raise NetworkUnreachable(f"{method} {path} failed: {type(e).__name__}: {e}") from e

        log.debug(f"remote_response: {method} {url} status={resp.status_code}")
        if not 200 <= resp.status_code < 300:
            raise RemoteRejected(resp.status_code, f"{method} {path} returned HTTP {resp.status_code}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response, what: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise InvalidRemoteData(f"{what} response is not JSON: {e}")

    async def submit_log(self, body: dict) -> None:
        """POST one verification record. Returns only on 2xx acceptance."""
        await self._request("POST", LOGS_PATH, json=body)

    async def fetch_revocations(self) -> Any:
        """GET the revocation list as decoded JSON (validated by the caller)."""
        resp = await self._request("GET", REVOCATIONS_PATH)
        return self._json(resp, "Revocation list")

    async def verify(self, body: Union[dict, str]) -> dict:
        """Submit a credential/presentation for verification.

        Args:
            body: JSON object, or raw text (JSON text or base64url).

        Returns:
            The verification result object.
        """
        if isinstance(body, str):
            resp = await self._request(
                "POST", VERIFY_PATH,
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
            )
        else:
            resp = await self._request("POST", VERIFY_PATH, json=body)
        data = self._json(resp, "Verification")
        if not isinstance(data, dict):
            raise InvalidRemoteData("Verification response must be a JSON object")
        return data

    async def capabilities(self) -> dict:
        """Fetch the static capability descriptor."""
        resp = await self._request("GET", CAPABILITIES_PATH)
        data = self._json(resp, "Capability descriptor")
        if not isinstance(data, dict):
            raise InvalidRemoteData("Capability descriptor must be a JSON object")
        return data


# Process-scoped instance
_remote_client: Optional[RemoteAuthorityClient] = None


def get_remote_client() -> RemoteAuthorityClient:
    """Get or create the remote client singleton."""
    global _remote_client
    if _remote_client is None:
        _remote_client = RemoteAuthorityClient()
    return _remote_client


def reset_remote_client() -> None:
    """Forget the singleton (for testing)."""
    global _remote_client
    _remote_client = None
