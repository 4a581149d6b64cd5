"""Offline client exceptions mapped to error codes.

- Local storage failures are fatal to the attempted operation but are
  recovered at the component boundary (never crash the process).
- Remote failures (rejection, transport) leave pending records pending
  and cached snapshots unchanged; they are recoverable by retrying.
"""

from typing import Optional


class ErrorCode:
    """Error code registry."""
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    REMOTE_REJECTED = "REMOTE_REJECTED"
    NETWORK_UNREACHABLE = "NETWORK_UNREACHABLE"
    INVALID_REMOTE_DATA = "INVALID_REMOTE_DATA"
    DESERIALIZATION_FAILURE = "DESERIALIZATION_FAILURE"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    RESOLUTION_UNAVAILABLE = "RESOLUTION_UNAVAILABLE"


class OfflineError(Exception):
    """Base exception for offline client operations.

    Carries an error code from ErrorCode and whether retrying later can
    succeed.
    """

    recoverable: bool = True

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
        }


class StorageUnavailable(OfflineError):
    """Local persistent store is inaccessible.

    The attempted append/read fails; callers surface it and may retry.
    """

    def __init__(self, message: str = "Local storage unavailable"):
        super().__init__(ErrorCode.STORAGE_UNAVAILABLE, message)


class RemoteRejected(OfflineError):
    """Remote authority answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(
            ErrorCode.REMOTE_REJECTED,
            message or f"Remote authority rejected request: HTTP {status_code}",
        )


class NetworkUnreachable(OfflineError):
    """Transport failure (connect error, timeout) talking to the remote."""

    def __init__(self, message: str = "Remote authority unreachable"):
        super().__init__(ErrorCode.NETWORK_UNREACHABLE, message)


class InvalidRemoteData(OfflineError):
    """Remote data is malformed (e.g. revocation list is not a list).

    The existing snapshot is retained.
    """

    recoverable = False

    def __init__(self, message: str = "Malformed data from remote authority"):
        super().__init__(ErrorCode.INVALID_REMOTE_DATA, message)


class DeserializationFailure(OfflineError):
    """A stored payload cannot be parsed back into structured form.

    The raw serialized form is kept on the exception so callers can
    forward it as a fallback wrapper instead of dropping the record.
    """

    recoverable = False

    def __init__(self, raw: str, message: str = "Stored payload is not valid JSON"):
        self.raw = raw
        super().__init__(ErrorCode.DESERIALIZATION_FAILURE, message)


class InvalidCredential(OfflineError):
    """Scanned or uploaded data does not look like a credential."""

    recoverable = False

    def __init__(self, message: str = "Missing credential field"):
        super().__init__(ErrorCode.INVALID_CREDENTIAL, message)


class ResolutionUnavailable(OfflineError):
    """Offline and the requested DID document is not cached."""

    def __init__(self, message: str = "Offline and DID document not cached"):
        super().__init__(ErrorCode.RESOLUTION_UNAVAILABLE, message)
