"""
Verification payload codec.

Stored log payloads are opaque serialized verification results. This
module turns them back into structured values:
- VerificationOutcome: the known result shape, every field optional
- UnknownPayload: explicit fallback when the shape is not recognised

It also decodes scanned/uploaded text (JSON, compact JWT, base64url) into
a structured payload before verification.
"""

import base64
import json
import logging
import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.offline.exceptions import DeserializationFailure

log = logging.getLogger(__name__)

_JWT_RE = re.compile(r"^([A-Za-z0-9\-_]+)\.([A-Za-z0-9\-_]+)\.([A-Za-z0-9\-_]+)$")
_B64URL_RE = re.compile(r"^[A-Za-z0-9\-_]+$")


# =============================================================================
# Structured payload variants
# =============================================================================

class VerificationOutcome(BaseModel):
    """Known verification result shape.

    Fields are read opportunistically: a result lacking any of them still
    decodes. Unlisted fields are kept as extras.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    verified: Optional[bool] = None
    status: Optional[str] = None
    issuer: Optional[Any] = None
    subject: Optional[Any] = None
    revoked: Optional[bool] = None
    message: Optional[str] = None
    checked_at: Optional[str] = Field(default=None, alias="checkedAt")
    credential: Optional[dict] = None
    revocation_status: Optional[str] = Field(default=None, alias="revocationStatus")
    revocation_reason: Optional[str] = Field(default=None, alias="revocationReason")

    def display_issuer(self) -> str:
        return _display_name(self.issuer) or "Unknown issuer"

    def display_subject(self) -> str:
        return _display_name(self.subject) or ""


class UnknownPayload(BaseModel):
    """Fallback variant: payload that is not a JSON object."""
    raw: str


def _display_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, dict):
        # Credential issuers are often objects: {"id": ..., "name": ...}
        return str(value.get("name") or value.get("id") or "") or None
    return str(value)


def decode_outcome(serialized: str) -> Union[VerificationOutcome, UnknownPayload]:
    """Decode a stored payload into its structured variant.

    Args:
        serialized: Payload as stored in the event store.

    Returns:
        VerificationOutcome for JSON objects (known fields of the wrong
        type are left out), UnknownPayload otherwise.
    """
    try:
        data = reconstitute(serialized)
    except DeserializationFailure as e:
        return UnknownPayload(raw=e.raw)
    if not isinstance(data, dict):
        return UnknownPayload(raw=serialized)
    try:
        return VerificationOutcome.model_validate(data)
    except ValidationError as e:
        # Known fields with an unexpected type are dropped, not fatal
        bad = {err["loc"][0] for err in e.errors() if err["loc"]}
        log.debug(f"payload_fields_ignored: {sorted(map(str, bad))}")
    try:
        return VerificationOutcome.model_validate(
            {k: v for k, v in data.items() if k not in bad}
        )
    except ValidationError:
        return UnknownPayload(raw=serialized)


# =============================================================================
# Stored payload (de)serialization
# =============================================================================

def serialize(payload: Any) -> str:
    """Serialize a payload for storage; strings are stored as given."""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, BaseModel):
        return payload.model_dump_json(by_alias=True, exclude_none=True)
    return json.dumps(payload, ensure_ascii=False, default=str)


def reconstitute(serialized: str) -> Any:
    """Parse a stored payload back into structured data.

    Raises:
        DeserializationFailure: If the payload is not valid JSON.
    """
    try:
        return json.loads(serialized)
    except (TypeError, ValueError) as e:
        raise DeserializationFailure(serialized, f"Stored payload is not valid JSON: {e}")


def reconstitute_or_wrap(serialized: str) -> Any:
    """Parse a stored payload, wrapping it as {"raw": ...} when unparsable."""
    try:
        return reconstitute(serialized)
    except DeserializationFailure as e:
        log.warning(f"payload_fallback: {e.message}")
        return {"raw": e.raw}


# =============================================================================
# Scanned / uploaded text
# =============================================================================

def _b64url_decode_text(encoded: str) -> str:
    padded = encoded + "=" * (-len(encoded) % 4)
    decoded = base64.urlsafe_b64decode(padded)
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError:
        return decoded.decode("latin-1")


def parse_scanned_text(value: Any) -> Any:
    """Turn scanned or uploaded content into a structured payload.

    Tried in order: already-structured value, JSON text, compact JWT
    (claims segment), bare base64url text decoding to JSON. Anything else
    is wrapped as {"raw": text}.
    """
    if isinstance(value, (dict, list)):
        return value
    if not isinstance(value, str):
        return {"raw": str(value)}

    s = value.strip()

    if s.startswith("{") or s.startswith("["):
        try:
            return json.loads(s)
        except ValueError:
            return {"raw": s}

    match = _JWT_RE.match(s)
    if match:
        try:
            return json.loads(_b64url_decode_text(match.group(2)))
        except (ValueError, TypeError):
            return {"raw": s}

    if _B64URL_RE.match(s):
        try:
            decoded = _b64url_decode_text(s)
        except (ValueError, TypeError):
            return {"raw": s}
        if decoded.startswith("{") or decoded.startswith("["):
            try:
                return json.loads(decoded)
            except ValueError:
                return {"raw": decoded}
        return {"raw": decoded}

    return {"raw": s}


def looks_like_credential(data: Any) -> tuple[bool, Optional[str]]:
    """Loose check accepting full credentials and verification results.

    Returns:
        (True, None) if acceptable, else (False, reason).
    """
    if not data:
        return False, "No data found"
    if not isinstance(data, dict):
        return False, "Missing credential field"

    credential = data.get("credential")
    if isinstance(credential, dict) and credential.get("credentialSubject"):
        return True, None

    # Verification-result shape (verified/issuer/raw)
    if data.get("verified") is True or data.get("issuer") or data.get("raw"):
        return True, None

    # JWT claim set
    if data.get("sub") or data.get("iss") or data.get("credentialSubject"):
        return True, None

    return False, "Missing credential field"


def credential_id_of(data: Any) -> Optional[str]:
    """Credential identifier used for revocation and DID cache lookups."""
    if not isinstance(data, dict):
        return None
    credential = data.get("credential")
    if isinstance(credential, dict):
        if credential.get("id"):
            return str(credential["id"])
        subject = credential.get("credentialSubject")
        if isinstance(subject, dict) and subject.get("id"):
            return str(subject["id"])
    subject = data.get("subject")
    if isinstance(subject, str) and subject:
        return subject
    return None
