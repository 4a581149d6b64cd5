"""Tests for the verification payload codec."""

import base64
import json

import pytest

from app.offline.exceptions import DeserializationFailure
from app.offline.payload import (
    UnknownPayload,
    VerificationOutcome,
    credential_id_of,
    decode_outcome,
    looks_like_credential,
    parse_scanned_text,
    reconstitute,
    reconstitute_or_wrap,
    serialize,
)


def b64url(obj) -> str:
    raw = json.dumps(obj).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class TestStoredPayload:
    def test_serialize_keeps_strings_verbatim(self):
        assert serialize("{not json") == "{not json"

    def test_serialize_model_uses_aliases(self):
        outcome = VerificationOutcome(verified=True, revocation_status="good")
        assert json.loads(serialize(outcome)) == {"verified": True, "revocationStatus": "good"}

    def test_reconstitute_invalid_raises(self):
        with pytest.raises(DeserializationFailure) as exc_info:
            reconstitute("{oops")
        assert exc_info.value.raw == "{oops"

    def test_reconstitute_or_wrap(self):
        assert reconstitute_or_wrap('{"a": 1}') == {"a": 1}
        assert reconstitute_or_wrap("plain text") == {"raw": "plain text"}


class TestDecodeOutcome:
    def test_known_shape(self):
        outcome = decode_outcome(json.dumps({
            "verified": True,
            "issuer": {"id": "did:web:issuer", "name": "Demo Issuer"},
            "subject": "did:example:alice",
            "revocationStatus": "revoked",
            "custom": "kept",
        }))

        assert isinstance(outcome, VerificationOutcome)
        assert outcome.verified is True
        assert outcome.display_issuer() == "Demo Issuer"
        assert outcome.display_subject() == "did:example:alice"
        assert outcome.revocation_status == "revoked"
        assert outcome.model_extra == {"custom": "kept"}

    def test_missing_fields_still_decode(self):
        outcome = decode_outcome("{}")

        assert isinstance(outcome, VerificationOutcome)
        assert outcome.display_issuer() == "Unknown issuer"
        assert outcome.display_subject() == ""

    def test_wrongly_typed_known_fields_are_left_out(self):
        outcome = decode_outcome(json.dumps({
            "verified": True,
            "status": 200,
            "credential": "eyJhbGciOiJFUzI1NiJ9.e30.c2ln",
            "issuer": "did:ex:issuer",
        }))

        assert isinstance(outcome, VerificationOutcome)
        assert outcome.status is None
        assert outcome.credential is None
        assert outcome.verified is True
        assert outcome.display_issuer() == "did:ex:issuer"

    def test_wrongly_typed_alias_field_is_left_out(self):
        outcome = decode_outcome('{"checkedAt": 1700000000, "verified": false}')

        assert isinstance(outcome, VerificationOutcome)
        assert outcome.checked_at is None
        assert outcome.verified is False

    @pytest.mark.parametrize("stored", ["not json", "[1, 2]", "42"])
    def test_non_object_falls_back(self, stored):
        assert decode_outcome(stored) == UnknownPayload(raw=stored)


class TestParseScannedText:
    def test_json_text(self):
        assert parse_scanned_text('  {"issuer": "x"} ') == {"issuer": "x"}

    def test_broken_json_is_raw(self):
        assert parse_scanned_text("{issuer") == {"raw": "{issuer"}

    def test_structured_value_passes_through(self):
        data = {"verified": True}
        assert parse_scanned_text(data) is data

    def test_jwt_claims_segment(self):
        claims = {"iss": "did:web:issuer", "sub": "did:example:bob"}
        token = f"{b64url({'alg': 'ES256'})}.{b64url(claims)}.c2lnbmF0dXJl"

        assert parse_scanned_text(token) == claims

    def test_base64url_json(self):
        doc = {"credential": {"id": "cred1", "credentialSubject": {"id": "did:x"}}}
        assert parse_scanned_text(b64url(doc)) == doc

    def test_base64url_plain_text(self):
        encoded = base64.urlsafe_b64encode(b"hello").decode("ascii").rstrip("=")
        assert parse_scanned_text(encoded) == {"raw": "hello"}

    def test_other_text_is_raw(self):
        assert parse_scanned_text("not a credential!") == {"raw": "not a credential!"}


class TestLooksLikeCredential:
    @pytest.mark.parametrize("data", [
        {"credential": {"credentialSubject": {"id": "did:x"}}},
        {"verified": True},
        {"issuer": "Demo Issuer"},
        {"raw": "something"},
        {"sub": "did:example:bob"},
    ])
    def test_accepted(self, data):
        assert looks_like_credential(data) == (True, None)

    def test_empty_rejected(self):
        assert looks_like_credential({}) == (False, "No data found")
        assert looks_like_credential(None) == (False, "No data found")

    def test_unrelated_object_rejected(self):
        ok, msg = looks_like_credential({"hello": "world"})
        assert ok is False
        assert msg == "Missing credential field"


class TestCredentialId:
    def test_credential_id_preferred(self):
        data = {"credential": {"id": "cred1", "credentialSubject": {"id": "did:x"}}}
        assert credential_id_of(data) == "cred1"

    def test_falls_back_to_subject_id(self):
        assert credential_id_of({"credential": {"credentialSubject": {"id": "did:x"}}}) == "did:x"

    def test_result_subject_string(self):
        assert credential_id_of({"subject": "cred123"}) == "cred123"

    def test_none_when_absent(self):
        assert credential_id_of({"verified": True}) is None
        assert credential_id_of("cred123") is None
