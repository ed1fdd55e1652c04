import uuid
from datetime import datetime, timedelta, timezone

import pytest

from contribware.paseto_payload import (
    JSONToken,
    TokenValidationError,
    for_audience,
    new_payload,
    subject,
    valid_at,
)


def test_new_payload_fields():
    payload = new_payload("john", timedelta(hours=1))
    assert payload.audience == "gofiber.gophers"
    assert payload.subject == "user-token"
    assert payload.get("data") == "john"
    assert str(uuid.UUID(payload.jti)) == payload.jti
    assert payload.expiration - payload.issued_at == timedelta(hours=1)


def test_json_round_trip():
    payload = new_payload("john", timedelta(hours=1))
    restored = JSONToken.from_json(payload.to_json())
    assert restored.get("data") == "john"
    assert restored.jti == payload.jti
    assert restored.expiration == payload.expiration.replace(microsecond=0)


def test_missing_claim_is_empty():
    assert JSONToken().get("missing") == ""


def test_validate_passes_for_fresh_payload():
    payload = JSONToken.from_json(new_payload("john", timedelta(hours=1)).to_json())
    payload.validate(
        valid_at(datetime.now(timezone.utc)),
        subject("user-token"),
        for_audience("gofiber.gophers"),
    )
    assert payload.subject == "user-token"


def test_validate_expired():
    payload = new_payload("john", timedelta(hours=-1))
    with pytest.raises(TokenValidationError):
        payload.validate()


def test_validate_before_issue():
    payload = new_payload("john", timedelta(hours=1))
    with pytest.raises(TokenValidationError):
        payload.validate(valid_at(datetime.now(timezone.utc) - timedelta(days=1)))


def test_subject_and_audience_mismatch():
    payload = new_payload("john", timedelta(hours=1))
    with pytest.raises(TokenValidationError):
        payload.validate(subject("other"))
    with pytest.raises(TokenValidationError):
        payload.validate(for_audience("other"))


def test_from_json_rejects_non_object():
    with pytest.raises(ValueError):
        JSONToken.from_json(b"[1, 2]")