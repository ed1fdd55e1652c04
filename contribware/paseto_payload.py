"""JSON claims carried inside PASETO tokens."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

TOKEN_AUDIENCE = "gofiber.gophers"
TOKEN_SUBJECT = "user-token"
TOKEN_FIELD = "data"

_STANDARD = {"aud", "iss", "jti", "sub", "exp", "iat", "nbf"}


class TokenValidationError(ValueError):
    """Raised when a token's claims fail validation."""


def _format_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _parse_time(text: str) -> datetime:
    if not isinstance(text, str):
        raise ValueError("time claim must be a string")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class JSONToken:
    """Registered claims plus free-form custom claims."""

    audience: str = ""
    issuer: str = ""
    jti: str = ""
    subject: str = ""
    expiration: datetime | None = None
    issued_at: datetime | None = None
    not_before: datetime | None = None
    claims: dict[str, str] = field(default_factory=dict)

    def set(self, key: str, value: str) -> None:
        self.claims[key] = value

    def get(self, key: str) -> str:
        return self.claims.get(key, "")

    def to_json(self) -> bytes:
        document: dict[str, Any] = dict(self.claims)
        for name, value in (
            ("aud", self.audience),
            ("iss", self.issuer),
            ("jti", self.jti),
            ("sub", self.subject),
        ):
            if value:
                document[name] = value
        for name, moment in (
            ("exp", self.expiration),
            ("iat", self.issued_at),
            ("nbf", self.not_before),
        ):
            if moment is not None:
                document[name] = _format_time(moment)
        return json.dumps(document).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> JSONToken:
        document = json.loads(data)
        if not isinstance(document, dict):
            raise ValueError("token payload must be a JSON object")

        def moment(name: str) -> datetime | None:
            return _parse_time(document[name]) if name in document else None

        return cls(
            audience=str(document.get("aud", "")),
            issuer=str(document.get("iss", "")),
            jti=str(document.get("jti", "")),
            subject=str(document.get("sub", "")),
            expiration=moment("exp"),
            issued_at=moment("iat"),
            not_before=moment("nbf"),
            claims={k: v for k, v in document.items() if k not in _STANDARD},
        )

    def validate(self, *args: Callable[[JSONToken], None]) -> None:
        """Run validators; with none given, check validity at the current time."""
        validators = args or (valid_at(datetime.now(timezone.utc)),)
        for validator in validators:
            validator(self)


def valid_at(moment: datetime) -> Callable[[JSONToken], None]:
    def check(token: JSONToken) -> None:
        if token.issued_at is not None and moment < token.issued_at:
            raise TokenValidationError("token was issued in the future")
        if token.not_before is not None and moment < token.not_before:
            raise TokenValidationError("token cannot be used yet")
        if token.expiration is not None and moment > token.expiration:
            raise TokenValidationError("token has expired")

    return check


def subject(value: str) -> Callable[[JSONToken], None]:
    def check(token: JSONToken) -> None:
        if token.subject != value:
            raise TokenValidationError("subject mismatch")

    return check


def for_audience(value: str) -> Callable[[JSONToken], None]:
    def check(token: JSONToken) -> None:
        if token.audience != value:
            raise TokenValidationError("audience mismatch")

    return check


def new_payload(user_token: str, duration: timedelta) -> JSONToken:
    """Build the claims for a user token that lives for *duration*."""
    now = datetime.now(timezone.utc)
    payload = JSONToken(
        audience=TOKEN_AUDIENCE,
        jti=str(uuid.uuid4()),
        subject=TOKEN_SUBJECT,
        issued_at=now,
        expiration=now + duration,
        not_before=now,
    )
    payload.set(TOKEN_FIELD, user_token)
    return payload