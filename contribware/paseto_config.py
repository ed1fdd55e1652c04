"""Configuration, errors and defaults for the PASETO middleware."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Callable

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from contribware.paseto_payload import (
    TOKEN_AUDIENCE,
    TOKEN_FIELD,
    TOKEN_SUBJECT,
    JSONToken,
    for_audience,
    subject,
    valid_at,
)

LOOKUP_HEADER = "header"
LOOKUP_COOKIE = "cookie"
LOOKUP_QUERY = "query"
LOOKUP_PARAM = "param"
DEFAULT_CONTEXT_KEY = "auth-token"
HEADER_AUTHORIZATION = "Authorization"
SYMMETRIC_KEY_SIZE = 32


class TokenPurpose(IntEnum):
    LOCAL = 0
    PUBLIC = 1


class PasetoMiddlewareError(Exception):
    """Base class for errors reported by the middleware."""


class ExpiredTokenError(PasetoMiddlewareError):
    def __init__(self) -> None:
        super().__init__("token has expired")


class MissingTokenError(PasetoMiddlewareError):
    def __init__(self) -> None:
        super().__init__("missing PASETO token")


class IncorrectTokenPrefixError(PasetoMiddlewareError):
    def __init__(self) -> None:
        super().__init__("missing prefix for PASETO token")


class DataUnmarshalError(PasetoMiddlewareError):
    def __init__(self) -> None:
        super().__init__("can't unmarshal token data to Payload type")


@dataclass
class Config:
    """Settings for the PASETO middleware; unset fields receive defaults."""

    next: Callable[[Request], bool] | None = None
    success_handler: Callable[..., Any] | None = None
    error_handler: Callable[[Request, Exception], Any] | None = None
    validate: Callable[[bytes], Any] | None = None
    symmetric_key: bytes | None = None
    private_key: bytes | None = None
    public_key: bytes | None = None
    context_key: str = DEFAULT_CONTEXT_KEY
    token_lookup: tuple[str, str] = (LOOKUP_HEADER, HEADER_AUTHORIZATION)
    token_prefix: str = ""


def default_error_handler(request: Request, error: Exception) -> Response:
    status = 400
    if isinstance(error, (DataUnmarshalError, ExpiredTokenError)):
        status = 401
    return PlainTextResponse(str(error), status_code=status)


def default_validate(data: bytes) -> Any:
    """Check claims made by ``create_token`` and return the stored data."""
    try:
        payload = JSONToken.from_json(data)
    except (ValueError, TypeError) as exc:
        raise DataUnmarshalError() from exc
    now = datetime.now(timezone.utc)
    if payload.expiration is None or now > payload.expiration:
        raise ExpiredTokenError()
    payload.validate(valid_at(now), subject(TOKEN_SUBJECT), for_audience(TOKEN_AUDIENCE))
    return payload.get(TOKEN_FIELD)


async def _pass_through(request: Request, call_next: Callable[[], Any]) -> Any:
    return await call_next()


def resolve_config(config: Config | None = None) -> Config:
    """Return a copy of *config* with defaults filled in; raise ValueError if keys are unusable."""
    resolved = replace(config) if config is not None else Config()
    if resolved.success_handler is None:
        resolved.success_handler = _pass_through
    if resolved.error_handler is None:
        resolved.error_handler = default_error_handler
    if resolved.validate is None:
        resolved.validate = default_validate
    if not resolved.context_key:
        resolved.context_key = DEFAULT_CONTEXT_KEY
    lookup = tuple(resolved.token_lookup) + ("", "")
    resolved.token_lookup = (lookup[0] or LOOKUP_HEADER, lookup[1] or HEADER_AUTHORIZATION)

    if resolved.symmetric_key is not None:
        if len(resolved.symmetric_key) != SYMMETRIC_KEY_SIZE:
            raise ValueError(
                f"PASETO middleware requires a symmetric key with size {SYMMETRIC_KEY_SIZE}"
            )
        if resolved.public_key is not None or resolved.private_key is not None:
            raise ValueError("PASETO middleware: can't use PublicKey or PrivateKey with SymmetricKey")
    elif resolved.public_key is None or resolved.private_key is None:
        raise ValueError("PASETO middleware: need both PublicKey and PrivateKey")
    return resolved