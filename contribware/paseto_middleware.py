"""ASGI middleware that authenticates requests with PASETO tokens."""

from __future__ import annotations

import inspect
from datetime import timedelta
from typing import Any, Callable

from starlette.requests import Request

from contribware import pasetov2
from contribware.paseto_config import (
    LOOKUP_COOKIE,
    LOOKUP_PARAM,
    LOOKUP_QUERY,
    Config,
    IncorrectTokenPrefixError,
    MissingTokenError,
    TokenPurpose,
    resolve_config,
)
from contribware.paseto_payload import new_payload

_PREFIX_SEPARATOR = " "


def _from_header(request: Request, key: str) -> str:
    return request.headers.get(key, "")


def _from_query(request: Request, key: str) -> str:
    return request.query_params.get(key, "")


def _from_param(request: Request, key: str) -> str:
    return str(request.path_params.get(key, ""))


def _from_cookie(request: Request, key: str) -> str:
    return request.cookies.get(key, "")


def get_extractor(lookup_origin: str) -> Callable[[Request, str], str]:
    """Return the function that reads a token from the given request part."""
    return {
        LOOKUP_QUERY: _from_query,
        LOOKUP_PARAM: _from_param,
        LOOKUP_COOKIE: _from_cookie,
    }.get(lookup_origin, _from_header)


def create_token(key: bytes, data_info: str, duration: timedelta, purpose: TokenPurpose) -> str:
    """Create a token holding *data_info* that expires after *duration*."""
    payload = new_payload(data_info, duration).to_json()
    if purpose == TokenPurpose.PUBLIC:
        return pasetov2.sign(key, payload)
    return pasetov2.encrypt(key, payload)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def new(config: Config | None = None) -> Callable[..., Any]:
    """Return a middleware factory taking the wrapped ASGI ``app``."""
    cfg = resolve_config(config)
    extractor = get_extractor(cfg.token_lookup[0])

    def factory(app: Any) -> Callable[..., Any]:
        async def middleware(scope, receive, send) -> None:
            if scope["type"] != "http":
                await app(scope, receive, send)
                return
            request = Request(scope, receive)

            async def call_next() -> None:
                await app(scope, receive, send)

            async def fail(error: Exception) -> None:
                response = await _resolve(cfg.error_handler(request, error))
                if response is not None:
                    await response(scope, receive, send)

            token = extractor(request, cfg.token_lookup[1])
            if cfg.next is not None and cfg.next(request):
                await call_next()
                return
            if not token:
                await fail(MissingTokenError())
                return
            if cfg.token_prefix:
                if not token.startswith(cfg.token_prefix):
                    await fail(IncorrectTokenPrefixError())
                    return
                full_prefix = cfg.token_prefix + _PREFIX_SEPARATOR
                token = token.removeprefix(full_prefix)

            try:
                if cfg.symmetric_key is not None:
                    data = pasetov2.decrypt(token, cfg.symmetric_key)
                else:
                    data = pasetov2.verify(token, cfg.public_key)
            except pasetov2.PasetoError as error:
                await fail(error)
                return

            try:
                payload = cfg.validate(data)
            except Exception as error:  # any validator failure is reported to the client
                await fail(error)
                return

            scope.setdefault("state", {})[cfg.context_key] = payload
            response = await _resolve(cfg.success_handler(request, call_next))
            if response is not None:
                await response(scope, receive, send)

        return middleware

    return factory