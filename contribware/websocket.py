"""WebSocket endpoint for ASGI applications, with request data captured at upgrade time."""

from __future__ import annotations

import inspect
import json
import struct
import sys
import traceback
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Awaitable, Callable, Union

from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse
from starlette.websockets import WebSocket, WebSocketState


class MessageType(IntEnum):
    """Message types defined in RFC 6455, section 11.8."""

    TEXT = 1
    BINARY = 2
    CLOSE = 8
    PING = 9
    PONG = 10


class CloseCode(IntEnum):
    """Close codes defined in RFC 6455, section 11.7."""

    NORMAL_CLOSURE = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    NO_STATUS_RECEIVED = 1005
    ABNORMAL_CLOSURE = 1006
    INVALID_FRAME_PAYLOAD_DATA = 1007
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    MANDATORY_EXTENSION = 1010
    INTERNAL_SERVER_ERR = 1011
    SERVICE_RESTART = 1012
    TRY_AGAIN_LATER = 1013
    TLS_HANDSHAKE = 1015


class CloseError(Exception):
    """Raised when the peer has closed the connection."""

    def __init__(self, code: int, text: str = "") -> None:
        self.code = int(code)
        self.text = text
        message = f"websocket: close {self.code}"
        if text:
            message += f": {text}"
        super().__init__(message)


Message = Union[str, bytes]


def _to_bytes(data: Message | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Conn:
    """An accepted WebSocket plus the locals, params, query, cookies and headers of its upgrade request."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._locals: dict[str, Any] = dict(websocket.scope.get("state") or {})
        self._params = {str(k): str(v) for k, v in websocket.path_params.items()}
        self._queries = dict(websocket.query_params)
        self._cookies = dict(websocket.cookies)
        self._headers = {k.lower(): v for k, v in websocket.headers.items()}
        self._ip = websocket.client.host if websocket.client else ""

    def locals(self, key: str, *args: Any) -> Any:
        """Return the local stored under *key*, or store and return the first extra argument."""
        if not args:
            return self._locals.get(key)
        self._locals[key] = args[0]
        return args[0]

    def params(self, key: str, default: str = "") -> str:
        return self._params.get(key, default)

    def query(self, key: str, default: str = "") -> str:
        return self._queries.get(key, default)

    def cookies(self, key: str, default: str = "") -> str:
        return self._cookies.get(key, default)

    def headers(self, key: str, default: str = "") -> str:
        return self._headers.get(key.lower(), default)

    def ip(self) -> str:
        return self._ip

    async def read_message(self) -> tuple[MessageType, Message]:
        """Wait for the next data message; raise CloseError when the peer disconnects."""
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise CloseError(
                message.get("code", CloseCode.NORMAL_CLOSURE), message.get("reason") or ""
            )
        if message.get("text") is not None:
            return MessageType.TEXT, message["text"]
        return MessageType.BINARY, message.get("bytes") or b""

    async def write_message(self, message_type: int, data: Message) -> None:
        """Send one message; ping and pong frames are left to the server."""
        kind = MessageType(message_type)
        if kind == MessageType.TEXT:
            text = data if isinstance(data, str) else _to_bytes(data).decode("utf-8")
            await self.websocket.send_text(text)
        elif kind == MessageType.BINARY:
            await self.websocket.send_bytes(_to_bytes(data))
        elif kind == MessageType.CLOSE:
            payload = _to_bytes(data)
            if len(payload) >= 2:
                (code,) = struct.unpack(">H", payload[:2])
                reason = payload[2:].decode("utf-8", "replace")
            else:
                code, reason = CloseCode.NORMAL_CLOSURE, ""
            await self.close(code, reason)

    async def write_json(self, value: Any) -> None:
        await self.websocket.send_text(json.dumps(value))

    async def read_json(self) -> Any:
        _, data = await self.read_message()
        return json.loads(data)

    async def close(self, code: int = CloseCode.NORMAL_CLOSURE, reason: str = "") -> None:
        await self.websocket.close(code=int(code), reason=reason or None)


async def default_recover(conn: Conn, error: BaseException) -> None:
    """Print the failure to stderr and report it to the client as ``{"error": ...}``."""
    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    sys.stderr.write(f"panic: {error}\n{trace}\n")
    try:
        await conn.write_json({"error": str(error)})
    except Exception as exc:  # the connection may already be unusable
        sys.stderr.write(f"could not write error response: {exc}\n")


@dataclass
class Config:
    """Settings for the WebSocket endpoint."""

    # Connections for which this returns False are refused.
    filter: Callable[[WebSocket], bool] | None = None
    # Subprotocols the server supports, in order of preference.
    subprotocols: list[str] = field(default_factory=list)
    # Allowed Origin header values; empty or ["*"] allows every origin.
    origins: list[str] = field(default_factory=list)
    # Called with the connection and the exception when the handler fails.
    recover_handler: Callable[[Conn, BaseException], Any] | None = None


class _Endpoint:
    def __init__(self, handler: Callable[[Conn], Awaitable[None] | None], config: Config) -> None:
        self._handler = handler
        self._filter = config.filter
        self._subprotocols = list(config.subprotocols)
        self._origins = list(config.origins) or ["*"]
        self._recover = config.recover_handler or default_recover

    def _origin_allowed(self, websocket: WebSocket) -> bool:
        if self._origins[0] == "*":
            return True
        return websocket.headers.get("origin", "") in self._origins

    def _choose_subprotocol(self, websocket: WebSocket) -> str | None:
        requested = websocket.scope.get("subprotocols") or []
        return next((p for p in self._subprotocols if p in requested), None)

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] == "http":
            response = PlainTextResponse("Upgrade Required", status_code=426)
            await response(scope, receive, send)
            return
        if scope["type"] != "websocket":
            return

        websocket = WebSocket(scope, receive, send)
        if (self._filter is not None and not self._filter(websocket)) or not self._origin_allowed(
            websocket
        ):
            await websocket.close(code=CloseCode.POLICY_VIOLATION)
            return

        await websocket.accept(subprotocol=self._choose_subprotocol(websocket))
        conn = Conn(websocket)
        try:
            await _resolve(self._handler(conn))
        except CloseError:
            pass
        except Exception as error:
            await _resolve(self._recover(conn, error))

        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await websocket.close()
            except RuntimeError:
                pass


def new(handler: Callable[[Conn], Awaitable[None] | None], config: Config | None = None):
    """Return an ASGI endpoint that upgrades the client and runs *handler* with a Conn."""
    return _Endpoint(handler, config or Config())


def format_close_message(close_code: int, text: str) -> bytes:
    """Format a close frame payload; empty for NO_STATUS_RECEIVED."""
    if close_code == CloseCode.NO_STATUS_RECEIVED:
        return b""
    return struct.pack(">H", close_code) + text.encode("utf-8")


def is_close_error(error: BaseException | None, *args: int) -> bool:
    """True if *error* is a CloseError with one of the given codes."""
    return isinstance(error, CloseError) and error.code in args


def is_unexpected_close_error(error: BaseException | None, *args: int) -> bool:
    """True if *error* is a CloseError whose code is not among the expected ones."""
    return isinstance(error, CloseError) and error.code not in args


def is_websocket_upgrade(request: HTTPConnection) -> bool:
    """True if the request asks for an upgrade to the WebSocket protocol."""
    connection = request.headers.get("connection", "")
    tokens = {token.strip().lower() for token in connection.split(",")}
    return "upgrade" in tokens and request.headers.get("upgrade", "").lower() == "websocket"