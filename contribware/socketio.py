"""Event-driven WebSocket connections that share a process-wide connection pool."""

from __future__ import annotations

import asyncio
import inspect
import threading
import uuid as uuid_lib
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from contribware.websocket import (
    CloseCode,
    Config,
    Conn,
    MessageType,
    format_close_message,
)
from contribware.websocket import new as _new_endpoint

EVENT_MESSAGE = "message"
EVENT_PING = "ping"
EVENT_PONG = "pong"
EVENT_DISCONNECT = "disconnect"
EVENT_CONNECT = "connect"
EVENT_CLOSE = "close"
EVENT_ERROR = "error"

# Seconds between keep-alive pong frames.
PONG_TIMEOUT = 1.0
# Seconds to wait before retrying a message that could not be sent.
RETRY_SEND_TIMEOUT = 0.02
# Highest retry count at which a message is still queued again.
MAX_SEND_RETRY = 5
# Seconds to pause while no connection is attached.
READ_TIMEOUT = 0.01


class InvalidConnectionError(Exception):
    """The addressed connection is not available any more."""

    def __init__(self) -> None:
        super().__init__("message cannot be delivered invalid/gone connection")


class UUIDDuplicationError(Exception):
    """The UUID is already used by a connection in the pool."""

    def __init__(self) -> None:
        super().__init__("UUID already exists in the available connections pool")


@dataclass
class _Message:
    kind: int
    data: Any
    retries: int = 0


@dataclass
class EventPayload:
    """Everything known about a fired event and the connection it belongs to."""

    kws: "Websocket"
    name: str
    socket_uuid: str
    socket_attributes: Dict[str, Any]
    error: Optional[BaseException] = None
    data: Any = None


class ConnectionPool:
    """Thread-safe mapping of UUIDs to live connections."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._conns: Dict[str, Any] = {}

    def set(self, ws: Any) -> None:
        key = ws.uuid
        with self._lock:
            self._conns[key] = ws

    def all(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._conns)

    def get(self, key: str) -> Any:
        with self._lock:
            try:
                return self._conns[key]
            except KeyError:
                raise InvalidConnectionError() from None

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._conns

    def delete(self, key: str) -> None:
        with self._lock:
            self._conns.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._conns = {}


pool = ConnectionPool()

_listeners: Dict[str, List[Callable[[EventPayload], Any]]] = {}
_listeners_lock = threading.Lock()


def _callbacks(event: str) -> List[Callable[[EventPayload], Any]]:
    with _listeners_lock:
        return list(_listeners.get(event, ()))


def _to_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data or b"")


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Websocket:
    """A pooled connection that queues outgoing messages and fires events for incoming ones."""

    def __init__(self, conn: Optional[Conn] = None) -> None:
        self.conn = conn
        self._lock = threading.RLock()
        self._alive = True
        self._attributes: Dict[str, Any] = {}
        self._queue: asyncio.Queue = asyncio.Queue()
        self._done = asyncio.Event()
        self._uuid = str(uuid_lib.uuid4())

    @property
    def uuid(self) -> str:
        with self._lock:
            return self._uuid

    @uuid.setter
    def uuid(self, value: str) -> None:
        with self._lock:
            if pool.contains(value):
                raise UUIDDuplicationError()
            self._uuid = value

    @property
    def is_alive(self) -> bool:
        with self._lock:
            return self._alive

    def set_attribute(self, key: str, value: Any) -> None:
        with self._lock:
            self._attributes[key] = value

    def get_attribute(self, key: str) -> Any:
        with self._lock:
            return self._attributes.get(key)

    def get_int_attribute(self, key: str) -> int:
        """Return the attribute as an int, 0 if unset; raise TypeError if it is not an int."""
        with self._lock:
            if key not in self._attributes:
                return 0
            value = self._attributes[key]
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"attribute {key!r} is not an int")
        return value

    def get_string_attribute(self, key: str) -> str:
        """Return the attribute as a str, "" if unset; raise TypeError if it is not a str."""
        with self._lock:
            if key not in self._attributes:
                return ""
            value = self._attributes[key]
        if not isinstance(value, str):
            raise TypeError(f"attribute {key!r} is not a string")
        return value

    def emit_to_list(self, uuids: List[str], message: Any, *args: int) -> None:
        """Emit to each listed connection, firing an error event for each failure."""
        for target in uuids:
            try:
                self.emit_to(target, message, *args)
            except InvalidConnectionError as error:
                self._fire_event(EVENT_ERROR, message, error)

    def emit_to(self, uuid: str, message: Any, *args: int) -> None:
        """Emit to one connection; raise InvalidConnectionError if it is gone."""
        conn = pool.get(uuid)
        if not pool.contains(uuid) or not conn.is_alive:
            error = InvalidConnectionError()
            self._fire_event(EVENT_ERROR, uuid.encode("utf-8"), error)
            raise error
        conn.emit(message, *args)

    def broadcast(self, message: Any, exclude_self: bool, *args: int) -> None:
        """Emit to every pooled connection, optionally skipping this one."""
        own = self.uuid
        for target in pool.all():
            if exclude_self and target == own:
                continue
            try:
                self.emit_to(target, message, *args)
            except InvalidConnectionError as error:
                self._fire_event(EVENT_ERROR, message, error)

    def fire(self, event: str, data: Any) -> None:
        self._fire_event(event, data, None)

    def emit(self, message: Any, *args: int) -> None:
        """Queue *message* for sending; the type defaults to text."""
        kind = args[0] if args else MessageType.TEXT
        self._write(kind, message)

    def close(self) -> None:
        """Close the connection from the server side."""
        self._write(
            MessageType.CLOSE,
            format_close_message(CloseCode.NORMAL_CLOSURE, "Connection closed"),
        )
        self._fire_event(EVENT_CLOSE, None, None)

    async def run(self) -> None:
        """Pump reads, writes and keep-alives until the connection goes away."""
        tasks = [
            asyncio.create_task(coro) for coro in (self._pong(), self._read(), self._send())
        ]
        try:
            await self._done.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    def _write(self, kind: int, data: Any) -> None:
        self._queue.put_nowait(_Message(kind, data))

    async def _pong(self) -> None:
        while True:
            await asyncio.sleep(PONG_TIMEOUT)
            self._write(MessageType.PONG, b"")

    async def _send(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            message = await self._queue.get()
            if self.conn is None:
                if message.retries <= MAX_SEND_RETRY:
                    loop.call_later(
                        RETRY_SEND_TIMEOUT,
                        self._queue.put_nowait,
                        replace(message, retries=message.retries + 1),
                    )
                continue
            try:
                await self.conn.write_message(message.kind, message.data)
            except Exception as error:
                self._disconnected(error)

    async def _read(self) -> None:
        while True:
            if self.conn is None:
                await asyncio.sleep(READ_TIMEOUT)
                continue
            try:
                kind, data = await self.conn.read_message()
            except Exception as error:
                self._disconnected(error)
                return
            if kind == MessageType.PING:
                self._fire_event(EVENT_PING, None, None)
            elif kind == MessageType.PONG:
                self._fire_event(EVENT_PONG, None, None)
            elif kind == MessageType.CLOSE:
                self._disconnected(None)
                return
            else:
                self._fire_event(EVENT_MESSAGE, _to_bytes(data), None)

    def _disconnected(self, error: Optional[BaseException]) -> None:
        self._fire_event(EVENT_DISCONNECT, None, error)
        with self._lock:
            was_alive, self._alive = self._alive, False
        if was_alive:
            self._done.set()
        if error is not None:
            self._fire_event(EVENT_ERROR, None, error)
        pool.delete(self.uuid)

    def _fire_event(self, event: str, data: Any, error: Optional[BaseException]) -> None:
        for callback in _callbacks(event):
            callback(
                EventPayload(
                    kws=self,
                    name=event,
                    socket_uuid=self.uuid,
                    socket_attributes=self._attributes,
                    error=error,
                    data=data,
                )
            )


def on(event: str, callback: Callable[[EventPayload], Any]) -> None:
    """Register *callback* for *event*."""
    with _listeners_lock:
        _listeners.setdefault(event, []).append(callback)


def emit_to(uuid: str, message: Any, *args: int) -> None:
    """Emit to one pooled connection; raise InvalidConnectionError if it is gone."""
    conn = pool.get(uuid)
    if not pool.contains(uuid) or not conn.is_alive:
        raise InvalidConnectionError()
    conn.emit(message, *args)


def emit_to_list(uuids: List[str], message: Any, *args: int) -> None:
    """Emit to each listed connection, ignoring failures."""
    for target in uuids:
        try:
            emit_to(target, message, *args)
        except InvalidConnectionError:
            pass


def broadcast(message: Any, *args: int) -> None:
    """Emit to every pooled connection."""
    for conn in pool.all().values():
        conn.emit(message, *args)


def fire(event: str, data: Any) -> None:
    """Fire *event* on every pooled connection."""
    for conn in pool.all().values():
        conn._fire_event(event, data, None)


def new(callback: Callable[[Websocket], Any], config: Optional[Config] = None):
    """Return an ASGI endpoint that pools each connection and runs its event loop."""

    async def handler(conn: Conn) -> None:
        kws = Websocket(conn)
        pool.set(kws)
        await _resolve(callback(kws))
        kws._fire_event(EVENT_CONNECT, None, None)
        await kws.run()

    return _new_endpoint(handler, config)