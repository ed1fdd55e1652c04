# contribware

A set of middleware for Starlette applications:

- **PASETO authentication** (`contribware.paseto_middleware`, `contribware.paseto_config`,
  `contribware.paseto_payload`, `contribware.pasetov2`): reads a v2 PASETO token from a header,
  query parameter, path parameter or cookie, decrypts or verifies it, validates its payload
  and stores the result on the request for later handlers.
- **WebSocket upgrade** (`contribware.websocket`): upgrades a request to a WebSocket connection
  and hands your handler a `Conn` that carries the request's locals, path parameters, query
  values, cookies, headers and client address.
- **Socket.IO-style events** (`contribware.socketio`): keeps a pool of live connections, each
  with its own UUID and attributes, and dispatches `connect`, `message`, `ping`, `pong`,
  `disconnect`, `close`, `error` and custom events to listeners registered with `on`.
- **Swagger UI** (`contribware.swagger`): serves a JSON or YAML OpenAPI document and a
  documentation page for it.

## PASETO authentication

Tokens are created with `create_token(key, data_info, duration, purpose)`, where `purpose`
is a `TokenPurpose`: local tokens are encrypted with a 32-byte symmetric key, public tokens
are signed with an Ed25519 private key. The payload carries `data_info` together with an
audience, a subject, a unique id and issue, not-before and expiry times.

`new(config)` builds the middleware from a `Config`. Either a symmetric key, or both a
public and a private key, must be given; anything else, or a symmetric key of the wrong
length, raises an error when the middleware is built. By default the token is read from
the `Authorization` header, an optional prefix such as `Bearer` is stripped, and the value
returned by the validator is stored under the key `auth-token`.

When a request fails, the default error handler answers:

- `400 Bad Request` for a missing token, a missing prefix or a token that cannot be
  decrypted or verified;
- `401 Unauthorized` for an expired token or a payload that cannot be read.

Custom validation, success and error handlers can be set on the `Config`.

## WebSocket

```python
from contribware import websocket

async def handler(conn):
    await conn.write_json({"message": "hello websocket"})

endpoint = websocket.new(handler, websocket.Config())
```

`Conn.params`, `Conn.query`, `Conn.cookies` and `Conn.headers` each take a key and a default
that is returned when the key is absent. Allowed origins can be restricted in the `Config`;
a request from any other origin is refused with `426 Upgrade Required`. If the handler
raises, the recover handler (by default `default_recover`) sends `{"error": ...}` to the
client instead of dropping the connection.

Helpers for close frames:

```python
websocket.format_close_message(1000, "test")   # b"\x03\xe8test"
```

`is_close_error` and `is_unexpected_close_error` tell whether an error is a `CloseError`
with, or without, one of the given codes.

## Socket.IO-style events

```python
from contribware import socketio

def on_message(payload):
    if payload.data == b"test":
        payload.kws.emit(b"response")

socketio.on("message", on_message)
endpoint = socketio.new(lambda kws: kws.set_attribute("user", "alice"), None)
```

Messages can be sent to one connection (`emit_to`), to a list of connections
(`emit_to_list`), or to all of them (`broadcast`); `fire` raises a custom event on every
connection. Sending to a connection that is gone raises `InvalidConnectionError`.

## Swagger UI

`swagger.new(config)` loads the spec from the configured file path, or from content given
directly in the `Config`, and checks that it parses as JSON or YAML; otherwise it raises
`SwaggerSpecError`. With the defaults the page is served at `/docs` and the spec at
`/swagger.json`, with `Cache-Control: public, max-age=3600`. All other paths pass through
to the application.