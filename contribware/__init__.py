"""Starlette middleware for PASETO authentication, WebSockets, Socket.IO-style events and Swagger UI."""

__version__ = "0.1.0"

__all__ = [
    "paseto_config",
    "paseto_middleware",
    "paseto_payload",
    "pasetov2",
    "socketio",
    "swagger",
    "websocket",
]