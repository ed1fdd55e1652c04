"""PASETO version 2 tokens: ``v2.local`` (XChaCha20-Poly1305) and ``v2.public`` (Ed25519)."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import struct

import nacl.bindings
import nacl.exceptions
import nacl.signing

_LOCAL_HEADER = b"v2.local."
_PUBLIC_HEADER = b"v2.public."
_NONCE_SIZE = 24
_TAG_SIZE = 16
_SIGNATURE_SIZE = 64
_KEY_SIZE = 32
_SEPARATOR = "."
_ASCII = "ascii"


class PasetoError(ValueError):
    """Raised when a token cannot be built, decrypted or verified."""


def _to_bytes(value: bytes | str | None) -> bytes:
    if value is None:
        return b""
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise PasetoError("incorrect token format") from exc


def _pae(*pieces: bytes) -> bytes:
    """Pre-authentication encoding of the given pieces."""

    def le64(n: int) -> bytes:
        return struct.pack("<Q", n & 0x7FFFFFFFFFFFFFFF)

    return le64(len(pieces)) + b"".join(le64(len(p)) + p for p in pieces)


def _split(token: str, header: bytes) -> tuple[bytes, bytes]:
    parts = token.split(".")
    if len(parts) not in (3, 4):
        raise PasetoError("incorrect token format")
    if f"{parts[0]}.{parts[1]}.".encode() != header:
        raise PasetoError("invalid token header")
    body = _b64decode(parts[2])
    footer = _b64decode(parts[3]) if len(parts) == 4 else b""
    return body, footer


def _assemble(header: bytes, body: bytes, footer: bytes) -> str:
    assembled = header.decode(_ASCII) + _b64encode(body)
    if footer:
        assembled += _SEPARATOR + _b64encode(footer)
    return assembled


def encrypt(key: bytes, payload: bytes | str, footer: bytes | str | None = None) -> str:
    """Encrypt *payload* into a ``v2.local`` token."""
    key = bytes(key)
    if len(key) != _KEY_SIZE:
        raise PasetoError(f"symmetric key must be {_KEY_SIZE} bytes")
    message = _to_bytes(payload)
    footer_bytes = _to_bytes(footer)
    nonce_key = os.urandom(_NONCE_SIZE)
    nonce = hashlib.blake2b(message, key=nonce_key, digest_size=_NONCE_SIZE).digest()
    ciphertext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_encrypt(
        message, _pae(_LOCAL_HEADER, nonce, footer_bytes), nonce, key
    )
    return _assemble(_LOCAL_HEADER, nonce + ciphertext, footer_bytes)


def decrypt(token: str, key: bytes) -> bytes:
    """Decrypt a ``v2.local`` token and return its payload."""
    key = bytes(key)
    if len(key) != _KEY_SIZE:
        raise PasetoError(f"symmetric key must be {_KEY_SIZE} bytes")
    body, footer = _split(token, _LOCAL_HEADER)
    if len(body) < _NONCE_SIZE + _TAG_SIZE:
        raise PasetoError("incorrect token format")
    nonce, ciphertext = body[:_NONCE_SIZE], body[_NONCE_SIZE:]
    try:
        return nacl.bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(
            ciphertext, _pae(_LOCAL_HEADER, nonce, footer), nonce, key
        )
    except nacl.exceptions.CryptoError as exc:
        raise PasetoError("invalid token authentication") from exc


def _signing_key(private_key) -> nacl.signing.SigningKey:
    if isinstance(private_key, nacl.signing.SigningKey):
        return private_key
    raw = bytes(private_key)
    if len(raw) not in (32, 64):
        raise PasetoError("private key must be 32 or 64 bytes")
    return nacl.signing.SigningKey(raw[:32])


def _verify_key(public_key) -> nacl.signing.VerifyKey:
    if isinstance(public_key, nacl.signing.VerifyKey):
        return public_key
    raw = bytes(public_key)
    if len(raw) != 32:
        raise PasetoError("public key must be 32 bytes")
    return nacl.signing.VerifyKey(raw)


def sign(private_key, payload: bytes | str, footer: bytes | str | None = None) -> str:
    """Sign *payload* into a ``v2.public`` token."""
    signer = _signing_key(private_key)
    message = _to_bytes(payload)
    footer_bytes = _to_bytes(footer)
    signature = signer.sign(_pae(_PUBLIC_HEADER, message, footer_bytes)).signature
    return _assemble(_PUBLIC_HEADER, message + signature, footer_bytes)


def verify(token: str, public_key) -> bytes:
    """Verify a ``v2.public`` token and return its payload."""
    verifier = _verify_key(public_key)
    body, footer = _split(token, _PUBLIC_HEADER)
    if len(body) < _SIGNATURE_SIZE:
        raise PasetoError("incorrect token format")
    message, signature = body[:-_SIGNATURE_SIZE], body[-_SIGNATURE_SIZE:]
    try:
        verifier.verify(_pae(_PUBLIC_HEADER, message, footer), signature)
    except nacl.exceptions.BadSignatureError as exc:
        raise PasetoError("invalid token signature") from exc
    return message