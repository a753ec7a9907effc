"""Minimal HS256 JSON Web Token helpers for API bearer tokens."""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from collections.abc import Iterable, Mapping, Sequence
from hashlib import sha256
from typing import Any

SUPPORTED_ALGORITHMS = ("HS256",)


class JWTError(Exception):
    """Base class for JWT-related errors."""


class InvalidTokenError(JWTError):
    """Raised when a token cannot be decoded or the signature is invalid."""


class ExpiredSignatureError(JWTError):
    """Raised when a token has expired."""


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as exc:
        raise InvalidTokenError("Token segment is not valid base64") from exc


def _load_segment(segment: str) -> dict[str, Any]:
    try:
        data = json.loads(_b64url_decode(segment))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidTokenError("Token segment is not valid JSON") from exc
    if not isinstance(data, dict):
        raise InvalidTokenError("Token segment must be a JSON object")
    return data


def _signature(signing_input: bytes, secret: str, algorithm: str) -> bytes:
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise InvalidTokenError(f"Unsupported JWT algorithm: {algorithm}")
    return hmac.new(secret.encode("utf-8"), signing_input, sha256).digest()


def _dump(data: Mapping[str, Any]) -> str:
    return _b64url_encode(json.dumps(data, separators=(",", ":"), sort_keys=True).encode())


def encode(payload: Mapping[str, Any], secret: str, algorithm: str = "HS256") -> str:
    signing_input = f"{_dump({'alg': algorithm, 'typ': 'JWT'})}.{_dump(payload)}"
    signature = _signature(signing_input.encode(), secret, algorithm)
    return f"{signing_input}.{_b64url_encode(signature)}"


def decode(
    token: str,
    secret: str,
    algorithms: Sequence[str] | None = None,
    *,
    require: Iterable[str] = ("sub", "exp"),
    leeway: int = 0,
) -> dict[str, Any]:
    """Verify ``token`` and return its claims.

    The signature is checked before any claim is trusted; ``exp`` is compared
    against the current time allowing ``leeway`` seconds of clock skew.
    """

    parts = token.split(".")
    if len(parts) != 3:
        raise InvalidTokenError("Token structure is invalid")
    header_segment, payload_segment, signature_segment = parts

    header = _load_segment(header_segment)
    algorithm = header.get("alg")
    if not algorithm:
        raise InvalidTokenError("Token header missing algorithm")
    if algorithms and algorithm not in algorithms:
        raise InvalidTokenError("Token uses an unexpected signing algorithm")

    expected = _signature(f"{header_segment}.{payload_segment}".encode(), secret, algorithm)
    if not hmac.compare_digest(expected, _b64url_decode(signature_segment)):
        raise InvalidTokenError("Token signature mismatch")

    claims = _load_segment(payload_segment)
    missing = [claim for claim in require if claim not in claims]
    if missing:
        raise InvalidTokenError(f"Token is missing required claims: {', '.join(missing)}")
    if "exp" in claims:
        try:
            expires = int(claims["exp"])
        except (TypeError, ValueError) as exc:
            raise InvalidTokenError("Token expiry is not a timestamp") from exc
        if expires + leeway < int(time.time()):
            raise ExpiredSignatureError("Token has expired")
    return claims


__all__ = ["encode", "decode", "JWTError", "InvalidTokenError", "ExpiredSignatureError"]
