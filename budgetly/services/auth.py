from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from ..config import get_settings
from ..utils import jwt


class AuthenticationError(Exception):
    """Raised when a bearer token cannot be tied to an account."""


def create_access_token(account_id: UUID, *, now: datetime | None = None) -> tuple[str, datetime]:
    """Sign a token whose ``sub`` claim is the account id."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    expires_at = now + timedelta(seconds=settings.auth_access_token_ttl_seconds)
    payload = {
        "sub": str(account_id),
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.auth_secret_key, settings.auth_token_algorithm)
    return token, expires_at


def account_id_from_token(token: str) -> UUID:
    """Verify ``token`` and return the account it was issued for."""
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.auth_secret_key,
            algorithms=[settings.auth_token_algorithm],
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Access token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid authentication credentials") from exc

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token payload is missing subject")
    try:
        return UUID(str(subject))
    except (ValueError, TypeError) as exc:
        raise AuthenticationError("Malformed account identifier in token") from exc
