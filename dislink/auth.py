"""
Authentication for the Dislink API.

Sessions are issued by the identity provider; this module only verifies
them. create_jwt mints an equivalent token for tests and local tooling.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Cookie, Header

from dislink import config
from dislink.errors import AuthInvalid


def create_jwt(user_id: UUID) -> str:
    """
    Create a JWT for a user session.

    Args:
        user_id: User UUID to encode in the token

    Returns:
        Signed JWT string
    """
    expires_at = datetime.now(UTC) + timedelta(hours=config.settings.JWT_EXPIRY_HOURS)
    payload = {
        "sub": str(user_id),
        "exp": expires_at,
        "iat": datetime.now(UTC),
    }
    return jwt.encode(payload, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode and verify a JWT.

    Args:
        token: JWT string to decode

    Returns:
        Decoded payload

    Raises:
        AuthInvalid: If token is invalid or expired
    """
    try:
        # Provider tokens carry an audience we don't pin
        return jwt.decode(
            token,
            config.settings.JWT_SECRET,
            algorithms=[config.settings.JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthInvalid("Session expired. Please sign in again.") from e
    except jwt.InvalidTokenError as e:
        raise AuthInvalid("Invalid session token. Please sign in again.") from e


def _user_id_from_token(token: str) -> UUID:
    payload = decode_jwt(token)
    user_id_str = payload.get("sub")
    if not user_id_str:
        raise AuthInvalid("Invalid session token. Please sign in again.")
    try:
        return UUID(user_id_str)
    except ValueError as e:
        raise AuthInvalid("Invalid session token. Please sign in again.") from e


def _extract_token(session: str | None, authorization: str | None) -> str | None:
    if authorization and authorization.startswith("Bearer "):
        return authorization.removeprefix("Bearer ").strip()
    return session or None


async def get_current_user_id(
    session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> UUID:
    """
    FastAPI dependency returning the authenticated user's id.

    Tries the Bearer header first, then the session cookie.

    Raises:
        AuthInvalid: Missing, malformed, or expired token
    """
    token = _extract_token(session, authorization)
    if not token:
        raise AuthInvalid("Not authenticated. Please sign in.")
    return _user_id_from_token(token)

