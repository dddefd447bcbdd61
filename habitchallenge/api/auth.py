"""
habitchallenge.api.auth — Bearer Token Identity
================================================

Tokens are issued by the external auth collaborator and signed with the
shared ``JWT_SECRET`` (HS256).  The only claim the API relies on is
``sub``: the caller's user id.

The secret is validated when this module is imported, so the API refuses
to start with a missing or weak secret.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import jwt
from jwt.exceptions import InvalidTokenError

_WEAK_SECRETS = frozenset({
    "habitchallenge-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=12)


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


def create_access_token(user_id: int, ttl: timedelta = TOKEN_TTL) -> str:
    payload = {"sub": str(user_id), "exp": datetime.now(UTC) + ttl}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_user_id(token: str) -> int:
    """Return the ``sub`` claim as an int.

    Raises
    ------
    InvalidTokenError
        Bad signature, expired token, or a ``sub`` that is not a user id.
    """
    payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError("Token has no usable subject") from exc
