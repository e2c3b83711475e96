"""
Bearer tokens for Book Lab callers.

Identity is owned by an external auth service. Book Lab only verifies HS256
tokens signed with the shared BOOKLAB_SECRET_KEY and reads the user id from
the `sub` claim. `create_access_token` mints compatible tokens for the CLI
and tests.
"""

import os
from datetime import UTC, datetime, timedelta
from typing import Any, cast
from uuid import UUID

from jose import jwt

SECRET_KEY = os.environ.get("BOOKLAB_SECRET_KEY", "dev-secret-unsafe")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours


def create_access_token(
    user_id: UUID | str,
    expires_delta: timedelta | None = None,
    now_utc: datetime | None = None,
    extra_claims: dict[str, Any] | None = None,
) -> str:
    current_time = now_utc if now_utc is not None else datetime.now(UTC)
    expire = current_time + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    claims: dict[str, Any] = dict(extra_claims or {})
    claims.update({"sub": str(user_id), "exp": expire})
    encoded: str = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return encoded


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verified claims of a token, or None when the signature or expiry is bad."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return cast(dict[str, Any], payload)
    except jwt.JWTError:
        return None


def token_subject(token: str | None) -> UUID | None:
    """User id carried by a valid token, or None."""
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str):
        return None
    try:
        return UUID(sub)
    except ValueError:
        return None
