"""
JWT access tokens.

The `sub` claim carries the user id; HTTP routes and the WebSocket gateway
both resolve identity from it.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ridehub.config import settings


def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: Stored in the `sub` claim
        expires_delta: Optional custom lifetime
        extra_claims: Additional claims merged into the payload

    Returns:
        Encoded JWT string
    """
    to_encode: Dict[str, Any] = dict(extra_claims or {})

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.auth.JWT_EXPIRE_MINUTES)

    to_encode.update({"sub": str(user_id), "exp": expire})
    return jwt.encode(to_encode, settings.auth.JWT_SECRET, algorithm=settings.auth.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate an access token.

    Returns:
        The payload if the signature and expiry are valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.auth.JWT_SECRET, algorithms=[settings.auth.JWT_ALGORITHM])
    except JWTError:
        return None


def user_id_from_token(token: Optional[str]) -> Optional[str]:
    """The `sub` claim of a valid token, or None."""
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None
