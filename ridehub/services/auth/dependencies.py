from typing import Optional

from fastapi import Depends, WebSocket
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ridehub.common.exceptions import AuthenticationError
from ridehub.services.auth.jwt import user_id_from_token

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Resolves the caller's user id from the Bearer token.

    Raises:
        AuthenticationError: token missing, expired or without `sub`
    """
    if credentials is None:
        raise AuthenticationError("Authorization token required")

    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise AuthenticationError("Could not validate credentials")
    return user_id


def resolve_websocket_user(websocket: WebSocket) -> Optional[str]:
    """
    Handshake identity: `?token=` query parameter first, then the
    Authorization header. None when neither carries a valid token.
    """
    token = websocket.query_params.get("token")
    if not token:
        header = websocket.headers.get("authorization", "")
        scheme, _, value = header.partition(" ")
        if scheme.lower() == "bearer":
            token = value.strip()
    return user_id_from_token(token)
