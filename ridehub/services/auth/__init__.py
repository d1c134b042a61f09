from ridehub.services.auth.dependencies import get_current_user_id, resolve_websocket_user
from ridehub.services.auth.jwt import create_access_token, decode_access_token, user_id_from_token

__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_current_user_id",
    "resolve_websocket_user",
    "user_id_from_token",
]
