"""
Socket.IO authentication module.
Validates JWT tokens for socket connections.
"""
from typing import Optional, Tuple
from jose import JWTError, jwt

from draftio.core.config import settings
from draftio.core.security import user_id_from_payload
import logging

logger = logging.getLogger(__name__)


async def authenticate_socket(auth: dict = None, environ: dict = None) -> Tuple[bool, Optional[dict]]:
    """
    Authenticate a Socket.IO connection using JWT.

    Extracts token from:
    1. auth.token (preferred - sent in Socket.IO auth object)
    2. Authorization header (fallback)

    Returns:
        Tuple of (is_authenticated, user_data)
        user_data contains: user_id, username if authenticated
    """
    token = None

    if auth and isinstance(auth, dict):
        token = auth.get("token")

    if not token and environ:
        headers = environ.get("HTTP_AUTHORIZATION", "")
        if headers.startswith("Bearer "):
            token = headers[7:]

    if not token:
        logger.warning("Socket connection rejected: No token provided")
        return False, None

    payload = decode_token_sync(token)
    if payload is None:
        logger.warning("Socket connection rejected: Invalid JWT")
        return False, None

    user_id = user_id_from_payload(payload)
    if not user_id:
        logger.warning("Socket connection rejected: No user_id in token")
        return False, None

    user_data = {
        "user_id": user_id,
        "username": payload.get("username") or user_id,
    }
    logger.info(f"Socket authenticated for user {user_data['username']} (ID: {user_id})")
    return True, user_data


def decode_token_sync(token: str) -> Optional[dict]:
    """
    Synchronous token decode for simple validation.
    Returns None for expired, malformed or wrongly signed tokens.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None
