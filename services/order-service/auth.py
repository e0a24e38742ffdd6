"""Authentication utilities."""
from typing import Optional
from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict
import logging

from config import API_TOKENS
from monitoring import auth_failures_counter

logger = logging.getLogger(__name__)


class Identity(BaseModel):
    """Authenticated caller, resolved once per request."""
    model_config = ConfigDict(frozen=True)

    user_id: int
    is_admin: bool = False


def verify_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Verify authentication token.

    Args:
        authorization: Authorization header value

    Returns:
        Valid token

    Raises:
        HTTPException: If token is invalid or missing
    """
    if authorization is None:
        auth_failures_counter.add(1, {"reason": "missing_header"})
        logger.warning("Authentication failed: Missing authorization header")
        raise HTTPException(status_code=401, detail="Missing authorization header")

    # Extract token (Bearer <token>)
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        auth_failures_counter.add(1, {"reason": "invalid_format"})
        logger.warning("Authentication failed: Invalid authorization header format", extra={
            "auth_header": authorization[:20] + "..." if len(authorization) > 20 else authorization
        })
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    token = parts[1]
    if token not in API_TOKENS:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise HTTPException(status_code=401, detail="Invalid token")

    return token


def get_identity(token: str = Depends(verify_token)) -> Identity:
    """Resolve the caller's identity from a verified token."""
    return Identity(**API_TOKENS[token])


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """
    Require an administrator identity.

    Raises:
        HTTPException: If the caller is not an administrator
    """
    if not identity.is_admin:
        auth_failures_counter.add(1, {"reason": "not_admin"})
        logger.warning("Authorization failed: Admin role required", extra={
            "user_id": identity.user_id
        })
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return identity
