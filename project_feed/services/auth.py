"""
Authentication for feed endpoints.

Validates Supabase Auth JWTs and exposes the viewer as a UserContext.
The viewer's user id decides which chat bubbles are drawn as "mine".
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from project_feed.config import get_settings
from project_feed.models.common import UserContext

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AuthError(Exception):
    """Authentication error."""

    def __init__(self, message: str, code: str = "auth_error"):
        self.message = message
        self.code = code
        super().__init__(self.message)


def verify_token(token: str) -> dict:
    """
    Verify and decode a Supabase JWT.

    Without a configured secret, development builds decode the token
    unverified; every other environment refuses it.

    Raises:
        AuthError: If the token is invalid, expired or cannot be checked.
    """
    settings = get_settings()

    if not settings.supabase_jwt_secret:
        if not settings.is_development:
            raise AuthError("JWT secret not configured", "config_error")
        logger.warning("JWT secret not configured, skipping verification in development")
        try:
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            raise AuthError(f"Invalid token format: {e}", "invalid_token")

    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience="authenticated",
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired", "token_expired")
    except jwt.JWTClaimsError as e:
        raise AuthError(f"Invalid token claims: {e}", "invalid_claims")
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}", "invalid_token")


def extract_user_context(payload: dict) -> UserContext:
    """Build a UserContext from a decoded Supabase JWT payload."""
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Token missing user ID (sub claim)", "invalid_token")

    email = payload.get("email") or payload.get("user_metadata", {}).get("email")
    exp = payload.get("exp")
    iat = payload.get("iat")

    return UserContext(
        user_id=user_id,
        email=email,
        role=payload.get("role", "authenticated"),
        token_exp=datetime.fromtimestamp(exp) if exp else None,
        token_iat=datetime.fromtimestamp(iat) if iat else None,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UserContext:
    """
    FastAPI dependency for the authenticated viewer.

    Raises:
        HTTPException: 401 if the token is missing or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = extract_user_context(verify_token(credentials.credentials))
        logger.debug(f"Authenticated user: {user.user_id}")
        return user
    except AuthError as e:
        logger.warning(f"Authentication failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
