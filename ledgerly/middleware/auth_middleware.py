"""
JWT authentication dependencies.

Access tokens are issued by the managed auth provider and verified locally
(HS256, shared secret, ``authenticated`` audience). The token is read from
the ``Authorization: Bearer`` header, falling back to the session cookie
set by the web client.

Provides:
- get_current_user: decoded token payload, 401 if absent or invalid.
- get_current_user_id: the ``sub`` claim as a UUID.

Usage in endpoints:
    @router.get("/protected")
    async def protected_route(user_id: uuid.UUID = Depends(get_current_user_id)):
        ...
"""

import logging
import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ledgerly.config import Settings, get_settings
from ledgerly.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Missing header is not an error here; the cookie may carry the token instead
_bearer_scheme = HTTPBearer(auto_error=False)


# ─── Core Token Verification ────────────────────────────────


def _decode_token(token: str, settings: Settings) -> dict:
    """
    Decode and verify a JWT token.

    Raises:
        AuthenticationError if the token is invalid, expired, or has no subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError("Unauthorized") from e

    if not payload.get("sub"):
        raise AuthenticationError("Unauthorized")
    return payload


def _extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
) -> str | None:
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name) or None


# ─── FastAPI Dependencies ────────────────────────────────────


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> dict:
    """
    FastAPI dependency: extract and verify the session's access token.

    Returns the decoded payload (``sub``, ``email``, ``aud``, ``exp``, ...).

    Raises:
        AuthenticationError (401) if no token is present or it fails verification.
    """
    token = _extract_token(request, credentials, settings)
    if token is None:
        raise AuthenticationError("Unauthorized")
    return _decode_token(token, settings)


async def get_current_user_id(user: dict = Depends(get_current_user)) -> uuid.UUID:
    """FastAPI dependency: the authenticated user's id."""
    try:
        return uuid.UUID(str(user["sub"]))
    except (KeyError, ValueError) as e:
        raise AuthenticationError("Unauthorized") from e
