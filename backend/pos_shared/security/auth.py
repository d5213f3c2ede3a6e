"""
Authentication and authorization utilities.

Staff authenticate with short JWTs (HS256). A second, short-lived token
type ("channel") authorizes a websocket subscription to the broadcast
channel without handing the gateway the full access token.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Header, HTTPException, status

from pos_shared.config.constants import Roles
from pos_shared.config.settings import (
    JWT_SECRET,
    JWT_ISSUER,
    JWT_AUDIENCE,
    settings,
)
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import InsufficientRoleError, MissingPermissionError

logger = get_logger(__name__)

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_CHANNEL = "channel"


def sign_jwt(
    payload: dict[str, Any],
    ttl_seconds: int | None = None,
    token_type: str = TOKEN_TYPE_ACCESS,
) -> str:
    """
    Sign a JWT token with the given payload.

    Args:
        payload: Claims to include in the token (sub, email, role, permissions...).
        ttl_seconds: Token lifetime in seconds. Defaults by token type.
        token_type: "access" or "channel".

    Returns:
        Signed JWT token string.
    """
    if ttl_seconds is None:
        if token_type == TOKEN_TYPE_CHANNEL:
            ttl_seconds = settings.jwt_channel_token_expire_minutes * 60
        else:
            ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def sign_access_token(user_id: int, email: str, name: str, role: str | None, permissions: list[str]) -> str:
    """Access token for a staff member."""
    return sign_jwt(
        {
            "sub": str(user_id),
            "email": email,
            "name": name,
            "role": role,
            "permissions": permissions,
        }
    )


def sign_channel_token(user_id: int, role: str | None, channel: str) -> str:
    """Short-lived token that only authorizes subscribing to `channel`."""
    return sign_jwt(
        {"sub": str(user_id), "role": role, "channel": channel},
        token_type=TOKEN_TYPE_CHANNEL,
    )


def verify_jwt(
    token: str,
    allowed_types: tuple[str, ...] = (TOKEN_TYPE_ACCESS,),
) -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string.
        allowed_types: Token types accepted by the caller.

    Returns:
        Decoded token claims.

    Raises:
        HTTPException: 401 if the token is invalid, expired or of the wrong type.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expirado",
        )
    except jwt.InvalidTokenError as e:
        logger.warning("JWT validation failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
        )

    try:
        int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido: sujeto ausente o mal formado",
        )

    if payload.get("type") not in allowed_types:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tipo de token no permitido",
        )

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        HTTPException: If header is missing or malformed.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Falta el encabezado Authorization",
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Formato de Authorization inválido. Se esperaba: Bearer <token>",
        )
    return authorization.split(" ", 1)[1].strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency to get the current user context from JWT.

    Usage:
        @router.get("/protected")
        def protected_endpoint(ctx = Depends(current_user_context)):
            user_id = int(ctx["sub"])
            ...

    Returns:
        Dict with: sub (user id), email, name, role, permissions
    """
    token = get_bearer_token(authorization)
    return verify_jwt(token)


def ctx_user_id(ctx: dict[str, Any]) -> int:
    """User id from a verified context."""
    return int(ctx["sub"])


def require_roles(ctx: dict[str, Any], allowed: frozenset[str] | list[str]) -> None:
    """
    Verify that the user holds one of the allowed roles.

    Raises:
        InsufficientRoleError: If the user's role is not allowed.
    """
    if ctx.get("role") not in set(allowed):
        raise InsufficientRoleError(list(allowed), user_id=ctx.get("sub"), role=ctx.get("role"))


def require_permission(ctx: dict[str, Any], permission: str) -> None:
    """
    Verify that the user's role grants a permission slug.
    Administrators hold every permission.

    Raises:
        MissingPermissionError: If the slug is not granted.
    """
    if ctx.get("role") == Roles.ADMIN:
        return
    if permission not in ctx.get("permissions", []):
        raise MissingPermissionError(permission, user_id=ctx.get("sub"), role=ctx.get("role"))


def ws_auth_context(token: str, channel: str) -> dict[str, Any]:
    """
    Authenticate a websocket subscription.

    Accepts a staff access token or a channel token issued for `channel`.

    Raises:
        HTTPException: 401 for invalid tokens, 403 for a token bound to another channel.
    """
    claims = verify_jwt(token, allowed_types=(TOKEN_TYPE_ACCESS, TOKEN_TYPE_CHANNEL))
    if claims.get("type") == TOKEN_TYPE_CHANNEL and claims.get("channel") != channel:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token emitido para otro canal",
        )
    return claims
