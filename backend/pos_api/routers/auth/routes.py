"""
Authentication router.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from pos_shared.config.logging import auth_logger as logger, mask_email
from pos_shared.config.settings import settings
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, ctx_user_id, sign_access_token
from pos_shared.security.rate_limit import LOGIN_RATE, limiter
from pos_shared.utils.schemas import LoginRequest, LoginResponse, UserInfo
from pos_api.services.domain import UserService
from pos_api.routers._common import commit_or_fail


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_RATE)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """
    Authenticate a staff member and return an access token.

    The token carries sub, email, name, role and the role's permission slugs.
    Rate limited per client IP.
    """
    service = UserService(db)
    user = service.authenticate(body.email, body.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales inválidas",
        )

    # authenticate() may have upgraded the password hash
    commit_or_fail(db, "inicio de sesión", user_id=user.id)

    permissions = user.role.permission_slugs if user.role else []
    token = sign_access_token(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role_slug,
        permissions=permissions,
    )
    logger.info("Login succeeded", user_id=user.id, email=mask_email(user.email), role=user.role_slug)

    return LoginResponse(
        access_token=token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserInfo(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role_slug,
            permissions=permissions,
        ),
    )


@router.get("/me", response_model=UserInfo)
def me(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> UserInfo:
    """Profile of the authenticated user, read fresh from the database."""
    user = UserService(db).get_user(ctx_user_id(ctx))
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario inactivo")
    return UserInfo(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role_slug,
        permissions=user.role.permission_slugs if user.role else [],
    )
