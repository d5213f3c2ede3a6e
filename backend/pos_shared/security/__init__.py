"""
Security module: Authentication, password hashing, rate limiting.
"""

from pos_shared.security.auth import (
    sign_jwt,
    sign_access_token,
    sign_channel_token,
    verify_jwt,
    get_bearer_token,
    current_user_context,
    ctx_user_id,
    require_roles,
    require_permission,
    ws_auth_context,
)
from pos_shared.security.password import hash_password, verify_password, needs_rehash
from pos_shared.security.rate_limit import limiter, rate_limit_exceeded_handler, LOGIN_RATE

__all__ = [
    "sign_jwt",
    "sign_access_token",
    "sign_channel_token",
    "verify_jwt",
    "get_bearer_token",
    "current_user_context",
    "ctx_user_id",
    "require_roles",
    "require_permission",
    "ws_auth_context",
    "hash_password",
    "verify_password",
    "needs_rehash",
    "limiter",
    "rate_limit_exceeded_handler",
    "LOGIN_RATE",
]
