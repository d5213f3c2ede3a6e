"""
Broadcasting router.
"""

from typing import Any

from fastapi import APIRouter, Depends

from pos_shared.config.constants import ALL_STAFF_ROLES, Roles
from pos_shared.config.logging import rest_api_logger as logger
from pos_shared.config.settings import settings
from pos_shared.infrastructure.events import (
    get_redis_client,
    is_known_channel,
    publish_test_event,
)
from pos_shared.security.auth import (
    current_user_context,
    ctx_user_id,
    require_roles,
    sign_channel_token,
)
from pos_shared.utils.exceptions import ForbiddenError
from pos_shared.utils.schemas import (
    BroadcastTestRequest,
    ChannelAuthRequest,
    ChannelAuthResponse,
)
from pos_api.routers._common import ok


router = APIRouter(prefix="/api/broadcasting", tags=["broadcasting"])


@router.post("/auth", response_model=ChannelAuthResponse)
def channel_auth(
    body: ChannelAuthRequest,
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ChannelAuthResponse:
    """
    Exchange a staff access token for a short-lived channel token.

    The gateway accepts it in the `token` query parameter of /ws/ordenes.
    """
    require_roles(ctx, ALL_STAFF_ROLES)
    if not is_known_channel(body.channel_name):
        raise ForbiddenError(f"suscribirse al canal '{body.channel_name}'")

    token = sign_channel_token(ctx_user_id(ctx), ctx.get("role"), body.channel_name)
    return ChannelAuthResponse(
        token=token,
        channel=body.channel_name,
        expires_in=settings.jwt_channel_token_expire_minutes * 60,
    )


@router.post("/test")
async def broadcast_test(
    body: BroadcastTestRequest | None = None,
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Publish a diagnostics message on the orders channel. Administrators only."""
    require_roles(ctx, [Roles.ADMIN])
    message = body.message if body and body.message else "Prueba de conexión"
    redis = await get_redis_client()
    receivers = await publish_test_event(redis, message=message, actor_user_id=ctx_user_id(ctx))
    logger.info("Broadcast test published", receivers=receivers)
    return ok({"channel": settings.broadcast_channel, "receivers": receivers}, "Mensaje de prueba enviado")
