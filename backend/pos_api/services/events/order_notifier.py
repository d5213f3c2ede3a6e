"""
Real-time order notifier.

Called by routers after a successful commit. Delivery is best-effort:
any failure is logged and swallowed so the already-committed business
operation is never affected. Dashboards recover missed pushes by
polling the REST read endpoints.
"""

from __future__ import annotations

from typing import Any

from pos_shared.config.logging import get_logger
from pos_shared.infrastructure.events import get_redis_client, publish_order_event

logger = get_logger(__name__)


async def notify_order_changed(snapshot: dict[str, Any], ctx: dict[str, Any] | None = None) -> bool:
    """
    Publish an order snapshot on the shared channel.

    Returns True if Redis accepted the message (even with zero subscribers).
    """
    ctx = ctx or {}
    try:
        redis = await get_redis_client()
        await publish_order_event(
            redis_client=redis,
            snapshot=snapshot,
            actor_user_id=int(ctx["sub"]) if ctx.get("sub") else None,
            actor_role=ctx.get("role"),
        )
    except Exception as e:
        logger.error(
            "Failed to publish order event",
            order_id=snapshot.get("id"),
            state=snapshot.get("estado"),
            error=str(e),
        )
        return False
    return True
