"""
Domain-Specific Event Publishing Functions.

High-level functions for publishing order events and diagnostics.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis

from .channels import channel_orders
from .event_schema import Event
from .event_types import ORDER_UPDATED, BROADCAST_TEST
from .publisher import publish_event


async def publish_order_event(
    redis_client: redis.Redis,
    snapshot: dict[str, Any],
    actor_user_id: int | None = None,
    actor_role: str | None = None,
) -> int:
    """
    Publish an order snapshot to every connected dashboard.

    There is a single shared channel; bartender, cashier and waiter
    screens all receive every order event and filter client-side.
    """
    channel = channel_orders()
    event = Event(
        type=ORDER_UPDATED,
        channel=channel,
        data=snapshot,
        actor={"user_id": actor_user_id, "role": actor_role},
    )
    return await publish_event(redis_client, channel, event)


async def publish_test_event(
    redis_client: redis.Redis,
    message: str = "Prueba de conexión",
    actor_user_id: int | None = None,
) -> int:
    """Publish a diagnostics message used to check the push channel end to end."""
    channel = channel_orders()
    event = Event(
        type=BROADCAST_TEST,
        channel=channel,
        data={
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        actor={"user_id": actor_user_id, "role": None},
    )
    return await publish_event(redis_client, channel, event)
