"""
Redis pub/sub subscriber for the WebSocket gateway.
Listens on the broadcast channel and hands each valid event to a callback.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Awaitable, Callable

from pos_shared.config.settings import settings
from pos_shared.config.logging import get_logger
from pos_shared.infrastructure.events import ALL_EVENT_TYPES, get_redis_pool

logger = get_logger(__name__)


REQUIRED_EVENT_FIELDS = {"type", "data"}

# Backoff between reconnection attempts (seconds)
RECONNECT_BASE_DELAY = 1.0
RECONNECT_MAX_DELAY = 30.0


def validate_event_schema(data: Any) -> tuple[bool, str | None]:
    """
    Validate an incoming event envelope.

    Returns (is_valid, error_message).
    """
    if not isinstance(data, dict):
        return False, "Event must be a dictionary"

    missing = REQUIRED_EVENT_FIELDS - set(data.keys())
    if missing:
        return False, f"Missing required fields: {sorted(missing)}"

    if not isinstance(data["type"], str) or not data["type"]:
        return False, "type must be a non-empty string"

    if not isinstance(data["data"], dict):
        return False, f"data must be an object, got {type(data['data']).__name__}"

    if data["type"] not in ALL_EVENT_TYPES:
        # Forwarded anyway; newer publishers may add event types
        logger.warning("Unknown event type received", event_type=data["type"])

    return True, None


async def handle_raw_message(
    raw: str | bytes,
    on_message: Callable[[dict], Awaitable[None]],
) -> bool:
    """
    Parse, validate and dispatch one pub/sub payload.

    Returns True if the event was dispatched. Never raises for bad input
    or callback failures.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Failed to parse Redis message", error=str(e))
        return False

    is_valid, error = validate_event_schema(data)
    if not is_valid:
        logger.warning("Invalid event schema", error=error)
        return False

    try:
        await on_message(data)
    except Exception as e:
        logger.error("Error handling Redis message", event_type=data.get("type"), error=str(e))
        return False
    return True


async def run_subscriber(
    channel: str,
    on_message: Callable[[dict], Awaitable[None]],
) -> None:
    """
    Subscribe to `channel` and dispatch messages until cancelled.

    Uses the pooled Redis client; the pool manages connection lifecycle.
    """
    redis_pool = await get_redis_pool()
    pubsub = redis_pool.pubsub()
    await pubsub.subscribe(channel)
    logger.info("Redis subscriber started", channel=channel)

    try:
        async for msg in pubsub.listen():
            if msg is None or msg.get("type") != "message":
                continue
            await handle_raw_message(msg["data"], on_message)
    except asyncio.CancelledError:
        logger.info("Redis subscriber cancelled")
        raise
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()


async def run_subscriber_forever(
    on_message: Callable[[dict], Awaitable[None]],
    channel: str | None = None,
    max_attempts: int | None = None,
) -> None:
    """
    Keep a subscription alive, reconnecting with exponential backoff.

    Gives up after `max_attempts` consecutive failures.
    """
    channel = channel or settings.broadcast_channel
    max_attempts = max_attempts or settings.redis_max_reconnect_attempts
    attempts = 0

    while True:
        started = time.monotonic()
        try:
            attempts += 1
            await run_subscriber(channel, on_message)
            attempts = 0
            logger.warning("Redis subscription ended, resubscribing", channel=channel)
            await asyncio.sleep(RECONNECT_BASE_DELAY)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # A subscription that stayed up for a while starts a fresh count
            if time.monotonic() - started > RECONNECT_MAX_DELAY:
                attempts = 1
            if attempts >= max_attempts:
                logger.error(
                    "Redis subscriber giving up",
                    attempts=attempts,
                    error=str(e),
                )
                return
            delay = min(RECONNECT_BASE_DELAY * 2 ** (attempts - 1), RECONNECT_MAX_DELAY)
            logger.warning(
                "Redis subscriber disconnected, retrying",
                attempt=attempts,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)
