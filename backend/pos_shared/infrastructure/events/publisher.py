"""
Core Event Publishing with validation.

Delivery is at-most-once: a publish is attempted once and never retried.
Callers decide whether a failure matters (order notifications log and move on).
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from pos_shared.config.settings import settings
from pos_shared.config.logging import get_logger
from .event_types import MAX_EVENT_SIZE
from .event_schema import Event
from .circuit_breaker import get_event_circuit_breaker

logger = get_logger(__name__)


def _validate_event_size(event_json: str, event_type: str) -> None:
    """Raise ValueError if the serialized event exceeds MAX_EVENT_SIZE."""
    size = len(event_json.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(
            f"Event {event_type} exceeds max size: {size} > {MAX_EVENT_SIZE} bytes"
        )


async def publish_event(
    redis_client: redis.Redis,
    channel: str,
    event: Event,
) -> int:
    """
    Publish an event to a Redis channel.

    Args:
        redis_client: Async Redis client.
        channel: Redis channel name.
        event: Event to publish.

    Returns:
        Number of subscribers that received the message.
        Returns 0 if the circuit breaker is open (fail-fast).

    Raises:
        ValueError: If the event is too large.
        Exception: Whatever the Redis client raised (timeouts included).
    """
    event_json = event.to_json()
    _validate_event_size(event_json, event.type)

    circuit_breaker = get_event_circuit_breaker()
    if not circuit_breaker.can_execute():
        logger.warning(
            "Event publish skipped - circuit breaker open",
            channel=channel,
            event_type=event.type,
        )
        return 0

    try:
        receivers = await asyncio.wait_for(
            redis_client.publish(channel, event_json),
            timeout=settings.redis_publish_timeout,
        )
    except Exception as e:
        circuit_breaker.record_failure()
        logger.error(
            "Redis publish failed",
            channel=channel,
            event_type=event.type,
            error=str(e),
        )
        raise

    circuit_breaker.record_success()
    logger.debug("Event published", channel=channel, event_type=event.type, receivers=receivers)
    return receivers
