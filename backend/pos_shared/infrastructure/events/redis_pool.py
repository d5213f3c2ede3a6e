"""
Process-wide async Redis client.

The REST API publishes order events through it and the gateway
subscribes through it. The client owns a connection pool sized by
`redis_pool_max_connections`.
"""

from __future__ import annotations

import redis.asyncio as redis

from pos_shared.config.settings import settings
from pos_shared.config.logging import get_logger

logger = get_logger(__name__)

_client: redis.Redis | None = None


def _new_client() -> redis.Redis:
    return redis.from_url(
        settings.redis_url,
        decode_responses=True,
        max_connections=settings.redis_pool_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        health_check_interval=30,
    )


async def get_redis_pool() -> redis.Redis:
    """
    The shared client, created on first use.

    from_url does no I/O, so there is no await between the check and the
    assignment and no lock is needed within one event loop.
    """
    global _client
    if _client is None:
        _client = _new_client()
        logger.info("Redis client created", max_connections=settings.redis_pool_max_connections)
    return _client


async def get_redis_client() -> redis.Redis:
    """Same client as get_redis_pool; publishers read better with this name."""
    return await get_redis_pool()


async def close_redis_pool() -> None:
    """Drop the shared client. Safe to call when it was never created."""
    global _client
    client, _client = _client, None
    if client is not None:
        await client.aclose()
        logger.info("Redis client closed")
