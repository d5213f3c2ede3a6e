"""
Event System for real-time order notifications via Redis pub/sub.

- circuit_breaker.py: Fail fast while Redis is unavailable
- event_types.py: Event names
- event_schema.py: Event dataclass with validation
- channels.py: The shared broadcast channel
- redis_pool.py: Connection pool management
- publisher.py: Core publish_event (single attempt, size-checked)
- domain_publishers.py: Order and diagnostics publishers
"""

from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    get_event_circuit_breaker,
)
from .event_types import (
    ORDER_UPDATED,
    BROADCAST_TEST,
    ALL_EVENT_TYPES,
    MAX_EVENT_SIZE,
)
from .event_schema import Event
from .channels import channel_orders, is_known_channel
from .redis_pool import (
    get_redis_pool,
    get_redis_client,
    close_redis_pool,
)
from .publisher import publish_event
from .domain_publishers import publish_order_event, publish_test_event

__all__ = [
    # Circuit breaker
    "CircuitState",
    "EventCircuitBreaker",
    "get_event_circuit_breaker",
    # Event types
    "ORDER_UPDATED",
    "BROADCAST_TEST",
    "ALL_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    # Schema
    "Event",
    # Channels
    "channel_orders",
    "is_known_channel",
    # Redis pool
    "get_redis_pool",
    "get_redis_client",
    "close_redis_pool",
    # Publishing
    "publish_event",
    "publish_order_event",
    "publish_test_event",
]
