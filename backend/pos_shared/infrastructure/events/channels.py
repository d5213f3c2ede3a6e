"""
Redis Channel Naming.

All dashboards share one topic; relevance filtering happens client-side.
"""

from __future__ import annotations

from pos_shared.config.settings import settings


def channel_orders() -> str:
    """Channel every order event is published on."""
    return settings.broadcast_channel


def is_known_channel(name: str) -> bool:
    """Whether a client may subscribe to `name`."""
    return name == channel_orders()
