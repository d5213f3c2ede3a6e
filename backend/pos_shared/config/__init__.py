"""
Configuration module: Settings, logging, constants.
"""

from pos_shared.config.settings import settings, DATABASE_URL
from pos_shared.config.logging import get_logger, setup_logging
from pos_shared.config.constants import (
    Roles,
    OrderStatus,
    TableStatus,
    ORDER_TRANSITIONS,
    Limits,
)

__all__ = [
    # settings
    "settings",
    "DATABASE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "Roles",
    "OrderStatus",
    "TableStatus",
    "ORDER_TRANSITIONS",
    "Limits",
]
