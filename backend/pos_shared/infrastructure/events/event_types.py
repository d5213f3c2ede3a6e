"""
Event Type Constants.

Event names published on the broadcast channel.
"""

from pos_shared.config.settings import settings

# =============================================================================
# Order events
# =============================================================================

# Every change dashboards must re-render (creation, state, bartender, payment)
ORDER_UPDATED = settings.broadcast_event_name

# =============================================================================
# Diagnostics
# =============================================================================

# Connectivity check, carries no business data
BROADCAST_TEST = settings.broadcast_test_event_name

ALL_EVENT_TYPES = frozenset({ORDER_UPDATED, BROADCAST_TEST})

# Maximum serialized event size (bytes)
MAX_EVENT_SIZE = 64 * 1024
