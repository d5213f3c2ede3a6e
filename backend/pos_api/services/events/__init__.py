"""
Order event publishing for the REST API.
"""

from .order_notifier import notify_order_changed

__all__ = ["notify_order_changed"]
