"""
Order routers - /api/orders/*
Order lifecycle: creation, state changes, bartender assignment, paid flag.
"""

from .routes import router

__all__ = ["router"]
