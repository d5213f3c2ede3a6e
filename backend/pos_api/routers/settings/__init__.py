"""
Settings routers - /api/currencies/* and /api/settings/*
"""

from .routes import router

__all__ = ["router"]
