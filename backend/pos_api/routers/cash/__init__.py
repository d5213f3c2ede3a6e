"""
Cash register routers - /api/cash/*
"""

from .routes import router

__all__ = ["router"]
