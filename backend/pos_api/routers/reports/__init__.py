"""
Report routers - /api/reports/*
"""

from .routes import router

__all__ = ["router"]
