"""
Admin routers - /api/admin/*
Users, roles and permissions.
"""

from .routes import router

__all__ = ["router"]
