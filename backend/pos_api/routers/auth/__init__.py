"""
Authentication routers - /api/auth/*
Handles login and the current user's profile.
"""

from .routes import router

__all__ = ["router"]
