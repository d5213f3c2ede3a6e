"""
Billing routers - /api/billing/*
"""

from .routes import router

__all__ = ["router"]
