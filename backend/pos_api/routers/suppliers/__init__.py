"""
Purchasing routers - /api/suppliers/* and /api/purchase-orders/*
"""

from .routes import router

__all__ = ["router"]
