"""
Catalog routers - categories, products, combos, complements and stock.
"""

from .routes import router

__all__ = ["router"]
