"""
Combo / Stock Availability Resolver.

A combo holds no stock of its own: it is sellable exactly when every
component product is active and has at least the quantity the combo
consumes. Nothing here writes or caches; every call reads current rows.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import ProductNotFoundError
from pos_api.models import ComboComponent, InventoryStock, Product

logger = get_logger(__name__)


def _on_hand(product: Product) -> int:
    """Quantity in the product's stock row, 0 when it has none."""
    return product.stock.quantity if product.stock is not None else 0


def combo_available(product: Product) -> bool:
    """
    True when `product` is a combo whose components can all be served.

    A component blocks the combo when its product is missing, inactive,
    or has on-hand stock strictly below the quantity the combo needs.
    A combo without components is never available.
    """
    if not product.is_combo:
        return False

    components = product.combo_components
    if not components:
        return False

    for component in components:
        item = component.product
        if item is None:
            logger.warning(
                "Combo component references a missing product",
                combo_id=product.id,
                product_id=component.product_id,
            )
            return False
        if not item.is_active:
            return False
        if _on_hand(item) < component.quantity:
            return False

    return True


def current_stock(product: Product) -> int:
    """Sellable units: 1/0 for combos, the stock row quantity otherwise."""
    if product.is_combo:
        return 1 if combo_available(product) else 0
    return _on_hand(product)


class ComboAvailabilityResolver:
    """Query-side helpers around combo_available/current_stock."""

    def __init__(self, db: Session):
        self._db = db

    def _load(self, product_id: int) -> Product | None:
        return self._db.scalar(
            select(Product)
            .options(
                selectinload(Product.stock),
                selectinload(Product.combo_components)
                .selectinload(ComboComponent.product)
                .selectinload(Product.stock),
            )
            .where(Product.id == product_id)
        )

    def stock_for(self, product_id: int) -> dict[str, Any]:
        """
        Sellable stock of one product, read from current rows.

        Raises:
            ProductNotFoundError: No such product.
        """
        product = self._load(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        stock = current_stock(product)
        return {
            "product_id": product.id,
            "is_combo": product.is_combo,
            "stock": stock,
            "available": stock > 0,
        }

    def stock_overview(self) -> list[dict[str, Any]]:
        """
        Every active product with its sellable stock and low-stock flag.

        Combos report min_stock 0 and are low exactly when unavailable.
        """
        products = self._db.scalars(
            select(Product)
            .options(
                selectinload(Product.stock),
                selectinload(Product.combo_components)
                .selectinload(ComboComponent.product)
                .selectinload(Product.stock),
            )
            .where(Product.is_active.is_(True))
            .order_by(Product.name.asc(), Product.id.asc())
        ).all()

        overview = []
        for product in products:
            stock = current_stock(product)
            if product.is_combo:
                min_stock = 0
                is_low = stock == 0
            else:
                row: InventoryStock | None = product.stock
                min_stock = row.min_stock if row is not None else 0
                is_low = row.is_low if row is not None else True
            overview.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "code": product.code,
                    "is_combo": product.is_combo,
                    "stock": stock,
                    "min_stock": min_stock,
                    "is_low": is_low,
                }
            )
        return overview
