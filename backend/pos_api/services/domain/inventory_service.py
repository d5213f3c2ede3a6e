"""
Inventory Ledger Domain Service.

Every change to a product's on-hand quantity is an InventoryMovement row
netted into InventoryStock in the same transaction. Combos are never
stocked directly; their availability derives from their components.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.constants import MovementType
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)
from pos_api.models import InventoryMovement, InventoryStock, Product

logger = get_logger(__name__)


def signed_quantity(movement_type: str, quantity: int) -> int:
    """
    Stock delta of a movement.

    entrada and devolucion always add, salida and sales always subtract,
    ajuste keeps the caller's sign.
    """
    if movement_type in (MovementType.IN, MovementType.RETURN):
        return abs(quantity)
    if movement_type in (MovementType.OUT, MovementType.SALE, MovementType.COMBO_SALE):
        return -abs(quantity)
    if movement_type == MovementType.ADJUSTMENT:
        return quantity
    raise ValidationError(f"Tipo de movimiento inválido: {movement_type}", field="movement_type")


class InventoryService:
    """Stock ledger operations."""

    def __init__(self, db: Session):
        self._db = db

    def get_stock_row(self, product: Product, lock: bool = False) -> InventoryStock:
        """The product's stock row, created at zero when missing."""
        query = select(InventoryStock).where(InventoryStock.product_id == product.id)
        if lock:
            query = query.with_for_update()
        row = self._db.scalar(query)
        if row is None:
            row = InventoryStock(product_id=product.id, quantity=0, min_stock=0)
            self._db.add(row)
            self._db.flush()
        return row

    def apply_movement(
        self,
        product: Product,
        movement_type: str,
        quantity: int,
        actor_id: int | None,
        unit_price: Decimal | None = None,
        note: str | None = None,
        order_id: int | None = None,
        stock_row: InventoryStock | None = None,
        purchase_order_id: int | None = None,
    ) -> InventoryMovement:
        """
        Write a ledger row and net it into stock. Used by manual movements,
        checkout and purchase order receipts.

        Raises:
            InsufficientStockError: The movement would leave negative stock.
        """
        delta = signed_quantity(movement_type, quantity)
        row = stock_row if stock_row is not None else self.get_stock_row(product, lock=True)

        if row.quantity + delta < 0:
            raise InsufficientStockError(product.name, row.quantity, abs(delta))

        row.quantity = row.quantity + delta
        movement = InventoryMovement(
            product_id=product.id,
            quantity=delta,
            movement_type=movement_type,
            unit_price=unit_price,
            user_id=actor_id,
            order_id=order_id,
            purchase_order_id=purchase_order_id,
            note=note,
        )
        self._db.add(movement)
        return movement

    def record_movement(
        self,
        product_id: int,
        quantity: int,
        movement_type: str,
        actor_id: int,
        unit_price: Decimal | None = None,
        note: str | None = None,
        order_id: int | None = None,
    ) -> InventoryMovement:
        """Record a manual stock movement (entrada, salida, ajuste, devolucion)."""
        if movement_type not in MovementType.MANUAL:
            raise ValidationError(
                f"Tipo de movimiento no permitido: {movement_type}", field="movement_type"
            )
        if quantity == 0:
            raise ValidationError("La cantidad no puede ser cero", field="quantity")

        product = self._db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.is_combo:
            raise ValidationError(
                "El stock de un combo se calcula a partir de sus componentes",
                product_id=product_id,
            )

        movement = self.apply_movement(
            product,
            movement_type,
            quantity,
            actor_id,
            unit_price=unit_price,
            note=note,
            order_id=order_id,
        )
        self._db.flush()
        logger.info(
            "Inventory movement recorded",
            product_id=product_id,
            movement_type=movement_type,
            delta=movement.quantity,
        )
        return movement

    def list_movements(
        self,
        product_id: int | None = None,
        movement_type: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
    ) -> list[InventoryMovement]:
        query = select(InventoryMovement).options(selectinload(InventoryMovement.product))
        if product_id is not None:
            query = query.where(InventoryMovement.product_id == product_id)
        if movement_type is not None:
            query = query.where(InventoryMovement.movement_type == movement_type)
        if date_from is not None:
            query = query.where(InventoryMovement.created_at >= date_from)
        if date_to is not None:
            query = query.where(InventoryMovement.created_at <= date_to)
        query = query.order_by(
            InventoryMovement.created_at.desc(), InventoryMovement.id.desc()
        ).limit(limit)
        return list(self._db.scalars(query).all())

    def set_thresholds(
        self,
        product_id: int,
        min_stock: int,
        max_stock: int | None = None,
        location: str | None = None,
    ) -> InventoryStock:
        product = self._db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.is_combo:
            raise ValidationError("Los combos no tienen stock propio", product_id=product_id)
        if min_stock < 0:
            raise ValidationError("El stock mínimo no puede ser negativo", field="min_stock")
        if max_stock is not None and max_stock < min_stock:
            raise ValidationError(
                "El stock máximo no puede ser menor que el mínimo", field="max_stock"
            )

        row = self.get_stock_row(product)
        row.min_stock = min_stock
        row.max_stock = max_stock
        if location is not None:
            row.location = location
        self._db.flush()
        return row
