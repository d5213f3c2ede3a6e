"""
Inventory Models: InventoryStock (on-hand quantity) and InventoryMovement (ledger).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .user import User


class InventoryStock(TimestampMixin, Base):
    """Quantity on hand for a non-combo product."""

    __tablename__ = "inventory_stock"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_stock: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(100))

    product: Mapped["Product"] = relationship(back_populates="stock")

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_stock

    def __repr__(self) -> str:
        return f"<InventoryStock(product_id={self.product_id}, quantity={self.quantity})>"


class InventoryMovement(Base):
    """
    Append-only stock ledger entry. `quantity` is signed: positive adds stock.
    """

    __tablename__ = "inventory_movement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    user_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("app_user.id"))
    order_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("bar_order.id", ondelete="SET NULL"), index=True
    )
    purchase_order_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("purchase_order.id", ondelete="SET NULL"), index=True
    )
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_inventory_movement_product_created", "product_id", "created_at"),
    )

    product: Mapped["Product"] = relationship()
    user: Mapped[Optional["User"]] = relationship()

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement(product_id={self.product_id}, "
            f"type={self.movement_type}, quantity={self.quantity})>"
        )
