"""
Purchasing Models: Supplier, PurchaseOrder, PurchaseOrderItem.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_shared.config.constants import PurchaseOrderStatus
from .base import AuditMixin, Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .user import User


class Supplier(AuditMixin, Base):
    """A vendor the bar buys stock from. `tax_id` is the RUC when known."""

    __tablename__ = "supplier"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tax_id: Mapped[Optional[str]] = mapped_column(String(20), unique=True, nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    contact: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    purchase_orders: Mapped[list["PurchaseOrder"]] = relationship(back_populates="supplier")


class PurchaseOrder(TimestampMixin, Base):
    """
    Stock ordered from a supplier.

    Lines are received in one or more deliveries; each delivery adds an
    entrada movement to the inventory ledger for what actually arrived.
    """

    __tablename__ = "purchase_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[Optional[str]] = mapped_column(String(30), unique=True, nullable=True)
    supplier_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("supplier.id"), nullable=False, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("app_user.id"))
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PurchaseOrderStatus.PENDING, index=True
    )
    ordered_on: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    expected_on: Mapped[Optional[date]] = mapped_column(Date)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    supplier: Mapped["Supplier"] = relationship(back_populates="purchase_orders")
    user: Mapped[Optional["User"]] = relationship()
    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrder(id={self.id}, number={self.order_number}, state={self.state})>"


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("purchase_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("product.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_purchase_item_quantity_positive"),
        CheckConstraint(
            "received_quantity >= 0 AND received_quantity <= quantity",
            name="chk_purchase_item_received_range",
        ),
    )

    purchase_order: Mapped["PurchaseOrder"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()

    @property
    def is_complete(self) -> bool:
        return self.received_quantity >= self.quantity
