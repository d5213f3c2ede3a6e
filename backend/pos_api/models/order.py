"""
Order Models: Order, OrderItem, OrderHistory.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_shared.config.constants import OrderStatus
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .catalog import Product
    from .table import Table
    from .user import User


class Order(TimestampMixin, Base):
    """
    A customer order, optionally tied to a table.

    `version` is bumped on every UPDATE; a write based on a stale read
    fails with StaleDataError instead of silently overwriting.
    """

    __tablename__ = "bar_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[Optional[str]] = mapped_column(String(30), unique=True, nullable=True)
    table_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("venue_table.id"), nullable=True, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id"), nullable=False, index=True
    )
    bartender_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("app_user.id"), nullable=True, index=True
    )
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING, index=True
    )
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_bar_order_table_state", "table_id", "state"),
        CheckConstraint("subtotal >= 0", name="chk_order_subtotal_non_negative"),
    )

    table: Mapped[Optional["Table"]] = relationship(back_populates="orders")
    user: Mapped["User"] = relationship(foreign_keys=[user_id])
    bartender: Mapped[Optional["User"]] = relationship(foreign_keys=[bartender_id])
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    history: Mapped[list["OrderHistory"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderHistory.id"
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in OrderStatus.TERMINAL

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, state={self.state}, version={self.version})>"


class OrderItem(Base):
    """A line of an order. Free complement lines carry a zero subtotal."""

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("bar_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    is_free_complement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    complement_of_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=True
    )

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="chk_order_item_quantity_positive"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship(foreign_keys=[product_id])
    complement_of: Mapped[Optional["Product"]] = relationship(foreign_keys=[complement_of_id])


class OrderHistory(Base):
    """Append-only audit trail of an order."""

    __tablename__ = "order_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("bar_order.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[Optional[int]] = mapped_column(BigIntPK, ForeignKey("app_user.id"))
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    detail: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    order: Mapped["Order"] = relationship(back_populates="history")
    user: Mapped[Optional["User"]] = relationship()

    def __repr__(self) -> str:
        return f"<OrderHistory(order_id={self.order_id}, action={self.action})>"
