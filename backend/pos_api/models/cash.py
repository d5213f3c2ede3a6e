"""
Cash Register Models: CashRegister (a shift on a physical till) and CashMovement.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_shared.config.constants import CashRegisterStatus
from .base import Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .user import User


class CashRegister(TimestampMixin, Base):
    """One opening-to-closing session of register 1, 2 or 3."""

    __tablename__ = "cash_register"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    register_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("app_user.id"), nullable=False, index=True
    )
    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    opening_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    closing_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    expected_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    difference: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CashRegisterStatus.OPEN, index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_cash_register_number_state", "register_number", "state"),
    )

    user: Mapped["User"] = relationship()
    movements: Mapped[list["CashMovement"]] = relationship(
        back_populates="cash_register", cascade="all, delete-orphan", order_by="CashMovement.id"
    )

    @property
    def is_open(self) -> bool:
        return self.state == CashRegisterStatus.OPEN


class CashMovement(Base):
    """Money in (ingreso) or out (egreso) of an open register."""

    __tablename__ = "cash_movement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    cash_register_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("cash_register.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("app_user.id"), nullable=False)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    concept: Mapped[str] = mapped_column(String(255), nullable=False)
    order_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("bar_order.id", ondelete="SET NULL"), nullable=True
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    cash_register: Mapped["CashRegister"] = relationship(back_populates="movements")
    user: Mapped["User"] = relationship()
