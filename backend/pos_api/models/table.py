"""
Table Model: the venue's numbered tables and their occupancy state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_shared.config.constants import TableStatus
from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .order import Order


class Table(AuditMixin, Base):
    """
    A table in the venue.

    `state` is written only through the table availability tracker.
    The number is unique among tables; the admin service enforces it.
    """

    __tablename__ = "venue_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    state: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TableStatus.AVAILABLE, index=True
    )
    location: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("capacity >= 1", name="chk_table_capacity_positive"),
    )

    orders: Mapped[list["Order"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<Table(id={self.id}, number={self.number}, state={self.state})>"
