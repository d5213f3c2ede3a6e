"""
Configuration Models: Currency and typed key-value Setting.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pos_shared.config.constants import SettingType
from .base import Base, BigIntPK, TimestampMixin


class Currency(TimestampMixin, Base):
    """
    A currency prices can be shown in.

    `exchange_rate` is units of this currency per unit of the base currency.
    At most one row has is_default set.
    """

    __tablename__ = "currency"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    symbol: Mapped[str] = mapped_column(String(5), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("1"))
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    decimals: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    decimal_separator: Mapped[str] = mapped_column(String(1), nullable=False, default=".")
    thousands_separator: Mapped[str] = mapped_column(String(1), nullable=False, default=",")

    def __repr__(self) -> str:
        return f"<Currency(code={self.code}, rate={self.exchange_rate})>"


class Setting(TimestampMixin, Base):
    """Application setting stored as text and cast by `value_type` on read."""

    __tablename__ = "setting"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False, default=SettingType.STRING)
    description: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Setting(key={self.key}, type={self.value_type})>"
