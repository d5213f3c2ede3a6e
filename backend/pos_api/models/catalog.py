"""
Catalog Models: Category, Product, ComboComponent, ProductComplement.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK, TimestampMixin

if TYPE_CHECKING:
    from .inventory import InventoryStock


class Category(AuditMixin, Base):
    """Product category. Its color tags line items on the bar dashboard."""

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    color: Mapped[Optional[str]] = mapped_column(String(7))  # "#ff8800"

    products: Mapped[list["Product"]] = relationship(back_populates="category")


class Product(AuditMixin, Base):
    """
    A sellable item. Combos are products whose stock derives from their components.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    cost: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("category.id"), nullable=True, index=True
    )
    is_combo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="chk_product_price_non_negative"),
        CheckConstraint("cost >= 0", name="chk_product_cost_non_negative"),
    )

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")
    stock: Mapped[Optional["InventoryStock"]] = relationship(
        back_populates="product", uselist=False, cascade="all, delete-orphan"
    )
    combo_components: Mapped[list["ComboComponent"]] = relationship(
        foreign_keys="ComboComponent.combo_id",
        back_populates="combo",
        cascade="all, delete-orphan",
    )
    complements: Mapped[list["ProductComplement"]] = relationship(
        foreign_keys="ProductComplement.product_id",
        back_populates="product",
        cascade="all, delete-orphan",
    )


class ComboComponent(TimestampMixin, Base):
    """One component of a combo: `quantity` units of `product` per combo sold."""

    __tablename__ = "combo_component"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    combo_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("combo_id", "product_id", name="uq_combo_component"),
        CheckConstraint("quantity >= 1", name="chk_combo_component_quantity"),
    )

    combo: Mapped["Product"] = relationship(
        foreign_keys=[combo_id], back_populates="combo_components"
    )
    product: Mapped[Optional["Product"]] = relationship(foreign_keys=[product_id])


class ProductComplement(TimestampMixin, Base):
    """A product offered alongside a principal product (e.g. mixer with a bottle)."""

    __tablename__ = "product_complement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id", ondelete="CASCADE"), nullable=False, index=True
    )
    complement_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("product.id"), nullable=False, index=True
    )
    required_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_mandatory: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_free: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("product_id", "complement_id", name="uq_product_complement"),
        CheckConstraint("required_quantity >= 1", name="chk_complement_quantity"),
    )

    product: Mapped["Product"] = relationship(
        foreign_keys=[product_id], back_populates="complements"
    )
    complement: Mapped[Optional["Product"]] = relationship(foreign_keys=[complement_id])
