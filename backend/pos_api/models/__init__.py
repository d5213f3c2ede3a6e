"""
SQLAlchemy ORM models for the bar POS.

Structure:
- base.py: Base class, BigIntPK and mixins
- user.py: User, Role, Permission
- catalog.py: Category, Product, ComboComponent, ProductComplement
- inventory.py: InventoryStock, InventoryMovement
- table.py: Table
- order.py: Order, OrderItem, OrderHistory
- cash.py: CashRegister, CashMovement
- configuration.py: Currency, Setting
- supplier.py: Supplier, PurchaseOrder, PurchaseOrderItem
"""

from .base import AuditMixin, Base, BigIntPK, TimestampMixin
from .user import Permission, Role, User, role_permission
from .catalog import Category, ComboComponent, Product, ProductComplement
from .inventory import InventoryMovement, InventoryStock
from .table import Table
from .order import Order, OrderHistory, OrderItem
from .cash import CashMovement, CashRegister
from .configuration import Currency, Setting
from .supplier import PurchaseOrder, PurchaseOrderItem, Supplier

__all__ = [
    "Base",
    "BigIntPK",
    "TimestampMixin",
    "AuditMixin",
    "Permission",
    "Role",
    "User",
    "role_permission",
    "Category",
    "Product",
    "ComboComponent",
    "ProductComplement",
    "InventoryStock",
    "InventoryMovement",
    "Table",
    "Order",
    "OrderItem",
    "OrderHistory",
    "CashRegister",
    "CashMovement",
    "Currency",
    "Setting",
    "Supplier",
    "PurchaseOrder",
    "PurchaseOrderItem",
]
