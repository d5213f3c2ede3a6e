"""
Domain Services.

Services hold the business rules and raise AppException subclasses.
They flush but never commit: the router commits once, then publishes.

Usage:
    from pos_api.services.domain import OrderLifecycleService

    service = OrderLifecycleService(db)
    order = service.update_status(order_id, "entregada", actor_id=user_id)
    safe_commit(db)
"""

from .stock_service import ComboAvailabilityResolver, combo_available, current_stock
from .table_service import TableAdminService, TableAvailabilityTracker
from .order_service import (
    OrderLifecycleService,
    build_snapshot,
    format_order_number,
    validate_order_transition,
)
from .inventory_service import InventoryService
from .catalog_service import CatalogService
from .cash_service import CashService
from .currency_service import CurrencyService, convert_from_base, convert_to_base
from .configuration_service import ConfigurationService
from .billing_service import BillingService
from .user_service import UserService
from .supplier_service import SupplierService, format_purchase_order_number
from .report_service import ReportService, stock_status

__all__ = [
    "ComboAvailabilityResolver",
    "combo_available",
    "current_stock",
    "TableAdminService",
    "TableAvailabilityTracker",
    "OrderLifecycleService",
    "build_snapshot",
    "format_order_number",
    "validate_order_transition",
    "InventoryService",
    "CatalogService",
    "CashService",
    "CurrencyService",
    "convert_from_base",
    "convert_to_base",
    "ConfigurationService",
    "BillingService",
    "UserService",
    "SupplierService",
    "format_purchase_order_number",
    "ReportService",
    "stock_status",
]
