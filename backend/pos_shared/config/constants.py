"""
Centralized constants for the backend application.

Usage:
    from pos_shared.config.constants import OrderStatus, ORDER_TRANSITIONS

    if order.state in OrderStatus.OPEN:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """Role slugs seeded for the venue."""

    ADMIN: Final[str] = "administrador"
    BARTENDER: Final[str] = "bartender"
    WAITER: Final[str] = "mesero"
    CASHIER: Final[str] = "cajero"

    ALL: Final[list[str]] = [ADMIN, BARTENDER, WAITER, CASHIER]


# Role groups for common access patterns
ORDER_TAKING_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.WAITER, Roles.CASHIER})
ORDER_STATUS_ROLES: Final[frozenset[str]] = frozenset(
    {Roles.ADMIN, Roles.BARTENDER, Roles.WAITER, Roles.CASHIER}
)
BAR_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.BARTENDER})
CASH_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.CASHIER})
ALL_STAFF_ROLES: Final[frozenset[str]] = frozenset(Roles.ALL)


class Permissions:
    """Permission slugs checked by the admin endpoints."""

    MANAGE_TABLES: Final[str] = "gestionar_mesas"
    MANAGE_PRODUCTS: Final[str] = "gestionar_productos"
    MANAGE_INVENTORY: Final[str] = "gestionar_inventario"
    MANAGE_USERS: Final[str] = "gestionar_usuarios"
    MANAGE_ROLES: Final[str] = "gestionar_roles"
    MANAGE_SETTINGS: Final[str] = "gestionar_configuracion"
    MANAGE_CASH: Final[str] = "gestionar_caja"
    DELETE_ORDERS: Final[str] = "eliminar_ordenes"

    ALL: Final[dict[str, str]] = {
        MANAGE_TABLES: "Gestionar mesas",
        MANAGE_PRODUCTS: "Gestionar productos y combos",
        MANAGE_INVENTORY: "Gestionar inventario",
        MANAGE_USERS: "Gestionar usuarios",
        MANAGE_ROLES: "Gestionar roles y permisos",
        MANAGE_SETTINGS: "Gestionar configuración y monedas",
        MANAGE_CASH: "Abrir y cerrar caja",
        DELETE_ORDERS: "Eliminar órdenes canceladas",
    }


# Default permission set per seeded role
ROLE_PERMISSIONS: Final[dict[str, list[str]]] = {
    Roles.ADMIN: list(Permissions.ALL),
    Roles.BARTENDER: [],
    Roles.WAITER: [],
    Roles.CASHIER: [Permissions.MANAGE_CASH],
}


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order lifecycle states."""

    PENDING: Final[str] = "pendiente"
    IN_PROGRESS: Final[str] = "en_proceso"
    READY: Final[str] = "lista"
    DELIVERED: Final[str] = "entregada"
    CANCELED: Final[str] = "cancelada"

    ALL: Final[list[str]] = [PENDING, IN_PROGRESS, READY, DELIVERED, CANCELED]
    # Shown on bartender/cashier dashboards
    ACTIVE: Final[list[str]] = [PENDING, IN_PROGRESS, READY]
    # Keep a table from being released
    OPEN: Final[list[str]] = [PENDING, IN_PROGRESS]
    # Trigger a table release
    RELEASING: Final[list[str]] = [DELIVERED, CANCELED]
    TERMINAL: Final[list[str]] = [DELIVERED, CANCELED]


# Forward moves may skip steps; nothing moves backwards or leaves a terminal state
ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderStatus.PENDING: [
        OrderStatus.IN_PROGRESS, OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CANCELED,
    ],
    OrderStatus.IN_PROGRESS: [OrderStatus.READY, OrderStatus.DELIVERED, OrderStatus.CANCELED],
    OrderStatus.READY: [OrderStatus.DELIVERED, OrderStatus.CANCELED],
    OrderStatus.DELIVERED: [],
    OrderStatus.CANCELED: [],
}

# Dashboard ordering: ready first, then in progress, then pending
ORDER_DASHBOARD_PRIORITY: Final[dict[str, int]] = {
    OrderStatus.READY: 0,
    OrderStatus.IN_PROGRESS: 1,
    OrderStatus.PENDING: 2,
}


class TableStatus:
    """Table occupancy states."""

    AVAILABLE: Final[str] = "disponible"
    OCCUPIED: Final[str] = "ocupada"
    RESERVED: Final[str] = "reservada"

    ALL: Final[list[str]] = [AVAILABLE, OCCUPIED, RESERVED]


class OrderHistoryAction:
    """Action types written to the order history."""

    CREATED: Final[str] = "creacion"
    UPDATED: Final[str] = "actualizacion"
    PAID: Final[str] = "pago"
    CHARGED: Final[str] = "cobro"


class PaymentMethod:
    """Accepted payment methods."""

    CASH: Final[str] = "efectivo"
    CARD: Final[str] = "tarjeta"
    TRANSFER: Final[str] = "transferencia"
    YAPE: Final[str] = "yape"
    OTHER: Final[str] = "otro"

    ALL: Final[list[str]] = [CASH, CARD, TRANSFER, YAPE, OTHER]


class MovementType:
    """Inventory ledger movement types."""

    IN: Final[str] = "entrada"
    OUT: Final[str] = "salida"
    ADJUSTMENT: Final[str] = "ajuste"
    SALE: Final[str] = "venta"
    RETURN: Final[str] = "devolucion"
    COMBO_SALE: Final[str] = "venta_combo"

    ALL: Final[list[str]] = [IN, OUT, ADJUSTMENT, SALE, RETURN, COMBO_SALE]
    # Types an operator may record by hand; sales come from checkout
    MANUAL: Final[list[str]] = [IN, OUT, ADJUSTMENT, RETURN]


class PurchaseOrderStatus:
    """Supplier purchase order states."""

    PENDING: Final[str] = "pendiente"
    RECEIVED: Final[str] = "recibido"
    PARTIAL: Final[str] = "parcial"
    CANCELED: Final[str] = "cancelado"

    ALL: Final[list[str]] = [PENDING, RECEIVED, PARTIAL, CANCELED]
    # Goods may still arrive
    RECEIVABLE: Final[list[str]] = [PENDING, PARTIAL]
    # Nothing was received, so no ledger rows point at the order
    DELETABLE: Final[list[str]] = [PENDING, CANCELED]


class StockStatus:
    """Labels of the daily stock report."""

    NORMAL: Final[str] = "Normal"
    LOW: Final[str] = "Bajo"
    CRITICAL: Final[str] = "Crítico"
    OUT: Final[str] = "Agotado"
    UNTRACKED: Final[str] = "Sin control"

    ALL: Final[list[str]] = [NORMAL, LOW, CRITICAL, OUT, UNTRACKED]


class CashRegisterStatus:
    """Cash register states."""

    OPEN: Final[str] = "abierta"
    CLOSED: Final[str] = "cerrada"


class CashMovementType:
    """Cash register movement types."""

    INCOME: Final[str] = "ingreso"
    EXPENSE: Final[str] = "egreso"

    ALL: Final[list[str]] = [INCOME, EXPENSE]


class SettingType:
    """Value types of the typed key-value settings table."""

    STRING: Final[str] = "string"
    INTEGER: Final[str] = "integer"
    BOOLEAN: Final[str] = "boolean"
    JSON: Final[str] = "json"

    ALL: Final[list[str]] = [STRING, INTEGER, BOOLEAN, JSON]


class SettingKeys:
    """Well-known setting keys."""

    THEME: Final[str] = "tema"
    DEFAULT_CURRENCY: Final[str] = "moneda_predeterminada"


# =============================================================================
# Limits and defaults
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_PASSWORD_LENGTH: Final[int] = 8
    CASH_REGISTER_NUMBERS: Final[tuple[int, ...]] = (1, 2, 3)
    MAX_ORDER_ITEMS: Final[int] = 100
    MAX_ITEM_QUANTITY: Final[int] = 999
    DEFAULT_LIST_LIMIT: Final[int] = 50
    MAX_LIST_LIMIT: Final[int] = 500
    MAX_PURCHASE_QUANTITY: Final[int] = 100000
    DASHBOARD_RECENT_SALES: Final[int] = 10
    DASHBOARD_TOP_PRODUCTS: Final[int] = 5


BASE_CURRENCY_CODE: Final[str] = "PEN"
DEFAULT_CATEGORY_COLOR: Final[str] = "#000000"
THEMES: Final[list[str]] = ["light", "dark", "system"]


# =============================================================================
# Validation helpers
# =============================================================================


def validate_order_status(status: str) -> bool:
    """Validate that an order state is one of the known values."""
    return status in OrderStatus.ALL


def validate_table_status(status: str) -> bool:
    """Validate that a table state is one of the known values."""
    return status in TableStatus.ALL


def is_valid_order_transition(current_status: str, new_status: str) -> bool:
    """
    Validate that an order state transition is allowed.

    Returns True if transition is valid, False otherwise.
    """
    allowed = ORDER_TRANSITIONS.get(current_status, [])
    return new_status in allowed


def get_allowed_order_transitions(current_status: str) -> list[str]:
    """States an order in `current_status` may move to."""
    return list(ORDER_TRANSITIONS.get(current_status, []))
