"""
Shared Pydantic schemas used across the application.

Request bodies use English field names. The broadcast snapshot (see
order_service.build_snapshot) keeps the Spanish keys the dashboards read.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, EmailStr


# =============================================================================
# Common Types
# =============================================================================

OrderState = Literal["pendiente", "en_proceso", "lista", "entregada", "cancelada"]
TableState = Literal["disponible", "ocupada", "reservada"]
PaymentMethodName = Literal["efectivo", "tarjeta", "transferencia", "yape", "otro"]
ManualMovementType = Literal["entrada", "salida", "ajuste", "devolucion"]
CashMovementName = Literal["ingreso", "egreso"]
SettingTypeName = Literal["string", "integer", "boolean", "json"]
PurchaseOrderState = Literal["pendiente", "recibido", "parcial", "cancelado"]

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# =============================================================================
# Authentication Schemas
# =============================================================================


class LoginRequest(BaseModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(min_length=1)


class UserInfo(BaseModel):
    """Basic user information included in auth responses."""

    id: int
    name: str
    email: str
    role: str | None = None
    permissions: list[str] = []


class LoginResponse(BaseModel):
    """Login response with JWT token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


class ChannelAuthRequest(BaseModel):
    """Request a channel token for the websocket gateway."""

    channel_name: str = Field(default="ordenes", max_length=100)


class ChannelAuthResponse(BaseModel):
    token: str
    channel: str
    expires_in: int


class BroadcastTestRequest(BaseModel):
    message: str | None = Field(default=None, max_length=200)


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemInput(BaseModel):
    """A line of a new order. The unit price always comes from the catalog."""

    product_id: int
    quantity: int = Field(ge=1, le=999)
    notes: str | None = Field(default=None, max_length=255)
    is_free_complement: bool = False
    # Principal product this free complement goes with
    complement_of_id: int | None = None


class OrderCreateRequest(BaseModel):
    """Request to create an order. table_id is omitted for take-away orders."""

    table_id: int | None = None
    bartender_id: int | None = None
    notes: str | None = Field(default=None, max_length=500)
    items: list[OrderItemInput] = Field(min_length=1, max_length=100)


class UpdateOrderStatusRequest(BaseModel):
    """Request to move an order to a new state."""

    state: OrderState
    # Version the client last read; omitted means "whatever is current"
    version: int | None = Field(default=None, ge=1)


class AssignBartenderRequest(BaseModel):
    bartender_id: int


class OrderItemOutput(BaseModel):
    id: int
    product_id: int
    product_name: str
    category_name: str | None = None
    quantity: int
    unit_price: float
    subtotal: float
    notes: str | None = None
    is_free_complement: bool = False
    complement_of_id: int | None = None


class OrderOutput(BaseModel):
    """Order with its lines, as returned by the REST API."""

    id: int
    order_number: str | None = None
    table_id: int | None = None
    table_number: int | None = None
    user_id: int
    user_name: str | None = None
    bartender_id: int | None = None
    bartender_name: str | None = None
    state: OrderState
    subtotal: float
    tax: float
    discount: float
    total: float
    payment_method: str | None = None
    paid: bool
    notes: str | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    items: list[OrderItemOutput] = []


class OrderHistoryOutput(BaseModel):
    id: int
    order_id: int
    user_id: int | None = None
    user_name: str | None = None
    action: str
    detail: str | None = None
    created_at: datetime | None = None


class BartenderWorkloadOutput(BaseModel):
    bartender_id: int
    name: str
    open_orders: int


# =============================================================================
# Table Schemas
# =============================================================================


class TableCreateRequest(BaseModel):
    number: int = Field(ge=1)
    capacity: int = Field(default=4, ge=1, le=100)
    location: str | None = Field(default=None, max_length=100)
    notes: str | None = None


class TableUpdateRequest(BaseModel):
    number: int | None = Field(default=None, ge=1)
    capacity: int | None = Field(default=None, ge=1, le=100)
    location: str | None = Field(default=None, max_length=100)
    notes: str | None = None
    state: TableState | None = None
    is_active: bool | None = None


class ChangeTableStateRequest(BaseModel):
    state: TableState


class TableOutput(BaseModel):
    id: int
    number: int
    capacity: int
    state: TableState
    location: str | None = None
    notes: str | None = None
    is_active: bool
    can_accept_orders: bool
    active_order_id: int | None = None
    active_order_number: str | None = None


class TableSnapshotItem(BaseModel):
    """Poll-as-truth view of a table for dashboards."""

    id: int
    number: int
    state: TableState
    can_accept_orders: bool
    active_order_id: int | None = None


# =============================================================================
# Catalog Schemas
# =============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    is_active: bool | None = None


class CategoryOutput(BaseModel):
    id: int
    name: str
    description: str | None = None
    color: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: str | None = None
    code: str = Field(min_length=1, max_length=50)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    image_url: str | None = None
    category_id: int | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=150)
    description: str | None = None
    code: str | None = Field(default=None, min_length=1, max_length=50)
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    cost: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image_url: str | None = None
    category_id: int | None = None
    is_active: bool | None = None


class ProductOutput(BaseModel):
    id: int
    name: str
    description: str | None = None
    code: str
    price: float
    cost: float
    image_url: str | None = None
    category_id: int | None = None
    category_name: str | None = None
    is_combo: bool
    is_active: bool
    stock: int


class ComboComponentInput(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class ComboCreate(ProductCreate):
    components: list[ComboComponentInput] = Field(min_length=1)


class ComboUpdate(ProductUpdate):
    components: list[ComboComponentInput] | None = Field(default=None, min_length=1)


class ComboComponentOutput(BaseModel):
    product_id: int
    product_name: str | None = None
    quantity: int
    stock: int
    is_active: bool


class ComboOutput(ProductOutput):
    available: bool
    components: list[ComboComponentOutput] = []


class ComplementInput(BaseModel):
    complement_id: int
    required_quantity: int = Field(default=1, ge=1)
    is_mandatory: bool = False
    is_free: bool = False


class SetComplementsRequest(BaseModel):
    complements: list[ComplementInput]


class ComplementOutput(BaseModel):
    complement_id: int
    name: str
    price: float
    required_quantity: int
    is_mandatory: bool
    is_free: bool


class StockOutput(BaseModel):
    product_id: int
    name: str
    code: str
    is_combo: bool
    stock: int
    min_stock: int
    is_low: bool


# =============================================================================
# Inventory Schemas
# =============================================================================


class InventoryMovementCreate(BaseModel):
    """Manual stock movement. Sales are written by checkout."""

    product_id: int
    quantity: int
    movement_type: ManualMovementType
    unit_price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    note: str | None = Field(default=None, max_length=500)


class InventoryMovementOutput(BaseModel):
    id: int
    product_id: int
    product_name: str | None = None
    quantity: int
    movement_type: str
    unit_price: float | None = None
    user_id: int | None = None
    order_id: int | None = None
    purchase_order_id: int | None = None
    note: str | None = None
    created_at: datetime | None = None


class ThresholdsUpdate(BaseModel):
    min_stock: int = Field(ge=0)
    max_stock: int | None = Field(default=None, ge=0)
    location: str | None = Field(default=None, max_length=100)


# =============================================================================
# Cash Register Schemas
# =============================================================================


class OpenRegisterRequest(BaseModel):
    register_number: int
    opening_amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = None


class CashMovementCreate(BaseModel):
    movement_type: CashMovementName
    amount: Decimal = Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)
    concept: str = Field(min_length=1, max_length=255)


class CloseRegisterRequest(BaseModel):
    closing_amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = None


class CashMovementOutput(BaseModel):
    id: int
    cash_register_id: int
    user_id: int
    movement_type: str
    amount: float
    concept: str
    order_id: int | None = None
    payment_method: str | None = None
    created_at: datetime | None = None


class CashRegisterOutput(BaseModel):
    id: int
    register_number: int
    user_id: int
    user_name: str | None = None
    state: str
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    opening_amount: float
    closing_amount: float | None = None
    expected_amount: float | None = None
    difference: float | None = None
    notes: str | None = None


# =============================================================================
# Billing Schemas
# =============================================================================


class CheckoutRequest(BaseModel):
    payment_method: PaymentMethodName
    amount_received: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(default=None, max_length=500)


class CheckoutResponse(BaseModel):
    order_id: int
    total: float
    amount_received: float
    change: float
    payment_method: PaymentMethodName


# =============================================================================
# Currency and Settings Schemas
# =============================================================================


class CurrencyOutput(BaseModel):
    id: int
    code: str
    name: str
    symbol: str
    exchange_rate: float
    is_default: bool
    is_active: bool
    decimals: int
    decimal_separator: str
    thousands_separator: str


class SwitchCurrencyRequest(BaseModel):
    code: str = Field(min_length=3, max_length=3)


class CurrencyUpdate(BaseModel):
    exchange_rate: Decimal | None = Field(default=None, gt=0)
    is_active: bool | None = None


class SettingUpdate(BaseModel):
    value: Any
    value_type: SettingTypeName | None = None
    description: str | None = None


class SettingOutput(BaseModel):
    key: str
    value: Any = None
    value_type: SettingTypeName
    description: str | None = None


# =============================================================================
# User and Role Schemas
# =============================================================================


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role_id: int


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=150)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=128)
    role_id: int | None = None
    is_active: bool | None = None


class UserOutput(BaseModel):
    id: int
    name: str
    email: str
    role_id: int | None = None
    role: str | None = None
    is_active: bool
    created_at: datetime | None = None


class PermissionOutput(BaseModel):
    id: int
    slug: str
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None


class RoleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


class RolePermissionsUpdate(BaseModel):
    permissions: list[str]


class RoleOutput(BaseModel):
    id: int
    name: str
    slug: str
    description: str | None = None
    permissions: list[str] = []
    user_count: int = 0


# =============================================================================
# Supplier and Purchase Order Schemas
# =============================================================================


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    tax_id: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    contact: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    is_active: bool = True


class SupplierUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    tax_id: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    contact: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    is_active: bool | None = None


class SupplierOutput(BaseModel):
    id: int
    name: str
    tax_id: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    contact: str | None = None
    notes: str | None = None
    is_active: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PurchaseOrderItemInput(BaseModel):
    """A purchase order line. `id` selects an existing line when editing."""

    id: int | None = None
    product_id: int
    quantity: int = Field(ge=1, le=100000)
    unit_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(default=None, max_length=500)


class PurchaseOrderCreate(BaseModel):
    supplier_id: int
    ordered_on: date
    expected_on: date | None = None
    notes: str | None = None
    items: list[PurchaseOrderItemInput] = Field(min_length=1)


class PurchaseOrderUpdate(BaseModel):
    """Lines not listed in `items` are removed; omit `items` to keep them all."""

    supplier_id: int | None = None
    ordered_on: date | None = None
    expected_on: date | None = None
    notes: str | None = None
    items: list[PurchaseOrderItemInput] | None = Field(default=None, min_length=1)


class ReceiveLineInput(BaseModel):
    """Total quantity received so far for one line, not the delta."""

    item_id: int
    received_quantity: int = Field(ge=0)


class ReceivePurchaseOrderRequest(BaseModel):
    items: list[ReceiveLineInput] = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=500)


class PurchaseOrderItemOutput(BaseModel):
    id: int
    product_id: int
    product_name: str | None = None
    product_code: str | None = None
    quantity: int
    received_quantity: int
    unit_price: float
    subtotal: float
    notes: str | None = None


class PurchaseOrderOutput(BaseModel):
    id: int
    order_number: str | None = None
    supplier_id: int
    supplier_name: str | None = None
    user_id: int | None = None
    user_name: str | None = None
    state: PurchaseOrderState
    ordered_on: date
    expected_on: date | None = None
    received_at: datetime | None = None
    total: float
    notes: str | None = None
    created_at: datetime | None = None
    items: list[PurchaseOrderItemOutput] = []


# =============================================================================
# Report Schemas
# =============================================================================


class RegisterSalesQuery(BaseModel):
    """
    Window of a per-register sales report.

    When `hour_to` is earlier than `hour_from` the window ends on the day
    after `date_to`, so a 22:00 to 04:00 shift is reported whole.
    """

    date_from: date
    date_to: date
    hour_from: time | None = None
    hour_to: time | None = None
    register_id: int | None = None
    category_id: int | None = None
    promo_price: Decimal | None = Field(default=None, ge=0)
