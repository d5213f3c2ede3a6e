"""
Order Lifecycle Domain Service.

Owns every write to an order: creation, state transitions, bartender
assignment, the paid flag and deletion. Each write appends to the order
history and, for transitions that close an order, releases its table in
the same transaction. Publishing happens in the router, after commit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from pos_shared.config.constants import (
    DEFAULT_CATEGORY_COLOR,
    ORDER_DASHBOARD_PRIORITY,
    OrderHistoryAction,
    OrderStatus,
    Roles,
    get_allowed_order_transitions,
    is_valid_order_transition,
    validate_order_status,
)
from pos_shared.config.logging import orders_logger as logger
from pos_shared.utils.exceptions import (
    AlreadyPaidError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    OrderNotFoundError,
    ProductNotFoundError,
    StaleOrderError,
    TableNotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import OrderCreateRequest
from pos_api.models import (
    ComboComponent,
    Order,
    OrderHistory,
    OrderItem,
    Product,
    ProductComplement,
    Role,
    Table,
    User,
)
from .stock_service import combo_available
from .table_service import TableAvailabilityTracker

ZERO = Decimal("0")


def validate_order_transition(current: str, new: str) -> None:
    """
    Raise InvalidTransitionError unless `current -> new` is allowed.

    Forward moves may skip steps; backward moves, same-state moves and
    anything out of a terminal state are rejected.
    """
    if not is_valid_order_transition(current, new):
        raise InvalidTransitionError(
            "Orden", current, new, allowed=get_allowed_order_transitions(current)
        )


def format_order_number(order_id: int, when: datetime | None = None) -> str:
    when = when or datetime.now(timezone.utc)
    return f"ORD-{when:%Y%m%d}-{order_id:06d}"


def _money(value: Decimal | None) -> float:
    return float(value if value is not None else ZERO)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_snapshot(order: Order) -> dict[str, Any]:
    """
    Full order view broadcast to dashboards on every change.

    Keys are the ones the bartender, cashier and waiter screens read.
    """
    user = order.user
    bartender = order.bartender
    table = order.table

    productos = []
    for item in order.items:
        product = item.product
        category = product.category if product is not None else None
        productos.append(
            {
                "id": item.id,
                "producto_id": item.product_id,
                "nombre": product.name if product is not None else None,
                "categoria": {
                    "id": category.id if category else None,
                    "nombre": category.name if category else None,
                    "color": (category.color if category and category.color else DEFAULT_CATEGORY_COLOR),
                },
                "precio_unitario": _money(item.unit_price),
                "cantidad": item.quantity,
                "subtotal": _money(item.subtotal),
                "notas": item.notes,
                "es_complemento_gratuito": bool(item.is_free_complement),
            }
        )

    return {
        "id": order.id,
        "numero_orden": order.order_number,
        "estado": order.state,
        "mesa_id": order.table_id,
        "mesa": {"id": table.id, "numero": table.number} if table is not None else None,
        "user": {
            "id": user.id,
            "name": user.name,
            "role": user.role_slug,
        }
        if user is not None
        else None,
        "bartender": {"id": bartender.id, "name": bartender.name} if bartender is not None else None,
        "subtotal": _money(order.subtotal),
        # Dashboards read "total"; it always equals the subtotal
        "total": _money(order.subtotal),
        "pagado": bool(order.paid),
        "metodo_pago": order.payment_method,
        "notas": order.notes,
        "version": order.version,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "productos": productos,
    }


class OrderLifecycleService:
    """
    Domain service for order operations.

    Methods flush but never commit; the caller commits once and then
    publishes the snapshot.
    """

    def __init__(self, db: Session):
        self._db = db
        self._tracker = TableAvailabilityTracker(db)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def order_query(self):
        return select(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product).selectinload(Product.category),
            selectinload(Order.table),
            selectinload(Order.user).selectinload(User.role),
            selectinload(Order.bartender),
        )

    def get_order(self, order_id: int) -> Order:
        order = self._db.scalar(self.order_query().where(Order.id == order_id))
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(
        self,
        state: str | None = None,
        table_id: int | None = None,
        paid: bool | None = None,
        limit: int = 50,
    ) -> list[Order]:
        query = self.order_query()
        if state is not None:
            if not validate_order_status(state):
                raise ValidationError(f"Estado de orden inválido: {state}", field="state")
            query = query.where(Order.state == state)
        if table_id is not None:
            query = query.where(Order.table_id == table_id)
        if paid is not None:
            query = query.where(Order.paid.is_(paid))
        query = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
        return list(self._db.scalars(query).all())

    def list_active(self) -> list[Order]:
        """Orders still on the bar: ready first, then in progress, then pending."""
        priority = case(ORDER_DASHBOARD_PRIORITY, value=Order.state, else_=99)
        query = (
            self.order_query()
            .where(Order.state.in_(OrderStatus.ACTIVE))
            .order_by(priority.asc(), Order.created_at.desc(), Order.id.desc())
        )
        return list(self._db.scalars(query).all())

    def get_history(self, order_id: int) -> list[OrderHistory]:
        self.get_order(order_id)
        return list(
            self._db.scalars(
                select(OrderHistory)
                .options(selectinload(OrderHistory.user))
                .where(OrderHistory.order_id == order_id)
                .order_by(OrderHistory.created_at.asc(), OrderHistory.id.asc())
            ).all()
        )

    def bartender_workload(self) -> list[dict[str, Any]]:
        """Pending and in-progress orders assigned to each active bartender."""
        open_count = func.count(Order.id)
        rows = self._db.execute(
            select(User.id, User.name, open_count)
            .join(Role, User.role_id == Role.id)
            .outerjoin(
                Order,
                (Order.bartender_id == User.id) & Order.state.in_(OrderStatus.OPEN),
            )
            .where(Role.slug == Roles.BARTENDER, User.is_active.is_(True))
            .group_by(User.id, User.name)
            .order_by(open_count.desc(), User.name.asc())
        ).all()
        return [
            {"bartender_id": user_id, "name": name, "open_orders": count}
            for user_id, name, count in rows
        ]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def append_history(self, order: Order, actor_id: int | None, action: str, detail: str) -> OrderHistory:
        entry = OrderHistory(
            user_id=actor_id,
            action=action,
            detail=detail,
            created_at=datetime.now(timezone.utc),
        )
        order.history.append(entry)
        return entry

    def flush_order(self, order: Order) -> None:
        try:
            self._db.flush()
        except StaleDataError:
            self._db.rollback()
            raise StaleOrderError(order.id)

    def _get_bartender(self, bartender_id: int) -> User:
        bartender = self._db.scalar(
            select(User)
            .options(selectinload(User.role))
            .where(User.id == bartender_id)
        )
        if bartender is None or not bartender.is_active or not bartender.has_role(Roles.BARTENDER):
            raise ValidationError(
                f"El usuario {bartender_id} no es un bartender activo", field="bartender_id"
            )
        return bartender

    def recompute_totals(self, order: Order) -> None:
        """subtotal = sum of lines; no tax or discount is applied."""
        subtotal = sum((item.subtotal for item in order.items), ZERO)
        order.subtotal = subtotal
        order.tax = ZERO
        order.discount = ZERO
        order.total = order.subtotal - order.discount + order.tax

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def create_order(self, request: OrderCreateRequest, actor_id: int) -> Order:
        """
        Create a pending order from catalog prices and occupy its table.

        Raises:
            ProductNotFoundError: Unknown product.
            ValidationError: Inactive product, unavailable combo, bad complement
                or bartender.
            TableNotFoundError / ConflictError: Missing table or one that
                cannot take orders.
        """
        product_ids = {item.product_id for item in request.items}
        products = {
            p.id: p
            for p in self._db.scalars(
                select(Product)
                .options(
                    selectinload(Product.stock),
                    selectinload(Product.combo_components)
                    .selectinload(ComboComponent.product)
                    .selectinload(Product.stock),
                )
                .where(Product.id.in_(product_ids))
            ).all()
        }

        principal_ids = {item.product_id for item in request.items if not item.is_free_complement}
        for item in request.items:
            product = products.get(item.product_id)
            if product is None:
                raise ProductNotFoundError(item.product_id)
            if not product.is_active:
                raise ValidationError(
                    f"El producto '{product.name}' no está disponible", product_id=product.id
                )
            if product.is_combo and not combo_available(product):
                raise ValidationError(
                    f"El combo '{product.name}' no está disponible", product_id=product.id
                )
            if item.is_free_complement:
                self._validate_free_complement(item.product_id, item.complement_of_id, principal_ids)

        table = None
        if request.table_id is not None:
            table = self._db.get(Table, request.table_id)
            if table is None or not table.is_active:
                raise TableNotFoundError(request.table_id)
            if not self._tracker.can_accept_orders(table):
                raise ConflictError(
                    f"La mesa {table.number} no puede recibir órdenes (estado: {table.state})",
                    table_id=table.id,
                )

        if request.bartender_id is not None:
            self._get_bartender(request.bartender_id)

        order = Order(
            user_id=actor_id,
            table_id=table.id if table else None,
            bartender_id=request.bartender_id,
            state=OrderStatus.PENDING,
            notes=request.notes,
        )
        self._db.add(order)
        self._db.flush()
        order.order_number = format_order_number(order.id)

        for item in request.items:
            product = products[item.product_id]
            subtotal = ZERO if item.is_free_complement else product.price * item.quantity
            order.items.append(
                OrderItem(
                    product_id=product.id,
                    quantity=item.quantity,
                    unit_price=product.price,
                    subtotal=subtotal,
                    notes=item.notes,
                    is_free_complement=item.is_free_complement,
                    complement_of_id=item.complement_of_id if item.is_free_complement else None,
                )
            )

        if table is not None:
            self._tracker.mark_occupied(table)
            detail = f"Orden creada para mesa #{table.number}"
        else:
            detail = "Orden creada para llevar"

        self.recompute_totals(order)
        self.append_history(order, actor_id, OrderHistoryAction.CREATED, detail)
        self._db.flush()

        logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            table_id=order.table_id,
            items=len(request.items),
            total=str(order.total),
        )
        return order

    def _validate_free_complement(
        self,
        complement_id: int,
        principal_id: int | None,
        principal_ids: set[int],
    ) -> None:
        if principal_id is None or principal_id not in principal_ids:
            raise ValidationError(
                "Un complemento gratuito debe acompañar a un producto de la orden",
                product_id=complement_id,
            )
        relation = self._db.scalar(
            select(ProductComplement).where(
                ProductComplement.product_id == principal_id,
                ProductComplement.complement_id == complement_id,
                ProductComplement.is_free.is_(True),
            )
        )
        if relation is None:
            raise ValidationError(
                f"El producto {complement_id} no es un complemento gratuito del producto {principal_id}",
                product_id=complement_id,
            )

    def update_status(
        self,
        order_id: int,
        new_state: str,
        actor_id: int,
        expected_version: int | None = None,
    ) -> Order:
        """
        Move an order to `new_state`, record it and free the table when it closes.

        Raises:
            ValidationError: Unknown state.
            StaleOrderError: expected_version is not the current version, or a
                concurrent writer got there first.
            InvalidTransitionError: The transition table forbids the move.
        """
        if not validate_order_status(new_state):
            raise ValidationError(f"Estado de orden inválido: {new_state}", field="state")

        order = self.get_order(order_id)
        if expected_version is not None and expected_version != order.version:
            raise StaleOrderError(order.id, expected=expected_version, actual=order.version)

        previous = order.state
        validate_order_transition(previous, new_state)

        order.state = new_state
        self.append_history(
            order, actor_id, OrderHistoryAction.UPDATED, f"Estado actualizado a: {new_state}"
        )
        self.flush_order(order)

        if new_state in OrderStatus.RELEASING and order.table is not None:
            self._tracker.release(order.table)

        logger.info(
            "Order state changed",
            order_id=order.id,
            from_state=previous,
            to_state=new_state,
            actor_id=actor_id,
        )
        return order

    def assign_bartender(self, order_id: int, bartender_id: int, actor_id: int) -> Order:
        order = self.get_order(order_id)
        if order.is_terminal:
            raise InvalidStateError("Orden", order.state, OrderStatus.ACTIVE, order_id=order.id)

        bartender = self._get_bartender(bartender_id)
        order.bartender_id = bartender.id
        order.bartender = bartender
        self.append_history(
            order, actor_id, OrderHistoryAction.UPDATED, f"Bartender asignado: {bartender.name}"
        )
        self.flush_order(order)
        return order

    def mark_paid(self, order_id: int, actor_id: int) -> Order:
        """Set the paid flag only. State and table occupancy are untouched."""
        order = self.get_order(order_id)
        if order.paid:
            raise AlreadyPaidError(order.id)

        order.paid = True
        self.append_history(order, actor_id, OrderHistoryAction.PAID, "Orden marcada como pagada")
        self.flush_order(order)
        logger.info("Order marked paid", order_id=order.id, actor_id=actor_id)
        return order

    def destroy(self, order_id: int) -> None:
        """Delete a cancelled order together with its lines and history."""
        order = self.get_order(order_id)
        if order.state != OrderStatus.CANCELED:
            raise ForbiddenError(
                "eliminar una orden que no está cancelada", order_id=order.id, state=order.state
            )
        self._db.delete(order)
        self._db.flush()
        logger.info("Order deleted", order_id=order_id)
