"""
Billing Domain Service.

Checkout charges an order at the cashier's open register and takes the
sold quantities out of stock. It sets the paid flag only: the order's
state and its table are owned by the lifecycle service.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_shared.config.constants import (
    BASE_CURRENCY_CODE,
    CashMovementType,
    CashRegisterStatus,
    MovementType,
    OrderHistoryAction,
    OrderStatus,
    PaymentMethod,
)
from pos_shared.config.logging import billing_logger as logger
from pos_shared.config.settings import settings
from pos_shared.utils.exceptions import (
    AlreadyPaidError,
    InsufficientStockError,
    InvalidStateError,
    PaymentAmountError,
    ValidationError,
)
from pos_api.models import InventoryMovement, InventoryStock, Order, Product
from .cash_service import CashService
from .currency_service import CurrencyService, convert_from_base
from .inventory_service import InventoryService
from .order_service import OrderLifecycleService

ZERO = Decimal("0")


def stock_requirements(order: Order) -> dict[int, int]:
    """
    Units each stocked product loses when the order is sold.

    Combo lines expand into their components.
    """
    required: dict[int, int] = defaultdict(int)
    for item in order.items:
        product = item.product
        if product.is_combo:
            for component in product.combo_components:
                required[component.product_id] += component.quantity * item.quantity
        else:
            required[item.product_id] += item.quantity
    return dict(required)


class BillingService:
    """Checkout, receipts and the cashier's pending list."""

    def __init__(self, db: Session):
        self._db = db
        self._orders = OrderLifecycleService(db)
        self._cash = CashService(db)
        self._inventory = InventoryService(db)

    def pending_orders(self) -> list[Order]:
        """Unpaid orders that were not cancelled, oldest first."""
        query = (
            self._orders.order_query()
            .where(Order.paid.is_(False), Order.state != OrderStatus.CANCELED)
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
        return list(self._db.scalars(query).all())

    def _lock_stock(self, order: Order) -> dict[int, InventoryStock]:
        """
        Lock the stock rows the sale touches and re-check quantities.

        Rows are locked in product id order so two checkouts cannot deadlock.
        """
        required = stock_requirements(order)
        rows = {
            row.product_id: row
            for row in self._db.scalars(
                select(InventoryStock)
                .where(InventoryStock.product_id.in_(sorted(required)))
                .order_by(InventoryStock.product_id.asc())
                .with_for_update()
            ).all()
        }

        for product_id, quantity in sorted(required.items()):
            row = rows.get(product_id)
            available = row.quantity if row is not None else 0
            if available < quantity:
                product = self._db.get(Product, product_id)
                name = product.name if product is not None else str(product_id)
                raise InsufficientStockError(name, available, quantity, order_id=order.id)
        return rows

    def _write_stock_movements(
        self,
        order: Order,
        rows: dict[int, InventoryStock],
        actor_id: int,
    ) -> None:
        note = f"Venta orden {order.order_number}"
        for item in order.items:
            product = item.product
            if product.is_combo:
                # Ledger entry for the combo itself; stock moves on its components
                self._db.add(
                    InventoryMovement(
                        product_id=product.id,
                        quantity=-item.quantity,
                        movement_type=MovementType.COMBO_SALE,
                        unit_price=item.unit_price,
                        user_id=actor_id,
                        order_id=order.id,
                        note=note,
                    )
                )
                for component in product.combo_components:
                    self._inventory.apply_movement(
                        component.product,
                        MovementType.SALE,
                        component.quantity * item.quantity,
                        actor_id,
                        note=f"{note} (combo {product.name})",
                        order_id=order.id,
                        stock_row=rows[component.product_id],
                    )
            else:
                self._inventory.apply_movement(
                    product,
                    MovementType.SALE,
                    item.quantity,
                    actor_id,
                    unit_price=item.unit_price,
                    note=note,
                    order_id=order.id,
                    stock_row=rows[product.id],
                )

    def checkout(
        self,
        order_id: int,
        payment_method: str,
        amount_received: Decimal,
        actor_id: int,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Charge an order.

        Returns the totals and the change to hand back.

        Raises:
            InvalidStateError: Cancelled order, or the cashier has no open register.
            AlreadyPaidError: The order was already charged.
            PaymentAmountError: Not enough money received.
            InsufficientStockError: A product ran out since the order was taken.
        """
        if payment_method not in PaymentMethod.ALL:
            raise ValidationError(f"Método de pago inválido: {payment_method}", field="payment_method")

        order = self._orders.get_order(order_id)
        if order.state == OrderStatus.CANCELED:
            raise InvalidStateError(
                "Orden", order.state, [s for s in OrderStatus.ALL if s != OrderStatus.CANCELED]
            )
        if order.paid:
            raise AlreadyPaidError(order.id)
        if amount_received < order.total:
            raise PaymentAmountError(
                amount_received, f"menor al total de la orden ({order.total})", order_id=order.id
            )

        register = self._cash.current_register(actor_id)
        if register is None:
            raise InvalidStateError("Caja", CashRegisterStatus.CLOSED, [CashRegisterStatus.OPEN])

        rows = self._lock_stock(order)
        self._write_stock_movements(order, rows, actor_id)

        order.paid = True
        order.payment_method = payment_method
        if notes:
            order.notes = f"{order.notes}\n{notes}" if order.notes else notes

        if order.total > ZERO:
            self._cash.add_movement(
                register,
                CashMovementType.INCOME,
                order.total,
                f"Cobro orden {order.order_number}",
                actor_id,
                order_id=order.id,
                payment_method=payment_method,
            )

        self._orders.append_history(
            order, actor_id, OrderHistoryAction.CHARGED, f"Orden cobrada con {payment_method}"
        )
        self._orders.flush_order(order)

        change = amount_received - order.total
        logger.info(
            "Order charged",
            order_id=order.id,
            total=str(order.total),
            payment_method=payment_method,
            register_id=register.id,
        )
        return {
            "order_id": order.id,
            "total": float(order.total),
            "amount_received": float(amount_received),
            "change": float(change),
            "payment_method": payment_method,
        }

    def receipt(self, order_id: int) -> dict[str, Any]:
        """Data for a printed sales receipt. Rendering is up to the client."""
        order = self._orders.get_order(order_id)
        stamp = order.created_at or datetime.now(timezone.utc)

        receipt: dict[str, Any] = {
            "business": {
                "name": settings.business_name,
                "tax_id": settings.business_tax_id,
                "address": settings.business_address,
            },
            "series": settings.receipt_series,
            "number": f"{order.id:08d}",
            "order_number": order.order_number,
            "date": stamp.strftime("%Y-%m-%d"),
            "time": stamp.strftime("%H:%M:%S"),
            "cashier": order.user.name if order.user else None,
            "table": order.table.number if order.table else None,
            "lines": [
                {
                    "product": item.product.name,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "subtotal": float(item.subtotal),
                    "free_complement": item.is_free_complement,
                }
                for item in order.items
            ],
            "subtotal": float(order.subtotal),
            "tax": float(order.tax),
            "discount": float(order.discount),
            "total": float(order.total),
            "currency": BASE_CURRENCY_CODE,
            "payment_method": order.payment_method,
            "paid": order.paid,
        }

        currency = CurrencyService(self._db).current_currency()
        if currency is not None and currency.code != BASE_CURRENCY_CODE:
            receipt["converted_total"] = {
                "currency": currency.code,
                "symbol": currency.symbol,
                "exchange_rate": float(currency.exchange_rate),
                "amount": float(convert_from_base(order.total, currency)),
            }
        return receipt
