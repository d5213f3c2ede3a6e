"""
Reporting Domain Service.

Read-only queries behind the admin dashboard, the per-register sales
report and the daily stock report. Day boundaries are UTC days.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.constants import CashMovementType, Limits, StockStatus
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import NotFoundError, ValidationError
from pos_shared.utils.schemas import RegisterSalesQuery
from pos_api.models import (
    CashMovement,
    CashRegister,
    Category,
    InventoryStock,
    Order,
    OrderItem,
    Product,
)

logger = get_logger(__name__)

ZERO = Decimal("0")
PROMO_TOLERANCE = Decimal("0.01")


def _day_window(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def stock_status(row: InventoryStock | None) -> str:
    """
    Report label for a stock row.

    Agotado at zero, Crítico at or below half the minimum, Bajo at or
    below the minimum. Products without a row are not stock-controlled.
    """
    if row is None:
        return StockStatus.UNTRACKED
    if row.quantity == 0:
        return StockStatus.OUT
    if row.quantity <= row.min_stock * 0.5:
        return StockStatus.CRITICAL
    if row.quantity <= row.min_stock:
        return StockStatus.LOW
    return StockStatus.NORMAL


def sales_window(query: RegisterSalesQuery) -> tuple[datetime, datetime]:
    """
    [start, end] of a register sales report.

    Without hours the window spans whole days. An `hour_to` earlier than
    `hour_from` closes the window on the following day.
    """
    if query.date_to < query.date_from:
        raise ValidationError("La fecha final no puede ser anterior a la inicial", field="date_to")

    start = datetime.combine(query.date_from, query.hour_from or time.min, tzinfo=timezone.utc)
    if query.hour_to is None:
        end = datetime.combine(query.date_to, time.max, tzinfo=timezone.utc)
    else:
        last_day = query.date_to
        if query.hour_from is not None and query.hour_to < query.hour_from:
            last_day += timedelta(days=1)
        end = datetime.combine(last_day, query.hour_to, tzinfo=timezone.utc)
    return start, end


class ReportService:
    def __init__(self, db: Session):
        self._db = db

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    def _income_between(self, start: datetime, end: datetime) -> Decimal:
        total = self._db.scalar(
            select(func.coalesce(func.sum(CashMovement.amount), 0)).where(
                CashMovement.movement_type == CashMovementType.INCOME,
                CashMovement.created_at >= start,
                CashMovement.created_at < end,
            )
        )
        return Decimal(str(total or 0))

    def dashboard_stats(self, today: date | None = None) -> dict[str, Any]:
        """
        Headline numbers for the admin dashboard.

        Sales come from register income; units sold from paid orders created
        today. The change against yesterday is 0 when yesterday had no income.
        """
        today = today or datetime.now(timezone.utc).date()
        start, end = _day_window(today)
        yesterday_start, _ = _day_window(today - timedelta(days=1))

        sales_today = self._income_between(start, end)
        sales_yesterday = self._income_between(yesterday_start, start)
        change = (
            float((sales_today - sales_yesterday) / sales_yesterday * 100)
            if sales_yesterday > ZERO
            else 0.0
        )

        units_sold = self._db.scalar(
            select(func.coalesce(func.sum(OrderItem.quantity), 0))
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.paid.is_(True), Order.created_at >= start, Order.created_at < end)
        )

        low_stock = self._db.scalar(
            select(func.count(InventoryStock.id))
            .join(Product, Product.id == InventoryStock.product_id)
            .where(Product.is_active.is_(True), InventoryStock.quantity <= InventoryStock.min_stock)
        )

        return {
            "date": today.isoformat(),
            "sales_today": float(sales_today),
            "sales_change_percent": round(change, 2),
            "units_sold_today": int(units_sold or 0),
            "low_stock_products": int(low_stock or 0),
            "recent_sales": self._recent_sales(),
            "top_products": self._top_products(),
        }

    def _recent_sales(self) -> list[dict[str, Any]]:
        orders = self._db.scalars(
            select(Order)
            .options(selectinload(Order.table), selectinload(Order.user))
            .where(Order.paid.is_(True))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(Limits.DASHBOARD_RECENT_SALES)
        ).all()
        return [
            {
                "id": order.id,
                "order_number": order.order_number,
                "table": f"Mesa {order.table.number}" if order.table else "Sin mesa",
                "total": float(order.total),
                "user_name": order.user.name if order.user else None,
                "updated_at": (order.updated_at or order.created_at).isoformat(),
            }
            for order in orders
        ]

    def _top_products(self) -> list[dict[str, Any]]:
        sold = func.sum(OrderItem.quantity).label("quantity_sold")
        rows = self._db.execute(
            select(
                Product.id,
                Product.name,
                sold,
                func.sum(OrderItem.subtotal).label("total_sales"),
            )
            .join(OrderItem, OrderItem.product_id == Product.id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.paid.is_(True))
            .group_by(Product.id, Product.name)
            .order_by(sold.desc(), Product.id.asc())
            .limit(Limits.DASHBOARD_TOP_PRODUCTS)
        ).all()
        return [
            {
                "product_id": row.id,
                "name": row.name,
                "quantity_sold": int(row.quantity_sold),
                "total_sales": float(row.total_sales or 0),
            }
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # Sales per register
    # -------------------------------------------------------------------------

    def register_sales_report(self, query: RegisterSalesQuery) -> dict[str, Any]:
        """
        Units and money sold per register and product.

        A sale belongs to the register that took the order's income. With
        `promo_price` set, lines charged at that unit price are counted as
        promotions and the rest as regular sales.
        """
        start, end = sales_window(query)
        if query.register_id is not None and self._db.get(CashRegister, query.register_id) is None:
            raise NotFoundError("Caja", query.register_id)

        stmt = (
            select(
                CashRegister.register_number,
                Product.id.label("product_id"),
                Product.name,
                Product.price,
                OrderItem.unit_price,
                func.sum(OrderItem.quantity).label("quantity"),
                func.sum(OrderItem.subtotal).label("total"),
            )
            .select_from(OrderItem)
            .join(Order, Order.id == OrderItem.order_id)
            .join(
                CashMovement,
                and_(
                    CashMovement.order_id == Order.id,
                    CashMovement.movement_type == CashMovementType.INCOME,
                ),
            )
            .join(CashRegister, CashRegister.id == CashMovement.cash_register_id)
            .join(Product, Product.id == OrderItem.product_id)
            .where(
                Order.paid.is_(True),
                CashMovement.created_at >= start,
                CashMovement.created_at <= end,
            )
            .group_by(
                CashRegister.register_number,
                Product.id,
                Product.name,
                Product.price,
                OrderItem.unit_price,
            )
            .order_by(CashRegister.register_number.asc(), Product.name.asc())
        )
        if query.register_id is not None:
            stmt = stmt.where(CashRegister.id == query.register_id)
        if query.category_id is not None:
            stmt = stmt.where(Product.category_id == query.category_id)

        registers: dict[int, dict[str, Any]] = {}
        for row in self._db.execute(stmt).all():
            register = registers.setdefault(
                row.register_number,
                {
                    "register_number": row.register_number,
                    "products": {},
                    "total_quantity": 0,
                    "total_sold": 0.0,
                    "promo_quantity": 0,
                    "regular_quantity": 0,
                },
            )
            product = register["products"].setdefault(
                row.product_id,
                {
                    "product_id": row.product_id,
                    "name": row.name,
                    "regular_price": float(row.price),
                    "quantity_sold": 0,
                    "total_sold": 0.0,
                    "promo_quantity": 0,
                    "promo_total": 0.0,
                    "regular_quantity": 0,
                    "regular_total": 0.0,
                },
            )

            quantity = int(row.quantity)
            total = float(row.total or 0)
            is_promo = (
                query.promo_price is not None
                and abs(Decimal(str(row.unit_price)) - query.promo_price) < PROMO_TOLERANCE
            )
            kind = "promo" if is_promo else "regular"

            product["quantity_sold"] += quantity
            product["total_sold"] += total
            product[f"{kind}_quantity"] += quantity
            product[f"{kind}_total"] += total
            register["total_quantity"] += quantity
            register["total_sold"] += total
            register[f"{kind}_quantity"] += quantity

        result = []
        for number in sorted(registers):
            register = registers[number]
            products = sorted(
                register["products"].values(), key=lambda p: (-p["quantity_sold"], p["name"])
            )
            result.append({**register, "products": products})

        logger.info(
            "Register sales report built",
            start=start.isoformat(),
            end=end.isoformat(),
            registers=len(result),
        )
        return {
            "registers": result,
            "period": {"from": start.isoformat(), "to": end.isoformat()},
        }

    # -------------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------------

    def stock_report(
        self,
        category_id: int | None = None,
        include_inactive: bool = False,
        today: date | None = None,
    ) -> dict[str, Any]:
        """Every product with its stock, thresholds and status label."""
        today = today or datetime.now(timezone.utc).date()
        if category_id is not None and self._db.get(Category, category_id) is None:
            raise NotFoundError("Categoría", category_id)

        query = select(Product).options(
            selectinload(Product.category), selectinload(Product.stock)
        )
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if not include_inactive:
            query = query.where(Product.is_active.is_(True))
        products = self._db.scalars(query.order_by(Product.name.asc(), Product.id.asc())).all()

        rows = []
        summary = {label: 0 for label in StockStatus.ALL}
        for product in products:
            row = product.stock
            status = stock_status(row)
            summary[status] += 1
            rows.append(
                {
                    "id": product.id,
                    "code": product.code,
                    "name": product.name,
                    "price": float(product.price),
                    "cost": float(product.cost),
                    "stock": row.quantity if row is not None else 0,
                    "min_stock": row.min_stock if row is not None else None,
                    "max_stock": row.max_stock if row is not None else None,
                    "category": product.category.name if product.category else "Sin categoría",
                    "is_active": product.is_active,
                    "status": status,
                }
            )

        return {
            "date": today.isoformat(),
            "title": f"Reporte de Stock al {today:%d/%m/%Y}",
            "products": rows,
            "summary": summary,
        }
