"""
Shared helpers for routers: response envelope, commit handling, output builders.
"""

from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pos_shared.config.logging import rest_api_logger as logger
from pos_shared.infrastructure.db import safe_commit
from pos_shared.utils.exceptions import ConflictError, DatabaseError
from pos_shared.utils.schemas import (
    OrderHistoryOutput,
    OrderItemOutput,
    OrderOutput,
)
from pos_api.models import Order, OrderHistory


def ok(data: Any = None, message: str = "Operación exitosa") -> dict[str, Any]:
    """Success envelope for mutating endpoints."""
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [d.model_dump(mode="json") if hasattr(d, "model_dump") else d for d in data]
    return {"success": True, "message": message, "data": data}


def commit_or_fail(db: Session, operation: str, **log_context: Any) -> None:
    """
    Commit the request's unit of work.

    A failed commit is rolled back and surfaces as a generic 500; the
    driver error is only logged.
    """
    try:
        safe_commit(db)
    except StaleDataError:
        raise ConflictError(
            "El registro fue modificado por otro usuario. Recargue e intente de nuevo.",
            operation=operation,
            **log_context,
        )
    except Exception as e:
        logger.error("Commit failed", operation=operation, error=str(e), **log_context)
        raise DatabaseError(operation, **log_context)


def order_output(order: Order) -> OrderOutput:
    items = []
    for item in order.items:
        product = item.product
        category = product.category if product is not None else None
        items.append(
            OrderItemOutput(
                id=item.id,
                product_id=item.product_id,
                product_name=product.name if product is not None else "",
                category_name=category.name if category is not None else None,
                quantity=item.quantity,
                unit_price=float(item.unit_price),
                subtotal=float(item.subtotal),
                notes=item.notes,
                is_free_complement=item.is_free_complement,
                complement_of_id=item.complement_of_id,
            )
        )
    return OrderOutput(
        id=order.id,
        order_number=order.order_number,
        table_id=order.table_id,
        table_number=order.table.number if order.table else None,
        user_id=order.user_id,
        user_name=order.user.name if order.user else None,
        bartender_id=order.bartender_id,
        bartender_name=order.bartender.name if order.bartender else None,
        state=order.state,
        subtotal=float(order.subtotal),
        tax=float(order.tax),
        discount=float(order.discount),
        total=float(order.total),
        payment_method=order.payment_method,
        paid=order.paid,
        notes=order.notes,
        version=order.version,
        created_at=order.created_at,
        updated_at=order.updated_at,
        items=items,
    )


def history_output(entry: OrderHistory) -> OrderHistoryOutput:
    return OrderHistoryOutput(
        id=entry.id,
        order_id=entry.order_id,
        user_id=entry.user_id,
        user_name=entry.user.name if entry.user else None,
        action=entry.action,
        detail=entry.detail,
        created_at=entry.created_at,
    )
