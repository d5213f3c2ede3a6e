"""
Billing router: checkout at the register and receipt data.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, CASH_ROLES
from pos_shared.config.logging import billing_logger as logger
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, ctx_user_id, require_roles
from pos_shared.utils.schemas import CheckoutRequest, CheckoutResponse, OrderOutput
from pos_api.services.domain import BillingService, OrderLifecycleService, build_snapshot
from pos_api.services.events import notify_order_changed
from pos_api.routers._common import commit_or_fail, ok, order_output


router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.get("/pending", response_model=list[OrderOutput])
def pending_orders(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderOutput]:
    """Unpaid, non-cancelled orders for the cashier screen."""
    require_roles(ctx, CASH_ROLES)
    return [order_output(o) for o in BillingService(db).pending_orders()]


@router.post("/orders/{order_id}/checkout")
async def checkout(
    order_id: int,
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Charge an order at the caller's open register.

    Takes sold quantities out of stock and records the income. The order
    keeps its state and its table; dashboards are told it is now paid.
    """
    require_roles(ctx, CASH_ROLES)
    result = BillingService(db).checkout(
        order_id,
        body.payment_method,
        body.amount_received,
        actor_id=ctx_user_id(ctx),
        notes=body.notes,
    )
    commit_or_fail(db, "cobro de orden", order_id=order_id)

    order = OrderLifecycleService(db).get_order(order_id)
    await notify_order_changed(build_snapshot(order), ctx)
    logger.info("Checkout committed", order_id=order_id, change=result["change"])
    return ok(CheckoutResponse(**result), "Orden cobrada correctamente")


@router.get("/orders/{order_id}/receipt")
def receipt(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return BillingService(db).receipt(order_id)
