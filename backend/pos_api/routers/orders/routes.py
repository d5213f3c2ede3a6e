"""
Orders router.

Every write commits first and then pushes the order snapshot to the
shared "ordenes" channel. A failed push never fails the request.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import (
    BAR_ROLES,
    ORDER_STATUS_ROLES,
    ORDER_TAKING_ROLES,
    ALL_STAFF_ROLES,
    Limits,
    Permissions,
)
from pos_shared.config.logging import orders_logger as logger
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import (
    current_user_context,
    ctx_user_id,
    require_permission,
    require_roles,
)
from pos_shared.utils.schemas import (
    AssignBartenderRequest,
    BartenderWorkloadOutput,
    OrderCreateRequest,
    OrderHistoryOutput,
    OrderOutput,
    OrderState,
    UpdateOrderStatusRequest,
)
from pos_api.services.domain import OrderLifecycleService, build_snapshot
from pos_api.services.events import notify_order_changed
from pos_api.routers._common import commit_or_fail, history_output, ok, order_output


router = APIRouter(prefix="/api/orders", tags=["orders"])


async def _commit_and_notify(
    db: Session,
    service: OrderLifecycleService,
    order_id: int,
    operation: str,
    ctx: dict[str, Any],
) -> OrderOutput:
    """Commit, reload the order, publish its snapshot and return it."""
    commit_or_fail(db, operation, order_id=order_id)
    order = service.get_order(order_id)
    await notify_order_changed(build_snapshot(order), ctx)
    return order_output(order)


@router.get("", response_model=list[OrderOutput])
def list_orders(
    state: OrderState | None = None,
    table_id: int | None = None,
    paid: bool | None = None,
    limit: int = Query(default=Limits.DEFAULT_LIST_LIMIT, ge=1, le=Limits.MAX_LIST_LIMIT),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderOutput]:
    """List orders, newest first, with optional filters."""
    require_roles(ctx, ALL_STAFF_ROLES)
    orders = OrderLifecycleService(db).list_orders(
        state=state, table_id=table_id, paid=paid, limit=limit
    )
    return [order_output(o) for o in orders]


@router.get("/active", response_model=list[OrderOutput])
def list_active_orders(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderOutput]:
    """
    Orders still on the bar, ready first.

    Dashboards re-fetch this on reconnect and on their poll interval.
    """
    require_roles(ctx, ALL_STAFF_ROLES)
    return [order_output(o) for o in OrderLifecycleService(db).list_active()]


@router.get("/bartenders/workload", response_model=list[BartenderWorkloadOutput])
def bartender_workload(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[BartenderWorkloadOutput]:
    """Open orders per bartender, busiest first."""
    require_roles(ctx, ALL_STAFF_ROLES)
    return [BartenderWorkloadOutput(**row) for row in OrderLifecycleService(db).bartender_workload()]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreateRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Create a pending order. Prices come from the catalog.

    Requires mesero, cajero or administrador role.
    """
    require_roles(ctx, ORDER_TAKING_ROLES)
    service = OrderLifecycleService(db)
    order = service.create_order(body, actor_id=ctx_user_id(ctx))
    output = await _commit_and_notify(db, service, order.id, "creación de orden", ctx)
    return ok(output, "Orden creada correctamente")


@router.get("/{order_id}", response_model=OrderOutput)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    return order_output(OrderLifecycleService(db).get_order(order_id))


@router.get("/{order_id}/history", response_model=list[OrderHistoryOutput])
def get_order_history(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderHistoryOutput]:
    """History entries of an order, oldest first."""
    require_roles(ctx, ALL_STAFF_ROLES)
    return [history_output(h) for h in OrderLifecycleService(db).get_history(order_id)]


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Move an order to a new state.

    Delivered and cancelled orders free their table unless another open
    order remains on it. Send the last seen `version` to be protected
    against overwriting a concurrent change.
    """
    require_roles(ctx, ORDER_STATUS_ROLES)
    service = OrderLifecycleService(db)
    service.update_status(
        order_id,
        body.state,
        actor_id=ctx_user_id(ctx),
        expected_version=body.version,
    )
    output = await _commit_and_notify(db, service, order_id, "actualización de estado", ctx)
    return ok(output, "Estado de la orden actualizado correctamente")


@router.patch("/{order_id}/bartender")
async def assign_bartender(
    order_id: int,
    body: AssignBartenderRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, BAR_ROLES)
    service = OrderLifecycleService(db)
    service.assign_bartender(order_id, body.bartender_id, actor_id=ctx_user_id(ctx))
    output = await _commit_and_notify(db, service, order_id, "asignación de bartender", ctx)
    return ok(output, "Bartender asignado correctamente")


@router.post("/{order_id}/paid")
def mark_order_paid(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Flag an order as paid without charging it at a register.

    Does not change the order state or the table and sends no notification.
    """
    require_roles(ctx, ORDER_TAKING_ROLES)
    service = OrderLifecycleService(db)
    service.mark_paid(order_id, actor_id=ctx_user_id(ctx))
    commit_or_fail(db, "marcar orden pagada", order_id=order_id)
    return ok(order_output(service.get_order(order_id)), "Orden marcada como pagada")


@router.delete("/{order_id}")
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Delete a cancelled order. Administrators only."""
    require_permission(ctx, Permissions.DELETE_ORDERS)
    OrderLifecycleService(db).destroy(order_id)
    commit_or_fail(db, "eliminación de orden", order_id=order_id)
    logger.info("Order destroyed", order_id=order_id, actor_id=ctx_user_id(ctx))
    return ok({"id": order_id}, "Orden eliminada correctamente")
