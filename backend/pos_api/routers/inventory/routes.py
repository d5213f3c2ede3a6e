"""
Inventory router: the stock ledger and per-product thresholds.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, Limits, Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import (
    current_user_context,
    ctx_user_id,
    require_permission,
    require_roles,
)
from pos_shared.utils.schemas import (
    InventoryMovementCreate,
    InventoryMovementOutput,
    ThresholdsUpdate,
)
from pos_api.models import InventoryMovement
from pos_api.services.domain import InventoryService
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api/inventory", tags=["inventory"])


def _movement_output(movement: InventoryMovement) -> InventoryMovementOutput:
    return InventoryMovementOutput(
        id=movement.id,
        product_id=movement.product_id,
        product_name=movement.product.name if movement.product else None,
        quantity=movement.quantity,
        movement_type=movement.movement_type,
        unit_price=float(movement.unit_price) if movement.unit_price is not None else None,
        user_id=movement.user_id,
        order_id=movement.order_id,
        purchase_order_id=movement.purchase_order_id,
        note=movement.note,
        created_at=movement.created_at,
    )


@router.get("/movements", response_model=list[InventoryMovementOutput])
def list_movements(
    product_id: int | None = None,
    movement_type: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = Query(default=Limits.DEFAULT_LIST_LIMIT, ge=1, le=Limits.MAX_LIST_LIMIT),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[InventoryMovementOutput]:
    """Ledger entries, newest first."""
    require_roles(ctx, ALL_STAFF_ROLES)
    movements = InventoryService(db).list_movements(
        product_id=product_id,
        movement_type=movement_type,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return [_movement_output(m) for m in movements]


@router.post("/movements", status_code=status.HTTP_201_CREATED)
def record_movement(
    body: InventoryMovementCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Record a manual stock entry, exit, adjustment or return."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    movement = InventoryService(db).record_movement(
        product_id=body.product_id,
        quantity=body.quantity,
        movement_type=body.movement_type,
        actor_id=ctx_user_id(ctx),
        unit_price=body.unit_price,
        note=body.note,
    )
    commit_or_fail(db, "registro de movimiento de inventario", product_id=body.product_id)
    return ok(_movement_output(movement), "Movimiento registrado correctamente")


@router.put("/{product_id}/thresholds")
def set_thresholds(
    product_id: int,
    body: ThresholdsUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    row = InventoryService(db).set_thresholds(
        product_id, body.min_stock, body.max_stock, body.location
    )
    commit_or_fail(db, "actualización de umbrales de stock", product_id=product_id)
    return ok(
        {
            "product_id": row.product_id,
            "quantity": row.quantity,
            "min_stock": row.min_stock,
            "max_stock": row.max_stock,
            "location": row.location,
            "is_low": row.is_low,
        },
        "Umbrales actualizados correctamente",
    )
