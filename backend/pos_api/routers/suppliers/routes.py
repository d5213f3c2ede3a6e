"""
Purchasing router: suppliers and the purchase orders placed with them.

Everything here needs the gestionar_inventario permission; receiving an
order writes to the stock ledger.
"""

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import Limits, Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, ctx_user_id, require_permission
from pos_shared.utils.schemas import (
    PurchaseOrderCreate,
    PurchaseOrderOutput,
    PurchaseOrderState,
    PurchaseOrderUpdate,
    ReceivePurchaseOrderRequest,
    SupplierCreate,
    SupplierOutput,
    SupplierUpdate,
)
from pos_api.services.domain import SupplierService
from pos_api.services.domain.supplier_service import purchase_order_output
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api", tags=["purchasing"])


# =============================================================================
# Suppliers
# =============================================================================


@router.get("/suppliers", response_model=list[SupplierOutput])
def list_suppliers(
    search: str | None = None,
    active: bool | None = None,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[SupplierOutput]:
    """Suppliers by name; `search` matches name, RUC, contact or email."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    suppliers = SupplierService(db).list_suppliers(search=search, active=active)
    return [SupplierOutput.model_validate(s) for s in suppliers]


@router.post("/suppliers", status_code=status.HTTP_201_CREATED)
def create_supplier(
    body: SupplierCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    supplier = SupplierService(db).create_supplier(body.model_dump())
    commit_or_fail(db, "creación de proveedor")
    return ok(SupplierOutput.model_validate(supplier), "Proveedor creado con éxito")


@router.get("/suppliers/{supplier_id}", response_model=SupplierOutput)
def get_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SupplierOutput:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    return SupplierOutput.model_validate(SupplierService(db).get_supplier(supplier_id))


@router.put("/suppliers/{supplier_id}")
def update_supplier(
    supplier_id: int,
    body: SupplierUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    supplier = service.update_supplier(
        service.get_supplier(supplier_id), body.model_dump(exclude_unset=True)
    )
    commit_or_fail(db, "actualización de proveedor", supplier_id=supplier_id)
    return ok(SupplierOutput.model_validate(supplier), "Proveedor actualizado con éxito")


@router.delete("/suppliers/{supplier_id}")
def delete_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Suppliers with purchase orders cannot be deleted; deactivate them instead."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    service.delete_supplier(service.get_supplier(supplier_id))
    commit_or_fail(db, "eliminación de proveedor", supplier_id=supplier_id)
    return ok({"id": supplier_id}, "Proveedor eliminado con éxito")


# =============================================================================
# Purchase orders
# =============================================================================


@router.get("/purchase-orders", response_model=list[PurchaseOrderOutput])
def list_purchase_orders(
    search: str | None = None,
    state: PurchaseOrderState | None = None,
    supplier_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(default=Limits.DEFAULT_LIST_LIMIT, ge=1, le=Limits.MAX_LIST_LIMIT),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[PurchaseOrderOutput]:
    """Purchase orders, most recent order date first."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    orders = SupplierService(db).list_orders(
        search=search,
        state=state,
        supplier_id=supplier_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )
    return [purchase_order_output(o) for o in orders]


@router.post("/purchase-orders", status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    body: PurchaseOrderCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    order = service.create_order(
        body.supplier_id,
        body.ordered_on,
        body.items,
        actor_id=ctx_user_id(ctx),
        expected_on=body.expected_on,
        notes=body.notes,
    )
    commit_or_fail(db, "creación de pedido", supplier_id=body.supplier_id)
    return ok(purchase_order_output(service.get_order(order.id)), "Pedido creado con éxito")


@router.get("/purchase-orders/{order_id}", response_model=PurchaseOrderOutput)
def get_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> PurchaseOrderOutput:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    return purchase_order_output(SupplierService(db).get_order(order_id))


@router.put("/purchase-orders/{order_id}")
def update_purchase_order(
    order_id: int,
    body: PurchaseOrderUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Edit a pendiente order. `items`, when sent, replaces the line list."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    service.update_order(service.get_order(order_id), body.model_dump(exclude_unset=True))
    commit_or_fail(db, "actualización de pedido", purchase_order_id=order_id)
    return ok(purchase_order_output(service.get_order(order_id)), "Pedido actualizado con éxito")


@router.post("/purchase-orders/{order_id}/receive")
def receive_purchase_order(
    order_id: int,
    body: ReceivePurchaseOrderRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Record a delivery.

    Send, per line, the total quantity received so far; the increase goes
    into stock as an entrada movement.
    """
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    service.receive(
        service.get_order(order_id), body.items, actor_id=ctx_user_id(ctx), notes=body.notes
    )
    commit_or_fail(db, "recepción de pedido", purchase_order_id=order_id)
    return ok(
        purchase_order_output(service.get_order(order_id)),
        "Recepción de pedido procesada con éxito",
    )


@router.post("/purchase-orders/{order_id}/cancel")
def cancel_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    service.cancel(service.get_order(order_id))
    commit_or_fail(db, "cancelación de pedido", purchase_order_id=order_id)
    return ok(purchase_order_output(service.get_order(order_id)), "Pedido cancelado con éxito")


@router.delete("/purchase-orders/{order_id}")
def delete_purchase_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Only pendiente or cancelado orders can be deleted."""
    require_permission(ctx, Permissions.MANAGE_INVENTORY)
    service = SupplierService(db)
    service.delete_order(service.get_order(order_id))
    commit_or_fail(db, "eliminación de pedido", purchase_order_id=order_id)
    return ok({"id": order_id}, "Pedido eliminado con éxito")
