"""
Tables router.

Reads are open to all staff; writes need the gestionar_mesas permission.
The snapshot endpoint is the source of truth dashboards poll.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, require_permission, require_roles
from pos_shared.utils.schemas import (
    ChangeTableStateRequest,
    TableCreateRequest,
    TableOutput,
    TableSnapshotItem,
    TableState,
    TableUpdateRequest,
)
from pos_api.services.domain import TableAdminService
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("", response_model=list[TableOutput])
def list_tables(
    state: TableState | None = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[TableOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    service = TableAdminService(db)
    return [
        service.to_output(t)
        for t in service.list_tables(state=state, include_inactive=include_inactive)
    ]


@router.get("/snapshot", response_model=list[TableSnapshotItem])
def tables_snapshot(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[TableSnapshotItem]:
    """Occupancy of every active table, for the dashboards' periodic refresh."""
    require_roles(ctx, ALL_STAFF_ROLES)
    return TableAdminService(db).snapshot()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_table(
    body: TableCreateRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_TABLES)
    service = TableAdminService(db)
    table = service.create_table(
        number=body.number,
        capacity=body.capacity,
        location=body.location,
        notes=body.notes,
    )
    commit_or_fail(db, "creación de mesa")
    return ok(service.to_output(table), "Mesa creada correctamente")


@router.get("/{table_id}", response_model=TableOutput)
def get_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TableOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    service = TableAdminService(db)
    return service.to_output(service.get_table(table_id))


@router.put("/{table_id}")
def update_table(
    table_id: int,
    body: TableUpdateRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_TABLES)
    service = TableAdminService(db)
    table = service.update_table(service.get_table(table_id), **body.model_dump(exclude_unset=True))
    commit_or_fail(db, "actualización de mesa", table_id=table_id)
    return ok(service.to_output(table), "Mesa actualizada correctamente")


@router.delete("/{table_id}")
def delete_table(
    table_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_TABLES)
    service = TableAdminService(db)
    service.delete_table(service.get_table(table_id, include_inactive=False))
    commit_or_fail(db, "eliminación de mesa", table_id=table_id)
    return ok({"id": table_id}, "Mesa eliminada correctamente")


@router.patch("/{table_id}/state")
def change_table_state(
    table_id: int,
    body: ChangeTableStateRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Set a table's state by hand.

    Goes through the same occupancy rules as orders: a table with an open
    order cannot be freed or reserved.
    """
    require_permission(ctx, Permissions.MANAGE_TABLES)
    service = TableAdminService(db)
    table = service.change_state(service.get_table(table_id, include_inactive=False), body.state)
    commit_or_fail(db, "cambio de estado de mesa", table_id=table_id)
    return ok(service.to_output(table), "Estado de la mesa actualizado")
