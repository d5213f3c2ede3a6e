"""
Cash register router. Cajero and administrador only.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import CASH_ROLES, Limits, Roles
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, ctx_user_id, require_roles
from pos_shared.utils.schemas import (
    CashMovementCreate,
    CashMovementOutput,
    CashRegisterOutput,
    CloseRegisterRequest,
    OpenRegisterRequest,
)
from pos_api.models import CashMovement, CashRegister
from pos_api.services.domain import CashService
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api/cash", tags=["cash"])


def _optional_float(value) -> float | None:
    return float(value) if value is not None else None


def _register_output(register: CashRegister) -> CashRegisterOutput:
    return CashRegisterOutput(
        id=register.id,
        register_number=register.register_number,
        user_id=register.user_id,
        user_name=register.user.name if register.user else None,
        state=register.state,
        opened_at=register.opened_at,
        closed_at=register.closed_at,
        opening_amount=float(register.opening_amount),
        closing_amount=_optional_float(register.closing_amount),
        expected_amount=_optional_float(register.expected_amount),
        difference=_optional_float(register.difference),
        notes=register.notes,
    )


def _movement_output(movement: CashMovement) -> CashMovementOutput:
    return CashMovementOutput(
        id=movement.id,
        cash_register_id=movement.cash_register_id,
        user_id=movement.user_id,
        movement_type=movement.movement_type,
        amount=float(movement.amount),
        concept=movement.concept,
        order_id=movement.order_id,
        payment_method=movement.payment_method,
        created_at=movement.created_at,
    )


@router.post("/open", status_code=status.HTTP_201_CREATED)
def open_register(
    body: OpenRegisterRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, CASH_ROLES)
    service = CashService(db)
    register = service.open_register(
        body.register_number, body.opening_amount, ctx_user_id(ctx), body.notes
    )
    commit_or_fail(db, "apertura de caja", register_number=body.register_number)
    return ok(_register_output(service.get_register(register.id)), "Caja abierta correctamente")


@router.get("/current")
def current_register(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """The caller's open register, or null."""
    require_roles(ctx, CASH_ROLES)
    service = CashService(db)
    register = service.current_register(ctx_user_id(ctx))
    if register is None:
        return ok(None, "No hay caja abierta")
    return ok(_register_output(service.get_register(register.id)), "Caja abierta")


@router.post("/{register_id}/movements", status_code=status.HTTP_201_CREATED)
def record_cash_movement(
    register_id: int,
    body: CashMovementCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, CASH_ROLES)
    movement = CashService(db).record_movement(
        register_id, body.movement_type, body.amount, body.concept, ctx_user_id(ctx)
    )
    commit_or_fail(db, "registro de movimiento de caja", register_id=register_id)
    return ok(_movement_output(movement), "Movimiento registrado correctamente")


@router.post("/{register_id}/close")
def close_register(
    register_id: int,
    body: CloseRegisterRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Close a register; the response includes expected amount and difference."""
    require_roles(ctx, CASH_ROLES)
    service = CashService(db)
    service.close_register(
        register_id,
        body.closing_amount,
        ctx_user_id(ctx),
        body.notes,
        is_admin=ctx.get("role") == Roles.ADMIN,
    )
    commit_or_fail(db, "cierre de caja", register_id=register_id)
    return ok(_register_output(service.get_register(register_id)), "Caja cerrada correctamente")


@router.get("/{register_id}/summary")
def register_summary(
    register_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, CASH_ROLES)
    return CashService(db).summary(register_id)


@router.get("/history", response_model=list[CashRegisterOutput])
def register_history(
    register_number: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = Query(default=Limits.DEFAULT_LIST_LIMIT, ge=1, le=Limits.MAX_LIST_LIMIT),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[CashRegisterOutput]:
    require_roles(ctx, CASH_ROLES)
    registers = CashService(db).history(register_number, date_from, date_to, limit)
    return [_register_output(r) for r in registers]
