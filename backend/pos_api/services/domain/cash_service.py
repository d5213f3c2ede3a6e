"""
Cash Register Domain Service.

A cashier opens one of the venue's registers with a float, sales add
ingreso movements during the shift, and closing compares the counted
amount with what the movements say should be there.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.constants import CashMovementType, CashRegisterStatus, Limits
from pos_shared.config.logging import billing_logger as logger
from pos_shared.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from pos_api.models import CashMovement, CashRegister

ZERO = Decimal("0")
MIN_MOVEMENT = Decimal("0.01")


def expected_amount(register: CashRegister) -> Decimal:
    """Opening float plus income minus expenses."""
    total = register.opening_amount
    for movement in register.movements:
        if movement.movement_type == CashMovementType.INCOME:
            total += movement.amount
        else:
            total -= movement.amount
    return total


class CashService:
    """Domain service for cash registers."""

    def __init__(self, db: Session):
        self._db = db

    def get_register(self, register_id: int) -> CashRegister:
        register = self._db.scalar(
            select(CashRegister)
            .options(selectinload(CashRegister.movements), selectinload(CashRegister.user))
            .where(CashRegister.id == register_id)
        )
        if register is None:
            raise NotFoundError("Caja", register_id)
        return register

    def current_register(self, actor_id: int) -> CashRegister | None:
        """The actor's open register, if any."""
        return self._db.scalar(
            select(CashRegister)
            .options(selectinload(CashRegister.movements))
            .where(
                CashRegister.user_id == actor_id,
                CashRegister.state == CashRegisterStatus.OPEN,
            )
            .order_by(CashRegister.opened_at.desc(), CashRegister.id.desc())
            .limit(1)
        )

    def open_register(
        self,
        register_number: int,
        opening_amount: Decimal,
        actor_id: int,
        notes: str | None = None,
    ) -> CashRegister:
        if register_number not in Limits.CASH_REGISTER_NUMBERS:
            raise ValidationError(
                f"Número de caja inválido: {register_number}", field="register_number"
            )
        if opening_amount < ZERO:
            raise ValidationError("El monto de apertura no puede ser negativo", field="opening_amount")

        busy = self._db.scalar(
            select(CashRegister.id).where(
                CashRegister.register_number == register_number,
                CashRegister.state == CashRegisterStatus.OPEN,
            )
        )
        if busy is not None:
            raise ConflictError(f"La caja {register_number} ya está abierta", register_id=busy)
        if self.current_register(actor_id) is not None:
            raise ConflictError("Ya tiene una caja abierta", user_id=actor_id)

        register = CashRegister(
            register_number=register_number,
            user_id=actor_id,
            opened_at=datetime.now(timezone.utc),
            opening_amount=opening_amount,
            state=CashRegisterStatus.OPEN,
            notes=notes,
        )
        self._db.add(register)
        self._db.flush()
        logger.info(
            "Cash register opened",
            register_id=register.id,
            register_number=register_number,
            user_id=actor_id,
            opening_amount=str(opening_amount),
        )
        return register

    def _ensure_open(self, register: CashRegister) -> None:
        if not register.is_open:
            raise InvalidStateError("Caja", register.state, [CashRegisterStatus.OPEN])

    def add_movement(
        self,
        register: CashRegister,
        movement_type: str,
        amount: Decimal,
        concept: str,
        actor_id: int,
        order_id: int | None = None,
        payment_method: str | None = None,
    ) -> CashMovement:
        """Append a movement to an open register."""
        self._ensure_open(register)
        if movement_type not in CashMovementType.ALL:
            raise ValidationError(f"Tipo de movimiento inválido: {movement_type}", field="movement_type")
        if amount < MIN_MOVEMENT:
            raise ValidationError("El monto debe ser al menos 0.01", field="amount")

        movement = CashMovement(
            user_id=actor_id,
            movement_type=movement_type,
            amount=amount,
            concept=concept,
            order_id=order_id,
            payment_method=payment_method,
            created_at=datetime.now(timezone.utc),
        )
        register.movements.append(movement)
        return movement

    def record_movement(
        self,
        register_id: int,
        movement_type: str,
        amount: Decimal,
        concept: str,
        actor_id: int,
    ) -> CashMovement:
        register = self.get_register(register_id)
        movement = self.add_movement(register, movement_type, amount, concept, actor_id)
        self._db.flush()
        return movement

    def close_register(
        self,
        register_id: int,
        closing_amount: Decimal,
        actor_id: int,
        notes: str | None = None,
        is_admin: bool = False,
    ) -> CashRegister:
        register = self.get_register(register_id)
        self._ensure_open(register)
        if register.user_id != actor_id and not is_admin:
            raise ForbiddenError("cerrar una caja abierta por otro usuario", register_id=register_id)
        if closing_amount < ZERO:
            raise ValidationError("El monto de cierre no puede ser negativo", field="closing_amount")

        expected = expected_amount(register)
        register.closing_amount = closing_amount
        register.expected_amount = expected
        register.difference = closing_amount - expected
        register.closed_at = datetime.now(timezone.utc)
        register.state = CashRegisterStatus.CLOSED
        if notes:
            register.notes = f"{register.notes}\n{notes}" if register.notes else notes
        self._db.flush()

        logger.info(
            "Cash register closed",
            register_id=register.id,
            expected=str(expected),
            closing=str(closing_amount),
            difference=str(register.difference),
        )
        return register

    def summary(self, register_id: int) -> dict[str, Any]:
        register = self.get_register(register_id)
        income = sum(
            (m.amount for m in register.movements if m.movement_type == CashMovementType.INCOME), ZERO
        )
        expense = sum(
            (m.amount for m in register.movements if m.movement_type == CashMovementType.EXPENSE), ZERO
        )
        by_method: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for movement in register.movements:
            if movement.movement_type == CashMovementType.INCOME and movement.payment_method:
                by_method[movement.payment_method] += movement.amount

        return {
            "register_id": register.id,
            "register_number": register.register_number,
            "state": register.state,
            "opening_amount": float(register.opening_amount),
            "total_income": float(income),
            "total_expense": float(expense),
            "expected_amount": float(expected_amount(register)),
            "by_payment_method": {method: float(amount) for method, amount in sorted(by_method.items())},
            "movement_count": len(register.movements),
        }

    def history(
        self,
        register_number: int | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 50,
    ) -> list[CashRegister]:
        query = select(CashRegister).options(selectinload(CashRegister.user))
        if register_number is not None:
            query = query.where(CashRegister.register_number == register_number)
        if date_from is not None:
            query = query.where(CashRegister.opened_at >= date_from)
        if date_to is not None:
            query = query.where(CashRegister.opened_at <= date_to)
        query = query.order_by(CashRegister.opened_at.desc(), CashRegister.id.desc()).limit(limit)
        return list(self._db.scalars(query).all())
