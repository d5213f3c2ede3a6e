"""
Table Domain Service.

TableAvailabilityTracker is the only code that writes Table.state.
Order creation, order status updates and the admin "change state"
action all go through it so occupancy follows the orders on the table.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pos_shared.config.constants import OrderStatus, TableStatus, validate_table_status
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    InvalidStateError,
    TableNotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import TableOutput, TableSnapshotItem
from pos_api.models import Order, Table

logger = get_logger(__name__)


class TableAvailabilityTracker:
    """Derives table occupancy from the orders placed on it."""

    def __init__(self, db: Session):
        self._db = db

    def active_order(self, table: Table) -> Order | None:
        """Most recently created order on the table still pending or in progress."""
        # Pending state changes must be visible to the query below
        self._db.flush()
        return self._db.scalar(
            select(Order)
            .where(
                Order.table_id == table.id,
                Order.state.in_(OrderStatus.OPEN),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(1)
        )

    def can_accept_orders(self, table: Table) -> bool:
        """
        Whether a new order may be placed on the table.

        An occupied table without an open order is a stale flag and
        accepts orders again.
        """
        if not table.is_active:
            return False
        if table.state == TableStatus.OCCUPIED:
            return self.active_order(table) is None
        if table.state == TableStatus.AVAILABLE:
            return True
        return False

    def mark_occupied(self, table: Table) -> bool:
        """Flip an active, available table to occupied. Returns False otherwise."""
        if not table.is_active or table.state != TableStatus.AVAILABLE:
            return False
        table.state = TableStatus.OCCUPIED
        logger.info("Table occupied", table_id=table.id, number=table.number)
        return True

    def release(self, table: Table) -> bool:
        """
        Make the table available unless an order on it is still open.

        A blocked release is not an error: the last order to close frees it.
        """
        if self.active_order(table) is not None:
            logger.debug("Table release blocked by open order", table_id=table.id)
            return False
        table.state = TableStatus.AVAILABLE
        logger.info("Table released", table_id=table.id, number=table.number)
        return True

    def reserve(self, table: Table) -> bool:
        """Reserve an active table that has no open order."""
        if not table.is_active or self.active_order(table) is not None:
            return False
        table.state = TableStatus.RESERVED
        return True


class TableAdminService:
    """Table administration for the admin panel."""

    def __init__(self, db: Session):
        self._db = db
        self._tracker = TableAvailabilityTracker(db)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_table(self, table_id: int, include_inactive: bool = True) -> Table:
        table = self._db.get(Table, table_id)
        if table is None or (not include_inactive and not table.is_active):
            raise TableNotFoundError(table_id)
        return table

    def list_tables(
        self,
        state: str | None = None,
        include_inactive: bool = False,
    ) -> list[Table]:
        query = select(Table)
        if not include_inactive:
            query = query.where(Table.is_active.is_(True))
        if state is not None:
            query = query.where(Table.state == state)
        return list(self._db.scalars(query.order_by(Table.number.asc(), Table.id.asc())).all())

    def to_output(self, table: Table) -> TableOutput:
        active = self._tracker.active_order(table)
        return TableOutput(
            id=table.id,
            number=table.number,
            capacity=table.capacity,
            state=table.state,
            location=table.location,
            notes=table.notes,
            is_active=table.is_active,
            can_accept_orders=self._tracker.can_accept_orders(table),
            active_order_id=active.id if active else None,
            active_order_number=active.order_number if active else None,
        )

    def snapshot(self) -> list[TableSnapshotItem]:
        """Current state of every active table; dashboards poll this as the truth."""
        result = []
        for table in self.list_tables():
            active = self._tracker.active_order(table)
            result.append(
                TableSnapshotItem(
                    id=table.id,
                    number=table.number,
                    state=table.state,
                    can_accept_orders=self._tracker.can_accept_orders(table),
                    active_order_id=active.id if active else None,
                )
            )
        return result

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _ensure_unique_number(self, number: int, exclude_id: int | None = None) -> None:
        query = select(func.count(Table.id)).where(
            Table.number == number,
            Table.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.where(Table.id != exclude_id)
        if self._db.scalar(query):
            raise DuplicateEntityError("Mesa", str(number))

    def create_table(
        self,
        number: int,
        capacity: int = 4,
        location: str | None = None,
        notes: str | None = None,
    ) -> Table:
        if capacity < 1:
            raise ValidationError("La capacidad debe ser al menos 1", field="capacity")
        self._ensure_unique_number(number)

        table = Table(
            number=number,
            capacity=capacity,
            location=location,
            notes=notes,
            state=TableStatus.AVAILABLE,
        )
        self._db.add(table)
        self._db.flush()
        logger.info("Table created", table_id=table.id, number=number)
        return table

    def update_table(
        self,
        table: Table,
        number: int | None = None,
        capacity: int | None = None,
        location: str | None = None,
        notes: str | None = None,
        state: str | None = None,
        is_active: bool | None = None,
    ) -> Table:
        if number is not None and number != table.number:
            self._ensure_unique_number(number, exclude_id=table.id)
            table.number = number
        if capacity is not None:
            if capacity < 1:
                raise ValidationError("La capacidad debe ser al menos 1", field="capacity")
            table.capacity = capacity
        if location is not None:
            table.location = location
        if notes is not None:
            table.notes = notes
        if is_active is not None:
            if is_active:
                table.restore()
            else:
                self._ensure_no_active_order(table)
                table.soft_delete()
        if state is not None and state != table.state:
            if self._tracker.active_order(table) is not None:
                raise InvalidStateError(
                    "Mesa", table.state, table_id=table.id, reason="active_order"
                )
            self.change_state(table, state)
        return table

    def _ensure_no_active_order(self, table: Table) -> None:
        if self._tracker.active_order(table) is not None:
            raise ConflictError(
                f"La mesa {table.number} tiene una orden activa", table_id=table.id
            )

    def delete_table(self, table: Table) -> None:
        """Deactivate the table; past orders keep referencing it."""
        self._ensure_no_active_order(table)
        table.soft_delete()
        logger.info("Table deleted", table_id=table.id, number=table.number)

    def change_state(self, table: Table, new_state: str) -> Table:
        if not validate_table_status(new_state):
            raise ValidationError(f"Estado de mesa inválido: {new_state}", field="state")

        if new_state == TableStatus.OCCUPIED:
            if not self._tracker.mark_occupied(table):
                raise InvalidStateError("Mesa", table.state, [TableStatus.AVAILABLE])
        elif new_state == TableStatus.AVAILABLE:
            if not self._tracker.release(table):
                raise ConflictError(
                    f"La mesa {table.number} tiene una orden activa", table_id=table.id
                )
        else:
            if not self._tracker.reserve(table):
                raise ConflictError(
                    f"La mesa {table.number} no se puede reservar", table_id=table.id
                )
        return table
