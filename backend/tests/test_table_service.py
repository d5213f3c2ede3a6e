"""
Tests for TableAvailabilityTracker and TableAdminService.
"""

import pytest

from pos_shared.config.constants import OrderStatus, TableStatus
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    InvalidStateError,
    ValidationError,
)
from pos_shared.utils.schemas import OrderCreateRequest, OrderItemInput
from pos_api.models import Order
from pos_api.services.domain import (
    OrderLifecycleService,
    TableAdminService,
    TableAvailabilityTracker,
)


def _open_order(db_session, user, table, product) -> Order:
    order = OrderLifecycleService(db_session).create_order(
        OrderCreateRequest(
            table_id=table.id,
            items=[OrderItemInput(product_id=product.id, quantity=1)],
        ),
        actor_id=user.id,
    )
    db_session.commit()
    return order


class TestTableAvailabilityTracker:
    """Occupancy derived from the orders on a table."""

    def test_available_table_accepts_orders(self, db_session, seed_table):
        assert TableAvailabilityTracker(db_session).can_accept_orders(seed_table) is True

    def test_inactive_table_never_accepts_orders(self, db_session, seed_table):
        seed_table.soft_delete()
        db_session.commit()
        assert TableAvailabilityTracker(db_session).can_accept_orders(seed_table) is False

    def test_reserved_table_does_not_accept_orders(self, db_session, seed_table):
        seed_table.state = TableStatus.RESERVED
        db_session.commit()
        assert TableAvailabilityTracker(db_session).can_accept_orders(seed_table) is False

    def test_occupied_flag_without_open_order_is_stale(self, db_session, seed_table):
        """An 'ocupada' table with no pending or in-progress order accepts orders."""
        seed_table.state = TableStatus.OCCUPIED
        db_session.commit()
        assert TableAvailabilityTracker(db_session).can_accept_orders(seed_table) is True

    def test_mark_occupied_only_from_available(self, db_session, seed_table):
        tracker = TableAvailabilityTracker(db_session)
        assert tracker.mark_occupied(seed_table) is True
        assert seed_table.state == TableStatus.OCCUPIED
        assert tracker.mark_occupied(seed_table) is False

    def test_release_is_blocked_by_open_order(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """Releasing while an order is pending leaves the table occupied."""
        order = _open_order(db_session, waiter_user, seed_table, seed_products["cola"])
        tracker = TableAvailabilityTracker(db_session)

        assert tracker.active_order(seed_table).id == order.id
        assert tracker.release(seed_table) is False
        assert seed_table.state == TableStatus.OCCUPIED

    def test_release_sees_unflushed_state_change(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """A state change made in the same unit of work counts before commit."""
        order = _open_order(db_session, waiter_user, seed_table, seed_products["cola"])
        order.state = OrderStatus.DELIVERED

        assert TableAvailabilityTracker(db_session).release(seed_table) is True
        assert seed_table.state == TableStatus.AVAILABLE

    def test_latest_open_order_is_reported(self, db_session, waiter_user, seed_products, seed_table):
        """With several open orders the most recent one is the active one."""
        first = _open_order(db_session, waiter_user, seed_table, seed_products["cola"])
        seed_table.state = TableStatus.AVAILABLE
        db_session.commit()
        second = _open_order(db_session, waiter_user, seed_table, seed_products["cola"])

        active = TableAvailabilityTracker(db_session).active_order(seed_table)
        assert active.id == second.id
        assert active.id != first.id

    def test_reserve_requires_no_open_order(self, db_session, waiter_user, seed_products, seed_table):
        tracker = TableAvailabilityTracker(db_session)
        assert tracker.reserve(seed_table) is True
        assert seed_table.state == TableStatus.RESERVED

        seed_table.state = TableStatus.AVAILABLE
        db_session.commit()
        _open_order(db_session, waiter_user, seed_table, seed_products["cola"])
        assert tracker.reserve(seed_table) is False


class TestTableAdminService:
    """Admin CRUD and the dashboard snapshot."""

    def test_create_and_list(self, db_session):
        service = TableAdminService(db_session)
        service.create_table(number=7, capacity=6, location="VIP")
        service.create_table(number=3)
        db_session.commit()

        assert [t.number for t in service.list_tables()] == [3, 7]

    def test_duplicate_number_is_rejected(self, db_session, seed_table):
        with pytest.raises(DuplicateEntityError):
            TableAdminService(db_session).create_table(number=seed_table.number)

    def test_capacity_must_be_positive(self, db_session):
        with pytest.raises(ValidationError):
            TableAdminService(db_session).create_table(number=9, capacity=0)

    def test_delete_is_soft_and_blocked_by_open_order(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        service = TableAdminService(db_session)
        _open_order(db_session, waiter_user, seed_table, seed_products["cola"])

        with pytest.raises(ConflictError):
            service.delete_table(seed_table)

    def test_deleted_table_is_hidden(self, db_session, seed_table):
        service = TableAdminService(db_session)
        service.delete_table(seed_table)
        db_session.commit()

        assert service.list_tables() == []
        assert service.list_tables(include_inactive=True)[0].is_active is False

    def test_change_state_goes_through_tracker(self, db_session, seed_table):
        service = TableAdminService(db_session)
        service.change_state(seed_table, TableStatus.RESERVED)
        assert seed_table.state == TableStatus.RESERVED

        with pytest.raises(InvalidStateError):
            service.change_state(seed_table, TableStatus.OCCUPIED)

        service.change_state(seed_table, TableStatus.AVAILABLE)
        assert seed_table.state == TableStatus.AVAILABLE

    def test_cannot_free_table_with_open_order(self, db_session, waiter_user, seed_products, seed_table):
        _open_order(db_session, waiter_user, seed_table, seed_products["cola"])
        with pytest.raises(ConflictError):
            TableAdminService(db_session).change_state(seed_table, TableStatus.AVAILABLE)

    def test_snapshot_reports_active_orders(self, db_session, waiter_user, seed_products, seed_tables):
        order = _open_order(db_session, waiter_user, seed_tables[0], seed_products["cola"])

        snapshot = TableAdminService(db_session).snapshot()

        assert [item.number for item in snapshot] == [1, 2, 3]
        assert snapshot[0].state == TableStatus.OCCUPIED
        assert snapshot[0].active_order_id == order.id
        assert snapshot[0].can_accept_orders is False
        assert snapshot[1].can_accept_orders is True
        assert snapshot[1].active_order_id is None
