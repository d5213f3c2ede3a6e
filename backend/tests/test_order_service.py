"""
Tests for OrderLifecycleService domain service.
"""

from decimal import Decimal

import pytest
from sqlalchemy import text

from pos_shared.config.constants import (
    OrderHistoryAction,
    OrderStatus,
    TableStatus,
    get_allowed_order_transitions,
)
from pos_shared.utils.exceptions import (
    AlreadyPaidError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    ProductNotFoundError,
    StaleOrderError,
    ValidationError,
)
from pos_shared.utils.schemas import OrderCreateRequest, OrderItemInput
from pos_api.models import Order, OrderHistory
from pos_api.services.domain import (
    OrderLifecycleService,
    format_order_number,
    validate_order_transition,
)


def _create(db_session, user, table=None, items=None, **kwargs) -> Order:
    request = OrderCreateRequest(
        table_id=table.id if table is not None else None,
        items=items,
        **kwargs,
    )
    order = OrderLifecycleService(db_session).create_order(request, actor_id=user.id)
    db_session.commit()
    return order


class TestTransitionTable:
    """Tests for validate_order_transition."""

    @pytest.mark.parametrize(
        "current,new",
        [
            (OrderStatus.PENDING, OrderStatus.IN_PROGRESS),
            (OrderStatus.PENDING, OrderStatus.DELIVERED),
            (OrderStatus.IN_PROGRESS, OrderStatus.READY),
            (OrderStatus.READY, OrderStatus.DELIVERED),
            (OrderStatus.READY, OrderStatus.CANCELED),
        ],
    )
    def test_forward_moves_are_allowed(self, current, new):
        """Forward moves, skipping steps included, pass validation."""
        validate_order_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            (OrderStatus.READY, OrderStatus.PENDING),
            (OrderStatus.IN_PROGRESS, OrderStatus.IN_PROGRESS),
            (OrderStatus.DELIVERED, OrderStatus.CANCELED),
            (OrderStatus.CANCELED, OrderStatus.PENDING),
        ],
    )
    def test_backward_same_and_terminal_moves_are_rejected(self, current, new):
        """Backward, same-state and terminal-state moves raise."""
        with pytest.raises(InvalidTransitionError):
            validate_order_transition(current, new)

    def test_allowed_transitions(self):
        """Terminal states have nowhere to go."""
        assert get_allowed_order_transitions(OrderStatus.READY) == [
            OrderStatus.DELIVERED,
            OrderStatus.CANCELED,
        ]
        assert get_allowed_order_transitions(OrderStatus.DELIVERED) == []
        assert get_allowed_order_transitions("desconocido") == []

    def test_order_number_format(self):
        """Order numbers read ORD-YYYYMMDD-NNNNNN."""
        from datetime import datetime, timezone

        when = datetime(2026, 3, 7, tzinfo=timezone.utc)
        assert format_order_number(42, when) == "ORD-20260307-000042"


class TestCreateOrder:
    """Tests for order creation."""

    def test_creates_pending_order_with_catalog_prices(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """Line prices come from the catalog and the table becomes occupied."""
        order = _create(
            db_session,
            waiter_user,
            seed_table,
            items=[
                OrderItemInput(product_id=seed_products["pisco"].id, quantity=2),
                OrderItemInput(product_id=seed_products["cola"].id, quantity=1),
            ],
        )

        assert order.state == OrderStatus.PENDING
        assert order.subtotal == Decimal("56.50")
        assert order.total == order.subtotal
        assert order.order_number.startswith("ORD-")
        assert order.order_number.endswith(f"-{order.id:06d}")
        assert seed_table.state == TableStatus.OCCUPIED
        assert [h.action for h in order.history] == [OrderHistoryAction.CREATED]

    def test_take_away_order_has_no_table(self, db_session, waiter_user, seed_products):
        """An order without table_id is a take-away order."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        assert order.table_id is None
        assert order.history[0].detail == "Orden creada para llevar"

    def test_unknown_product_is_rejected(self, db_session, waiter_user, seed_products):
        """A product id that does not exist raises ProductNotFoundError."""
        with pytest.raises(ProductNotFoundError):
            _create(db_session, waiter_user, items=[OrderItemInput(product_id=9999, quantity=1)])

    def test_inactive_product_is_rejected(self, db_session, waiter_user, seed_products):
        """Soft-deleted products cannot be ordered."""
        seed_products["cola"].is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            _create(
                db_session,
                waiter_user,
                items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
            )

    def test_unavailable_combo_is_rejected(self, db_session, waiter_user, seed_products, seed_combo):
        """A combo whose components ran out cannot be ordered."""
        seed_products["ron"].stock.quantity = 0
        db_session.commit()

        with pytest.raises(ValidationError):
            _create(db_session, waiter_user, items=[OrderItemInput(product_id=seed_combo.id, quantity=1)])

    def test_reserved_table_cannot_take_orders(self, db_session, waiter_user, seed_products, seed_table):
        """Only available tables, or occupied ones without open orders, accept orders."""
        seed_table.state = TableStatus.RESERVED
        db_session.commit()

        with pytest.raises(ConflictError):
            _create(
                db_session,
                waiter_user,
                seed_table,
                items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
            )

    def test_second_order_on_busy_table_is_rejected(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """An occupied table with an open order refuses another order."""
        items = [OrderItemInput(product_id=seed_products["cola"].id, quantity=1)]
        _create(db_session, waiter_user, seed_table, items=items)

        with pytest.raises(ConflictError):
            _create(db_session, waiter_user, seed_table, items=items)

    def test_free_complement_costs_nothing(self, db_session, waiter_user, seed_products):
        """A free complement of a principal on the order is priced at zero."""
        order = _create(
            db_session,
            waiter_user,
            items=[
                OrderItemInput(product_id=seed_products["pisco"].id, quantity=1),
                OrderItemInput(
                    product_id=seed_products["hielo"].id,
                    quantity=1,
                    is_free_complement=True,
                    complement_of_id=seed_products["pisco"].id,
                ),
            ],
        )
        free = [item for item in order.items if item.is_free_complement]
        assert len(free) == 1
        assert free[0].subtotal == Decimal("0")
        assert free[0].unit_price == Decimal("2.00")
        assert order.total == Decimal("25.00")

    def test_free_complement_without_principal_is_rejected(self, db_session, waiter_user, seed_products):
        """A free complement whose principal is not on the order raises."""
        with pytest.raises(ValidationError):
            _create(
                db_session,
                waiter_user,
                items=[
                    OrderItemInput(
                        product_id=seed_products["hielo"].id,
                        quantity=1,
                        is_free_complement=True,
                        complement_of_id=seed_products["pisco"].id,
                    ),
                ],
            )

    def test_bartender_must_have_bartender_role(self, db_session, waiter_user, seed_products):
        """Assigning a non-bartender at creation raises."""
        with pytest.raises(ValidationError):
            _create(
                db_session,
                waiter_user,
                items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
                bartender_id=waiter_user.id,
            )


class TestUpdateStatus:
    """Tests for state transitions."""

    def test_delivering_releases_the_table(self, db_session, waiter_user, seed_products, seed_table):
        """Scenario: pending order delivered, table becomes available again."""
        order = _create(
            db_session,
            waiter_user,
            seed_table,
            items=[OrderItemInput(product_id=seed_products["pisco"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)

        service.update_status(order.id, OrderStatus.DELIVERED, actor_id=waiter_user.id)
        db_session.commit()

        assert service.get_order(order.id).state == OrderStatus.DELIVERED
        assert seed_table.state == TableStatus.AVAILABLE

    def test_history_records_each_transition(self, db_session, waiter_user, seed_products):
        """Every state change appends 'Estado actualizado a: X'."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.update_status(order.id, OrderStatus.IN_PROGRESS, actor_id=waiter_user.id)
        service.update_status(order.id, OrderStatus.READY, actor_id=waiter_user.id)
        db_session.commit()

        history = service.get_history(order.id)
        assert [h.detail for h in history][1:] == [
            "Estado actualizado a: en_proceso",
            "Estado actualizado a: lista",
        ]
        assert all(h.user_id == waiter_user.id for h in history)

    def test_table_stays_occupied_while_another_order_is_open(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """A release is blocked while a second order on the table is still open."""
        items = [OrderItemInput(product_id=seed_products["cola"].id, quantity=1)]
        first = _create(db_session, waiter_user, seed_table, items=items)
        service = OrderLifecycleService(db_session)
        service.update_status(first.id, OrderStatus.DELIVERED, actor_id=waiter_user.id)
        db_session.commit()
        second = _create(db_session, waiter_user, seed_table, items=items)

        # Put the first one back on the table as if it were still open
        db_session.execute(
            text("UPDATE bar_order SET state = :state WHERE id = :id"),
            {"state": OrderStatus.PENDING, "id": first.id},
        )
        db_session.commit()

        service.update_status(second.id, OrderStatus.CANCELED, actor_id=waiter_user.id)
        db_session.commit()

        assert seed_table.state == TableStatus.OCCUPIED

    def test_ready_order_does_not_block_release(self, db_session, waiter_user, seed_products, seed_table):
        """Only pending and in-progress orders keep a table occupied."""
        items = [OrderItemInput(product_id=seed_products["cola"].id, quantity=1)]
        order = _create(db_session, waiter_user, seed_table, items=items)
        service = OrderLifecycleService(db_session)
        service.update_status(order.id, OrderStatus.READY, actor_id=waiter_user.id)
        db_session.commit()

        assert service._tracker.active_order(seed_table) is None

    def test_terminal_order_cannot_move(self, db_session, waiter_user, seed_products):
        """Delivered orders reject any further transition."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.update_status(order.id, OrderStatus.DELIVERED, actor_id=waiter_user.id)
        db_session.commit()

        with pytest.raises(InvalidTransitionError):
            service.update_status(order.id, OrderStatus.CANCELED, actor_id=waiter_user.id)

    def test_unknown_state_is_rejected(self, db_session, waiter_user, seed_products):
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        with pytest.raises(ValidationError):
            OrderLifecycleService(db_session).update_status(order.id, "servida", actor_id=waiter_user.id)

    def test_stale_expected_version_is_rejected(self, db_session, waiter_user, seed_products):
        """Scenario: two clients act on the same version; the second one loses."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        seen = order.version

        service.update_status(order.id, OrderStatus.READY, actor_id=waiter_user.id, expected_version=seen)
        db_session.commit()

        with pytest.raises(StaleOrderError):
            service.update_status(
                order.id, OrderStatus.CANCELED, actor_id=waiter_user.id, expected_version=seen
            )
        assert service.get_order(order.id).state == OrderStatus.READY

    def test_concurrent_writer_is_detected_on_flush(self, db_session, waiter_user, seed_products):
        """A row changed behind the session's back fails the version check."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.get_order(order.id)

        db_session.connection().execute(
            text("UPDATE bar_order SET version = version + 1, state = :state WHERE id = :id"),
            {"state": OrderStatus.CANCELED, "id": order.id},
        )

        with pytest.raises(StaleOrderError):
            service.update_status(order.id, OrderStatus.DELIVERED, actor_id=waiter_user.id)

    def test_version_increases_on_every_write(self, db_session, waiter_user, seed_products):
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        before = order.version
        OrderLifecycleService(db_session).update_status(
            order.id, OrderStatus.IN_PROGRESS, actor_id=waiter_user.id
        )
        db_session.commit()
        assert order.version == before + 1


class TestListActive:
    """Tests for the bar dashboard query."""

    def test_ready_first_then_in_progress_then_pending(self, db_session, waiter_user, seed_products):
        """Active orders are sorted by state priority, terminal ones excluded."""
        items = [OrderItemInput(product_id=seed_products["cola"].id, quantity=1)]
        pending = _create(db_session, waiter_user, items=items)
        in_progress = _create(db_session, waiter_user, items=items)
        ready = _create(db_session, waiter_user, items=items)
        delivered = _create(db_session, waiter_user, items=items)

        service = OrderLifecycleService(db_session)
        service.update_status(in_progress.id, OrderStatus.IN_PROGRESS, actor_id=waiter_user.id)
        service.update_status(ready.id, OrderStatus.READY, actor_id=waiter_user.id)
        service.update_status(delivered.id, OrderStatus.DELIVERED, actor_id=waiter_user.id)
        db_session.commit()

        assert [o.id for o in service.list_active()] == [ready.id, in_progress.id, pending.id]


class TestBartenderAndPayment:
    """Tests for bartender assignment, the paid flag and deletion."""

    def test_assign_bartender(self, db_session, waiter_user, bartender_user, seed_products):
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.assign_bartender(order.id, bartender_user.id, actor_id=bartender_user.id)
        db_session.commit()

        assert service.get_order(order.id).bartender_id == bartender_user.id
        assert service.bartender_workload() == [
            {"bartender_id": bartender_user.id, "name": bartender_user.name, "open_orders": 1}
        ]

    def test_cannot_assign_bartender_to_closed_order(
        self, db_session, waiter_user, bartender_user, seed_products
    ):
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.update_status(order.id, OrderStatus.CANCELED, actor_id=waiter_user.id)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.assign_bartender(order.id, bartender_user.id, actor_id=bartender_user.id)

    def test_mark_paid_leaves_state_and_table_alone(
        self, db_session, waiter_user, seed_products, seed_table
    ):
        """The paid flag does not close the order nor free the table."""
        order = _create(
            db_session,
            waiter_user,
            seed_table,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)
        service.mark_paid(order.id, actor_id=waiter_user.id)
        db_session.commit()

        order = service.get_order(order.id)
        assert order.paid is True
        assert order.state == OrderStatus.PENDING
        assert seed_table.state == TableStatus.OCCUPIED

        with pytest.raises(AlreadyPaidError):
            service.mark_paid(order.id, actor_id=waiter_user.id)

    def test_only_cancelled_orders_can_be_deleted(self, db_session, waiter_user, seed_products):
        """Deleting removes lines and history; non-cancelled orders are protected."""
        order = _create(
            db_session,
            waiter_user,
            items=[OrderItemInput(product_id=seed_products["cola"].id, quantity=1)],
        )
        service = OrderLifecycleService(db_session)

        with pytest.raises(ForbiddenError):
            service.destroy(order.id)

        service.update_status(order.id, OrderStatus.CANCELED, actor_id=waiter_user.id)
        db_session.commit()
        service.destroy(order.id)
        db_session.commit()

        assert db_session.get(Order, order.id) is None
        assert db_session.query(OrderHistory).filter_by(order_id=order.id).count() == 0
