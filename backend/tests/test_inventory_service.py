"""
Tests for the inventory ledger.
"""

from decimal import Decimal

import pytest

from pos_shared.config.constants import MovementType
from pos_shared.utils.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    ValidationError,
)
from pos_api.models import Product
from pos_api.services.domain import InventoryService
from pos_api.services.domain.inventory_service import signed_quantity


class TestSignedQuantity:
    @pytest.mark.parametrize(
        "movement_type,quantity,expected",
        [
            (MovementType.IN, 5, 5),
            (MovementType.IN, -5, 5),
            (MovementType.RETURN, 2, 2),
            (MovementType.OUT, 3, -3),
            (MovementType.SALE, 1, -1),
            (MovementType.COMBO_SALE, 1, -1),
            (MovementType.ADJUSTMENT, -4, -4),
            (MovementType.ADJUSTMENT, 4, 4),
        ],
    )
    def test_sign_follows_type(self, movement_type, quantity, expected):
        assert signed_quantity(movement_type, quantity) == expected

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            signed_quantity("merma", 1)


class TestRecordMovement:
    def test_entry_adds_stock_and_writes_ledger(self, db_session, admin_user, seed_products):
        pisco = seed_products["pisco"]
        movement = InventoryService(db_session).record_movement(
            pisco.id, 12, MovementType.IN, actor_id=admin_user.id, note="Compra proveedor"
        )
        db_session.commit()

        assert movement.quantity == 12
        assert pisco.stock.quantity == 22

    def test_adjustment_down(self, db_session, admin_user, seed_products):
        cola = seed_products["cola"]
        InventoryService(db_session).record_movement(cola.id, -5, MovementType.ADJUSTMENT, actor_id=admin_user.id)
        assert cola.stock.quantity == 15

    def test_stock_never_goes_negative(self, db_session, admin_user, seed_products):
        ron = seed_products["ron"]
        with pytest.raises(InsufficientStockError):
            InventoryService(db_session).record_movement(ron.id, 2, MovementType.OUT, actor_id=admin_user.id)
        assert ron.stock.quantity == 1

    def test_sales_are_not_manual(self, db_session, admin_user, seed_products):
        with pytest.raises(ValidationError):
            InventoryService(db_session).record_movement(
                seed_products["pisco"].id, 1, MovementType.SALE, actor_id=admin_user.id
            )

    def test_zero_quantity(self, db_session, admin_user, seed_products):
        with pytest.raises(ValidationError):
            InventoryService(db_session).record_movement(
                seed_products["pisco"].id, 0, MovementType.IN, actor_id=admin_user.id
            )

    def test_combo_stock_is_derived(self, db_session, admin_user, seed_combo):
        with pytest.raises(ValidationError):
            InventoryService(db_session).record_movement(seed_combo.id, 5, MovementType.IN, actor_id=admin_user.id)

    def test_unknown_product(self, db_session, admin_user):
        with pytest.raises(ProductNotFoundError):
            InventoryService(db_session).record_movement(999, 1, MovementType.IN, actor_id=admin_user.id)

    def test_product_without_stock_row_starts_at_zero(self, db_session, admin_user, seed_category):
        limon = Product(code="LIM-01", name="Limón", price=Decimal("0.50"), category=seed_category)
        db_session.add(limon)
        db_session.flush()
        InventoryService(db_session).record_movement(limon.id, 30, MovementType.IN, actor_id=admin_user.id)
        db_session.commit()
        db_session.refresh(limon)

        assert limon.stock.quantity == 30

    def test_list_movements_filters(self, db_session, admin_user, seed_products):
        service = InventoryService(db_session)
        service.record_movement(seed_products["pisco"].id, 3, MovementType.IN, actor_id=admin_user.id)
        service.record_movement(seed_products["cola"].id, 1, MovementType.OUT, actor_id=admin_user.id)
        db_session.commit()

        outs = service.list_movements(movement_type=MovementType.OUT)
        assert [(m.product_id, m.quantity) for m in outs] == [(seed_products["cola"].id, -1)]
        assert len(service.list_movements(product_id=seed_products["pisco"].id)) == 1


class TestThresholds:
    def test_set_thresholds(self, db_session, seed_products):
        row = InventoryService(db_session).set_thresholds(
            seed_products["cola"].id, min_stock=8, max_stock=60, location="Barra"
        )
        assert (row.min_stock, row.max_stock, row.location) == (8, 60, "Barra")

    def test_max_below_min(self, db_session, seed_products):
        with pytest.raises(ValidationError):
            InventoryService(db_session).set_thresholds(seed_products["cola"].id, min_stock=10, max_stock=5)

    def test_combo_has_no_thresholds(self, db_session, seed_combo):
        with pytest.raises(ValidationError):
            InventoryService(db_session).set_thresholds(seed_combo.id, min_stock=1)
