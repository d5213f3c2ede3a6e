"""
Tests for CatalogService: categories, products, combos and complements.
"""

from decimal import Decimal

import pytest

from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import ComboComponentInput, ComplementInput
from pos_api.models import Product
from pos_api.services.domain import CatalogService
from pos_api.services.domain.catalog_service import combo_output, product_output


class TestCategories:
    def test_names_are_unique_ignoring_case(self, db_session, seed_category):
        with pytest.raises(DuplicateEntityError):
            CatalogService(db_session).create_category("tragos")

    def test_category_in_use_cannot_be_deleted(self, db_session, seed_category, seed_products):
        with pytest.raises(ConflictError):
            CatalogService(db_session).delete_category(seed_category)

    def test_update_and_delete_empty_category(self, db_session):
        service = CatalogService(db_session)
        category = service.create_category("Piqueos", color="#00ff00")
        service.update_category(category, {"name": "Piqueos calientes"})
        assert category.name == "Piqueos calientes"

        service.delete_category(category)
        db_session.commit()
        assert service.list_categories() == []


class TestProducts:
    def test_new_product_starts_with_empty_stock(self, db_session, seed_category):
        product = CatalogService(db_session).create_product(
            {"code": "CHI-01", "name": "Chilcano", "price": Decimal("18.00"), "category_id": seed_category.id}
        )
        db_session.commit()

        assert product.stock.quantity == 0
        output = product_output(product)
        assert output.stock == 0
        assert output.category_name == "Tragos"

    def test_duplicate_code(self, db_session, seed_products):
        with pytest.raises(DuplicateEntityError):
            CatalogService(db_session).create_product({"code": "PIS-01", "name": "Otro pisco"})

    def test_negative_price(self, db_session):
        with pytest.raises(ValidationError):
            CatalogService(db_session).create_product({"code": "X-1", "name": "X", "price": Decimal("-1")})

    def test_unknown_category(self, db_session):
        with pytest.raises(NotFoundError):
            CatalogService(db_session).create_product({"code": "X-1", "name": "X", "category_id": 777})

    def test_search_and_filters(self, db_session, seed_products, seed_combo):
        service = CatalogService(db_session)
        assert [p.code for p in service.list_products(search="pis")] == ["PIS-01"]
        assert [p.code for p in service.list_products(combos=True)] == ["CMB-01"]

    def test_referenced_product_is_only_deactivated(self, db_session, seed_products, seed_combo):
        """cola is a combo component, so it must survive as inactive."""
        service = CatalogService(db_session)
        assert service.delete_product(seed_products["cola"]) is False
        assert seed_products["cola"].is_active is False

    def test_unreferenced_product_is_deleted(self, db_session, seed_category):
        service = CatalogService(db_session)
        product = service.create_product({"code": "TMP-01", "name": "Temporal"})
        db_session.commit()
        product_id = product.id

        assert service.delete_product(product) is True
        db_session.commit()
        assert db_session.get(Product, product_id) is None


class TestCombos:
    def test_create_combo_reports_availability(self, db_session, seed_products):
        service = CatalogService(db_session)
        combo = service.create_combo(
            {"code": "CMB-02", "name": "Balde de Pilsen", "price": Decimal("60.00")},
            [ComboComponentInput(product_id=seed_products["cola"].id, quantity=6)],
        )
        db_session.commit()

        output = combo_output(combo)
        assert output.is_combo is True
        assert output.available is True
        assert output.stock == 1
        assert output.components[0].quantity == 6
        assert combo.stock is None

    def test_combo_cannot_contain_a_combo(self, db_session, seed_combo):
        with pytest.raises(ValidationError):
            CatalogService(db_session).create_combo(
                {"code": "CMB-03", "name": "Mega combo"},
                [ComboComponentInput(product_id=seed_combo.id, quantity=1)],
            )

    def test_repeated_component(self, db_session, seed_products):
        cola = seed_products["cola"].id
        with pytest.raises(ValidationError):
            CatalogService(db_session).create_combo(
                {"code": "CMB-03", "name": "Doble"},
                [ComboComponentInput(product_id=cola), ComboComponentInput(product_id=cola)],
            )

    def test_unknown_component(self, db_session):
        with pytest.raises(ProductNotFoundError):
            CatalogService(db_session).create_combo(
                {"code": "CMB-03", "name": "Fantasma"},
                [ComboComponentInput(product_id=4242)],
            )

    def test_update_replaces_components(self, db_session, seed_products, seed_combo):
        """Swapping ron for pisco makes the combo depend on pisco stock only."""
        combo = CatalogService(db_session).update_combo(
            seed_combo,
            {"name": "Combo Pisco"},
            [ComboComponentInput(product_id=seed_products["pisco"].id, quantity=2)],
        )
        db_session.commit()

        assert combo.name == "Combo Pisco"
        assert [(c.product_id, c.quantity) for c in combo.combo_components] == [
            (seed_products["pisco"].id, 2)
        ]

    def test_plain_product_is_not_a_combo(self, db_session, seed_products):
        with pytest.raises(ValidationError):
            CatalogService(db_session).update_combo(seed_products["pisco"], {}, [])


class TestComplements:
    def test_set_complements_replaces_list(self, db_session, seed_products):
        service = CatalogService(db_session)
        result = service.set_complements(
            seed_products["pisco"].id,
            [ComplementInput(complement_id=seed_products["cola"].id, is_mandatory=True)],
        )
        db_session.commit()

        assert [(c.complement_id, c.is_mandatory, c.is_free) for c in result] == [
            (seed_products["cola"].id, True, False)
        ]
        assert len(service.get_complements(seed_products["pisco"].id)) == 1

    def test_product_cannot_complement_itself(self, db_session, seed_products):
        pisco = seed_products["pisco"].id
        with pytest.raises(ValidationError):
            CatalogService(db_session).set_complements(pisco, [ComplementInput(complement_id=pisco)])
