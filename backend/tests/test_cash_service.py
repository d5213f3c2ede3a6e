"""
Tests for CashService domain service.
"""

from decimal import Decimal

import pytest

from pos_shared.config.constants import CashMovementType, CashRegisterStatus, PaymentMethod
from pos_shared.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ValidationError,
)
from pos_api.services.domain import CashService
from pos_api.services.domain.cash_service import expected_amount


class TestOpenRegister:
    def test_open_register(self, db_session, cashier_user):
        service = CashService(db_session)
        register = service.open_register(2, Decimal("150.00"), actor_id=cashier_user.id)
        db_session.commit()

        assert register.state == CashRegisterStatus.OPEN
        assert register.register_number == 2
        assert service.current_register(cashier_user.id).id == register.id

    @pytest.mark.parametrize("number", [0, 4])
    def test_register_number_out_of_range(self, db_session, cashier_user, number):
        with pytest.raises(ValidationError):
            CashService(db_session).open_register(number, Decimal("0"), actor_id=cashier_user.id)

    def test_negative_float_is_rejected(self, db_session, cashier_user):
        with pytest.raises(ValidationError):
            CashService(db_session).open_register(1, Decimal("-1"), actor_id=cashier_user.id)

    def test_register_already_open(self, db_session, cashier_user, admin_user):
        """The same physical register cannot be opened twice."""
        service = CashService(db_session)
        service.open_register(1, Decimal("0"), actor_id=cashier_user.id)
        db_session.commit()

        with pytest.raises(ConflictError):
            service.open_register(1, Decimal("0"), actor_id=admin_user.id)

    def test_cashier_with_open_register(self, db_session, cashier_user):
        service = CashService(db_session)
        service.open_register(1, Decimal("0"), actor_id=cashier_user.id)
        db_session.commit()

        with pytest.raises(ConflictError):
            service.open_register(2, Decimal("0"), actor_id=cashier_user.id)


class TestMovementsAndClose:
    @pytest.fixture
    def register(self, db_session, cashier_user):
        register = CashService(db_session).open_register(1, Decimal("100.00"), actor_id=cashier_user.id)
        db_session.commit()
        return register

    def test_expected_amount_nets_movements(self, db_session, cashier_user, register):
        service = CashService(db_session)
        service.record_movement(register.id, CashMovementType.INCOME, Decimal("40.00"), "Venta", cashier_user.id)
        service.record_movement(register.id, CashMovementType.EXPENSE, Decimal("15.50"), "Hielo", cashier_user.id)
        db_session.commit()

        assert expected_amount(service.get_register(register.id)) == Decimal("124.50")

    def test_movement_amount_must_be_positive(self, db_session, cashier_user, register):
        with pytest.raises(ValidationError):
            CashService(db_session).record_movement(
                register.id, CashMovementType.EXPENSE, Decimal("0"), "Nada", cashier_user.id
            )

    def test_unknown_movement_type(self, db_session, cashier_user, register):
        with pytest.raises(ValidationError):
            CashService(db_session).record_movement(
                register.id, "retiro", Decimal("5"), "Retiro", cashier_user.id
            )

    def test_close_records_difference(self, db_session, cashier_user, register):
        """Counted 130 against an expected 140 leaves a -10 difference."""
        service = CashService(db_session)
        service.record_movement(register.id, CashMovementType.INCOME, Decimal("40.00"), "Venta", cashier_user.id)

        closed = service.close_register(register.id, Decimal("130.00"), actor_id=cashier_user.id)
        db_session.commit()

        assert closed.state == CashRegisterStatus.CLOSED
        assert closed.expected_amount == Decimal("140.00")
        assert closed.difference == Decimal("-10.00")
        assert closed.closed_at is not None
        assert service.current_register(cashier_user.id) is None

    def test_closed_register_takes_no_movements(self, db_session, cashier_user, register):
        service = CashService(db_session)
        service.close_register(register.id, Decimal("100.00"), actor_id=cashier_user.id)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.record_movement(register.id, CashMovementType.INCOME, Decimal("1"), "Tarde", cashier_user.id)
        with pytest.raises(InvalidStateError):
            service.close_register(register.id, Decimal("100.00"), actor_id=cashier_user.id)

    def test_only_owner_or_admin_closes(self, db_session, register, waiter_user, admin_user):
        service = CashService(db_session)
        with pytest.raises(ForbiddenError):
            service.close_register(register.id, Decimal("100.00"), actor_id=waiter_user.id)

        closed = service.close_register(register.id, Decimal("100.00"), actor_id=admin_user.id, is_admin=True)
        assert closed.difference == Decimal("0")

    def test_summary_groups_income_by_payment_method(self, db_session, cashier_user, register):
        service = CashService(db_session)
        register = service.get_register(register.id)
        service.add_movement(
            register, CashMovementType.INCOME, Decimal("20"), "Orden 1", cashier_user.id,
            payment_method=PaymentMethod.CASH,
        )
        service.add_movement(
            register, CashMovementType.INCOME, Decimal("35"), "Orden 2", cashier_user.id,
            payment_method=PaymentMethod.CARD,
        )
        service.add_movement(
            register, CashMovementType.INCOME, Decimal("5"), "Orden 3", cashier_user.id,
            payment_method=PaymentMethod.CASH,
        )
        service.add_movement(register, CashMovementType.EXPENSE, Decimal("10"), "Limones", cashier_user.id)
        db_session.commit()

        summary = service.summary(register.id)

        assert summary["total_income"] == 60.0
        assert summary["total_expense"] == 10.0
        assert summary["expected_amount"] == 150.0
        assert summary["by_payment_method"] == {PaymentMethod.CASH: 25.0, PaymentMethod.CARD: 35.0}
        assert summary["movement_count"] == 4

    def test_history_filters_by_number(self, db_session, cashier_user, admin_user, register):
        CashService(db_session).open_register(3, Decimal("0"), actor_id=admin_user.id)
        db_session.commit()

        history = CashService(db_session).history(register_number=3)
        assert [r.register_number for r in history] == [3]
        assert len(CashService(db_session).history()) == 2
