"""
Currency Domain Service.

Prices are stored in the base currency (PEN). Other currencies carry a
rate relative to it; exactly one currency is the display default.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_shared.config.constants import BASE_CURRENCY_CODE, SettingKeys
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import NotFoundError, ValidationError
from pos_api.models import Currency
from .configuration_service import ConfigurationService

logger = get_logger(__name__)


def _quantum(decimals: int) -> Decimal:
    return Decimal(1).scaleb(-decimals)


def convert_from_base(amount: Decimal, currency: Currency) -> Decimal:
    """Base-currency amount expressed in `currency`."""
    value = Decimal(amount) * currency.exchange_rate
    return value.quantize(_quantum(currency.decimals), rounding=ROUND_HALF_UP)


def convert_to_base(amount: Decimal, currency: Currency) -> Decimal:
    """Amount in `currency` expressed in the base currency."""
    value = Decimal(amount) / currency.exchange_rate
    return value.quantize(_quantum(2), rounding=ROUND_HALF_UP)


class CurrencyService:
    """List, switch and edit currencies."""

    def __init__(self, db: Session):
        self._db = db
        self._settings = ConfigurationService(db)

    def list_currencies(self, active_only: bool = False) -> list[Currency]:
        query = select(Currency)
        if active_only:
            query = query.where(Currency.is_active.is_(True))
        return list(self._db.scalars(query.order_by(Currency.code.asc())).all())

    def get_by_code(self, code: str) -> Currency:
        currency = self._db.scalar(select(Currency).where(Currency.code == code.upper()))
        if currency is None:
            raise NotFoundError("Moneda", code)
        return currency

    def current_currency(self) -> Currency | None:
        """Default currency per settings, else the row flagged default."""
        code = self._settings.get(SettingKeys.DEFAULT_CURRENCY, BASE_CURRENCY_CODE)
        currency = self._db.scalar(
            select(Currency).where(Currency.code == code, Currency.is_active.is_(True))
        )
        if currency is None:
            currency = self._db.scalar(select(Currency).where(Currency.is_default.is_(True)))
        return currency

    def switch_default(self, code: str) -> Currency:
        target = self._db.scalar(select(Currency).where(Currency.code == code.upper()))
        if target is None or not target.is_active:
            raise ValidationError(f"La moneda {code} no existe o no está activa", field="code")

        for currency in self._db.scalars(select(Currency).where(Currency.is_default.is_(True))):
            if currency.id != target.id:
                currency.is_default = False
        target.is_default = True
        self._settings.set(SettingKeys.DEFAULT_CURRENCY, target.code)
        self._db.flush()
        logger.info("Default currency switched", code=target.code)
        return target

    def update_currency(
        self,
        code: str,
        exchange_rate: Decimal | None = None,
        is_active: bool | None = None,
    ) -> Currency:
        currency = self.get_by_code(code)
        if exchange_rate is not None:
            if exchange_rate <= 0:
                raise ValidationError("El tipo de cambio debe ser mayor a cero", field="exchange_rate")
            if currency.code == BASE_CURRENCY_CODE and exchange_rate != Decimal("1"):
                raise ValidationError(
                    f"La moneda base {BASE_CURRENCY_CODE} siempre tiene tipo de cambio 1",
                    field="exchange_rate",
                )
            currency.exchange_rate = exchange_rate
        if is_active is not None:
            if not is_active and currency.is_default:
                raise ValidationError(
                    "No se puede desactivar la moneda predeterminada", field="is_active"
                )
            currency.is_active = is_active
        self._db.flush()
        return currency
