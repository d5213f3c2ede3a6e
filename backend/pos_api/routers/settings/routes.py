"""
Currency and application settings router.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, require_permission, require_roles
from pos_shared.utils.exceptions import NotFoundError
from pos_shared.utils.schemas import (
    CurrencyOutput,
    CurrencyUpdate,
    SettingOutput,
    SettingUpdate,
    SwitchCurrencyRequest,
)
from pos_api.models import Currency
from pos_api.services.domain import ConfigurationService, CurrencyService
from pos_api.services.domain.configuration_service import cast_value
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api", tags=["settings"])


def _currency_output(currency: Currency) -> CurrencyOutput:
    return CurrencyOutput(
        id=currency.id,
        code=currency.code,
        name=currency.name,
        symbol=currency.symbol,
        exchange_rate=float(currency.exchange_rate),
        is_default=currency.is_default,
        is_active=currency.is_active,
        decimals=currency.decimals,
        decimal_separator=currency.decimal_separator,
        thousands_separator=currency.thousands_separator,
    )


# =============================================================================
# Currencies
# =============================================================================


@router.get("/currencies", response_model=list[CurrencyOutput])
def list_currencies(
    active_only: bool = False,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[CurrencyOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return [_currency_output(c) for c in CurrencyService(db).list_currencies(active_only)]


@router.get("/currencies/current", response_model=CurrencyOutput)
def current_currency(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> CurrencyOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    currency = CurrencyService(db).current_currency()
    if currency is None:
        raise NotFoundError("Moneda predeterminada")
    return _currency_output(currency)


@router.post("/currencies/switch")
def switch_currency(
    body: SwitchCurrencyRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_SETTINGS)
    currency = CurrencyService(db).switch_default(body.code)
    commit_or_fail(db, "cambio de moneda", code=body.code)
    return ok(_currency_output(currency), f"Moneda cambiada a {currency.code}")


@router.put("/currencies/{code}")
def update_currency(
    code: str,
    body: CurrencyUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_SETTINGS)
    currency = CurrencyService(db).update_currency(code, body.exchange_rate, body.is_active)
    commit_or_fail(db, "actualización de moneda", code=code)
    return ok(_currency_output(currency), "Moneda actualizada correctamente")


# =============================================================================
# Settings
# =============================================================================


@router.get("/settings", response_model=list[SettingOutput])
def list_settings(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[SettingOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return [SettingOutput(**row) for row in ConfigurationService(db).describe_all()]


@router.get("/settings/{key}", response_model=SettingOutput)
def get_setting(
    key: str,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SettingOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    row = ConfigurationService(db).get_row(key)
    if row is None:
        raise NotFoundError("Configuración", key)
    return SettingOutput(
        key=row.key,
        value=cast_value(row.value, row.value_type),
        value_type=row.value_type,
        description=row.description,
    )


@router.put("/settings/{key}")
def set_setting(
    key: str,
    body: SettingUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_SETTINGS)
    row = ConfigurationService(db).set(key, body.value, body.value_type, body.description)
    commit_or_fail(db, "actualización de configuración", key=key)
    return ok(
        SettingOutput(
            key=row.key,
            value=cast_value(row.value, row.value_type),
            value_type=row.value_type,
            description=row.description,
        ),
        "Configuración actualizada correctamente",
    )
