"""
Reports router: dashboard figures, sales per register and the stock report.
"""

from datetime import date, time
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, CASH_ROLES
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, require_roles
from pos_shared.utils.schemas import RegisterSalesQuery
from pos_api.services.domain import ReportService


router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Today's sales, units sold, low-stock count, recent sales and best sellers."""
    require_roles(ctx, CASH_ROLES)
    return ReportService(db).dashboard_stats()


@router.get("/register-sales")
def register_sales(
    date_from: date,
    date_to: date,
    hour_from: time | None = None,
    hour_to: time | None = None,
    register_id: int | None = None,
    category_id: int | None = None,
    promo_price: Decimal | None = Query(default=None, ge=0),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """
    Units and money sold per register.

    `hour_to` earlier than `hour_from` runs the window into the next day.
    """
    require_roles(ctx, CASH_ROLES)
    query = RegisterSalesQuery(
        date_from=date_from,
        date_to=date_to,
        hour_from=hour_from,
        hour_to=hour_to,
        register_id=register_id,
        category_id=category_id,
        promo_price=promo_price,
    )
    return ReportService(db).register_sales_report(query)


@router.get("/stock")
def stock_report(
    category_id: int | None = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return ReportService(db).stock_report(category_id=category_id, include_inactive=include_inactive)
