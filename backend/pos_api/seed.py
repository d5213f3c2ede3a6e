"""
Seed data.
Creates the reference rows the application needs: permissions, roles,
the first administrator, currencies and default settings.
Idempotent: existing rows are left alone.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_shared.config.constants import (
    BASE_CURRENCY_CODE,
    ROLE_PERMISSIONS,
    Permissions,
    Roles,
    SettingKeys,
    SettingType,
)
from pos_shared.config.logging import get_logger
from pos_shared.config.settings import settings
from pos_shared.security.password import hash_password
from pos_api.models import Currency, Permission, Role, Setting, User

logger = get_logger(__name__)


ROLE_NAMES = {
    Roles.ADMIN: ("Administrador", "Acceso total al sistema"),
    Roles.BARTENDER: ("Bartender", "Prepara las órdenes en la barra"),
    Roles.WAITER: ("Mesero", "Toma órdenes en las mesas"),
    Roles.CASHIER: ("Cajero", "Cobra órdenes y maneja la caja"),
}

CURRENCIES = [
    {
        "code": BASE_CURRENCY_CODE,
        "name": "Sol peruano",
        "symbol": "S/",
        "exchange_rate": Decimal("1.0000"),
        "is_default": True,
        "decimals": 2,
        "decimal_separator": ".",
        "thousands_separator": ",",
    },
    {
        "code": "USD",
        "name": "Dólar estadounidense",
        "symbol": "$",
        "exchange_rate": Decimal("0.2700"),
        "decimals": 2,
        "decimal_separator": ".",
        "thousands_separator": ",",
    },
    {
        "code": "EUR",
        "name": "Euro",
        "symbol": "€",
        "exchange_rate": Decimal("0.2500"),
        "decimals": 2,
        "decimal_separator": ",",
        "thousands_separator": ".",
    },
    {
        "code": "COP",
        "name": "Peso colombiano",
        "symbol": "$",
        "exchange_rate": Decimal("1046.5000"),
        "decimals": 0,
        "decimal_separator": ",",
        "thousands_separator": ".",
    },
]

SETTINGS = [
    (SettingKeys.THEME, "system", SettingType.STRING, "Tema de la interfaz: light, dark o system"),
    (SettingKeys.DEFAULT_CURRENCY, BASE_CURRENCY_CODE, SettingType.STRING, "Moneda para mostrar precios"),
]


def seed_roles(db: Session) -> dict[str, Role]:
    """Permissions and the four staff roles."""
    permissions = {p.slug: p for p in db.scalars(select(Permission)).all()}
    for slug, name in Permissions.ALL.items():
        if slug not in permissions:
            permissions[slug] = Permission(slug=slug, name=name)
            db.add(permissions[slug])

    roles = {r.slug: r for r in db.scalars(select(Role)).all()}
    for slug, (name, description) in ROLE_NAMES.items():
        if slug in roles:
            continue
        role = Role(name=name, slug=slug, description=description)
        role.permissions = [permissions[p] for p in ROLE_PERMISSIONS.get(slug, [])]
        db.add(role)
        roles[slug] = role

    db.flush()
    return roles


def seed_admin(db: Session, admin_role: Role) -> None:
    if db.scalar(select(User.id).where(User.email == settings.seed_admin_email)):
        return
    db.add(
        User(
            name="Administrador",
            email=settings.seed_admin_email,
            password=hash_password(settings.seed_admin_password),
            role=admin_role,
        )
    )
    logger.info("Administrator account created", email=settings.seed_admin_email)


def seed_currencies(db: Session) -> None:
    existing = set(db.scalars(select(Currency.code)).all())
    for data in CURRENCIES:
        if data["code"] not in existing:
            db.add(Currency(**data))


def seed_settings(db: Session) -> None:
    existing = set(db.scalars(select(Setting.key)).all())
    for key, value, value_type, description in SETTINGS:
        if key not in existing:
            db.add(Setting(key=key, value=value, value_type=value_type, description=description))


def seed(db: Session) -> None:
    """Seed every reference table and commit."""
    roles = seed_roles(db)
    seed_admin(db, roles[Roles.ADMIN])
    seed_currencies(db)
    seed_settings(db)
    db.commit()
    logger.info("Seed data verified", roles=len(roles), currencies=len(CURRENCIES))
