"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time; these must be set before any app import
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATABASE_BOOTSTRAP", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pos_shared.config.constants import Roles
from pos_shared.infrastructure.db import get_db
from pos_shared.infrastructure.events import EventCircuitBreaker
from pos_shared.security.auth import sign_access_token
from pos_shared.security.password import hash_password
from pos_api.main import app
from pos_api.models import (
    Base,
    Category,
    ComboComponent,
    InventoryStock,
    Product,
    ProductComplement,
    Table,
    User,
)
from pos_api.seed import seed_roles


# SQLite in-memory database shared by every connection of a test
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def order_events():
    """
    Replace Redis in the order notifier and start each test with a closed breaker.

    Yields the publish mock so tests can inspect what was pushed.
    """
    publish = AsyncMock(return_value=1)
    with patch(
        "pos_shared.infrastructure.events.circuit_breaker._event_circuit_breaker",
        new=EventCircuitBreaker(),
    ), patch(
        "pos_api.services.events.order_notifier.get_redis_client",
        new=AsyncMock(return_value=MagicMock()),
    ), patch(
        "pos_api.services.events.order_notifier.publish_order_event",
        new=publish,
    ):
        yield publish


# =============================================================================
# Staff
# =============================================================================


@pytest.fixture
def seed_roles_data(db_session):
    """Permissions and the four staff roles."""
    roles = seed_roles(db_session)
    db_session.commit()
    return roles


def _make_user(db_session, roles, slug: str, name: str, email: str, password: str) -> User:
    user = User(
        name=name,
        email=email,
        password=hash_password(password),
        role=roles[slug],
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session, seed_roles_data):
    return _make_user(db_session, seed_roles_data, Roles.ADMIN, "Ana Admin", "admin@test.com", "adminpass123")


@pytest.fixture
def waiter_user(db_session, seed_roles_data):
    return _make_user(db_session, seed_roles_data, Roles.WAITER, "Mario Mesero", "mesero@test.com", "meseropass1")


@pytest.fixture
def bartender_user(db_session, seed_roles_data):
    return _make_user(db_session, seed_roles_data, Roles.BARTENDER, "Beto Barra", "barra@test.com", "barrapass12")


@pytest.fixture
def cashier_user(db_session, seed_roles_data):
    return _make_user(db_session, seed_roles_data, Roles.CASHIER, "Carla Caja", "caja@test.com", "cajapass123")


def auth_headers_for(user: User) -> dict[str, str]:
    """Bearer header for a seeded user, signed like the login endpoint does."""
    token = sign_access_token(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role_slug,
        permissions=user.role.permission_slugs if user.role else [],
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture
def waiter_headers(waiter_user):
    return auth_headers_for(waiter_user)


@pytest.fixture
def bartender_headers(bartender_user):
    return auth_headers_for(bartender_user)


@pytest.fixture
def cashier_headers(cashier_user):
    return auth_headers_for(cashier_user)


# =============================================================================
# Catalog, stock and tables
# =============================================================================


def make_product(
    db_session,
    category,
    code: str,
    name: str,
    price: str,
    stock: int | None = None,
    min_stock: int = 0,
    is_combo: bool = False,
) -> Product:
    """Product with an optional stock row."""
    product = Product(
        code=code,
        name=name,
        price=Decimal(price),
        cost=Decimal("0"),
        category=category,
        is_combo=is_combo,
    )
    if stock is not None:
        product.stock = InventoryStock(quantity=stock, min_stock=min_stock)
    db_session.add(product)
    db_session.flush()
    return product


@pytest.fixture
def seed_category(db_session):
    category = Category(name="Tragos", description="Cócteles de la casa", color="#ff8800")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def seed_products(db_session, seed_category):
    """
    A small bar catalog.

    pisco: 10 units, cola: 20 units, ron: 1 unit, hielo: complement of pisco (free).
    """
    products = {
        "pisco": make_product(db_session, seed_category, "PIS-01", "Pisco Sour", "25.00", stock=10, min_stock=2),
        "cola": make_product(db_session, seed_category, "COL-01", "Coca Cola", "6.50", stock=20, min_stock=5),
        "ron": make_product(db_session, seed_category, "RON-01", "Ron Cartavio", "30.00", stock=1, min_stock=2),
        "hielo": make_product(db_session, seed_category, "HIE-01", "Hielo", "2.00", stock=50),
    }
    db_session.add(
        ProductComplement(
            product_id=products["pisco"].id,
            complement_id=products["hielo"].id,
            required_quantity=1,
            is_free=True,
        )
    )
    db_session.commit()
    return products


@pytest.fixture
def seed_combo(db_session, seed_category, seed_products):
    """Combo "Cuba Libre" = 1 ron + 2 cola."""
    combo = make_product(db_session, seed_category, "CMB-01", "Combo Cuba Libre", "45.00", is_combo=True)
    combo.combo_components = [
        ComboComponent(product_id=seed_products["ron"].id, quantity=1),
        ComboComponent(product_id=seed_products["cola"].id, quantity=2),
    ]
    db_session.commit()
    return combo


@pytest.fixture
def seed_table(db_session):
    table = Table(number=1, capacity=4, location="Terraza")
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture
def seed_tables(db_session):
    tables = [Table(number=n, capacity=4) for n in (1, 2, 3)]
    db_session.add_all(tables)
    db_session.commit()
    return tables
