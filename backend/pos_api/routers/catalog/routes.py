"""
Catalog router.

Staff read the catalog; writes need the gestionar_productos permission.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import ALL_STAFF_ROLES, Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, require_permission, require_roles
from pos_shared.utils.schemas import (
    CategoryCreate,
    CategoryOutput,
    CategoryUpdate,
    ComboCreate,
    ComboOutput,
    ComboUpdate,
    ComplementOutput,
    ProductCreate,
    ProductOutput,
    ProductUpdate,
    SetComplementsRequest,
    StockOutput,
)
from pos_api.services.domain import CatalogService, ComboAvailabilityResolver
from pos_api.services.domain.catalog_service import combo_output, product_output
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api", tags=["catalog"])


# =============================================================================
# Categories
# =============================================================================


@router.get("/categories", response_model=list[CategoryOutput])
def list_categories(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[CategoryOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    categories = CatalogService(db).list_categories(include_inactive=include_inactive)
    return [CategoryOutput.model_validate(c) for c in categories]


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def create_category(
    body: CategoryCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    category = CatalogService(db).create_category(body.name, body.description, body.color)
    commit_or_fail(db, "creación de categoría")
    return ok(CategoryOutput.model_validate(category), "Categoría creada correctamente")


@router.get("/categories/{category_id}", response_model=CategoryOutput)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> CategoryOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    return CategoryOutput.model_validate(CatalogService(db).get_category(category_id))


@router.put("/categories/{category_id}")
def update_category(
    category_id: int,
    body: CategoryUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    category = service.update_category(
        service.get_category(category_id), body.model_dump(exclude_unset=True)
    )
    commit_or_fail(db, "actualización de categoría", category_id=category_id)
    return ok(CategoryOutput.model_validate(category), "Categoría actualizada correctamente")


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    service.delete_category(service.get_category(category_id))
    commit_or_fail(db, "eliminación de categoría", category_id=category_id)
    return ok({"id": category_id}, "Categoría eliminada correctamente")


# =============================================================================
# Products
# =============================================================================


@router.get("/products", response_model=list[ProductOutput])
def list_products(
    category_id: int | None = None,
    active: bool | None = True,
    search: str | None = None,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[ProductOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    products = CatalogService(db).list_products(category_id=category_id, active=active, search=search)
    return [product_output(p) for p in products]


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    product = service.create_product(body.model_dump())
    commit_or_fail(db, "creación de producto")
    return ok(product_output(service.get_product(product.id)), "Producto creado correctamente")


@router.get("/products/{product_id}", response_model=ProductOutput)
def get_product(
    product_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ProductOutput:
    require_roles(ctx, ALL_STAFF_ROLES)
    return product_output(CatalogService(db).get_product(product_id))


@router.put("/products/{product_id}")
def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    service.update_product(service.get_product(product_id), body.model_dump(exclude_unset=True))
    commit_or_fail(db, "actualización de producto", product_id=product_id)
    return ok(product_output(service.get_product(product_id)), "Producto actualizado correctamente")


@router.delete("/products/{product_id}")
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Delete a product, or deactivate it when orders or the ledger reference it."""
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    hard = service.delete_product(service.get_product(product_id))
    commit_or_fail(db, "eliminación de producto", product_id=product_id)
    message = "Producto eliminado correctamente" if hard else "Producto desactivado correctamente"
    return ok({"id": product_id, "deleted": hard}, message)


@router.get("/products/{product_id}/stock")
def get_product_stock(
    product_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Sellable stock; combos report 1 when all components are available, else 0."""
    require_roles(ctx, ALL_STAFF_ROLES)
    return ComboAvailabilityResolver(db).stock_for(product_id)


@router.get("/stock", response_model=list[StockOutput])
def stock_overview(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[StockOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return [StockOutput(**row) for row in ComboAvailabilityResolver(db).stock_overview()]


# =============================================================================
# Complements
# =============================================================================


@router.get("/products/{product_id}/complements", response_model=list[ComplementOutput])
def get_complements(
    product_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[ComplementOutput]:
    require_roles(ctx, ALL_STAFF_ROLES)
    return CatalogService(db).get_complements(product_id)


@router.put("/products/{product_id}/complements")
def set_complements(
    product_id: int,
    body: SetComplementsRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    complements = CatalogService(db).set_complements(product_id, body.complements)
    commit_or_fail(db, "actualización de complementos", product_id=product_id)
    return ok(complements, "Complementos actualizados correctamente")


# =============================================================================
# Combos
# =============================================================================


@router.get("/combos", response_model=list[ComboOutput])
def list_combos(
    active: bool | None = True,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[ComboOutput]:
    """Combos with their availability and each component's stock."""
    require_roles(ctx, ALL_STAFF_ROLES)
    return [combo_output(c) for c in CatalogService(db).list_combos(active=active)]


@router.post("/combos", status_code=status.HTTP_201_CREATED)
def create_combo(
    body: ComboCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    combo = service.create_combo(body.model_dump(exclude={"components"}), body.components)
    commit_or_fail(db, "creación de combo")
    return ok(combo_output(service.get_product(combo.id)), "Combo creado correctamente")


@router.put("/combos/{combo_id}")
def update_combo(
    combo_id: int,
    body: ComboUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_PRODUCTS)
    service = CatalogService(db)
    service.update_combo(
        service.get_product(combo_id),
        body.model_dump(exclude_unset=True, exclude={"components"}),
        body.components,
    )
    commit_or_fail(db, "actualización de combo", combo_id=combo_id)
    return ok(combo_output(service.get_product(combo_id)), "Combo actualizado correctamente")
