"""
Catalog Administration Domain Service.

Categories, products, combos and complements. Combos are products with
is_combo set and a component list; they never get a stock row.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import (
    ComboComponentInput,
    ComboComponentOutput,
    ComboOutput,
    ComplementInput,
    ComplementOutput,
    ProductOutput,
)
from pos_api.models import (
    Category,
    ComboComponent,
    InventoryMovement,
    InventoryStock,
    OrderItem,
    Product,
    ProductComplement,
)
from .stock_service import combo_available, current_stock

logger = get_logger(__name__)

PRODUCT_FIELDS = ("name", "description", "code", "price", "cost", "image_url", "category_id")


def product_output(product: Product) -> ProductOutput:
    return ProductOutput(
        id=product.id,
        name=product.name,
        description=product.description,
        code=product.code,
        price=float(product.price),
        cost=float(product.cost),
        image_url=product.image_url,
        category_id=product.category_id,
        category_name=product.category.name if product.category else None,
        is_combo=product.is_combo,
        is_active=product.is_active,
        stock=current_stock(product),
    )


def combo_output(combo: Product) -> ComboOutput:
    components = []
    for component in combo.combo_components:
        item = component.product
        components.append(
            ComboComponentOutput(
                product_id=component.product_id,
                product_name=item.name if item else None,
                quantity=component.quantity,
                stock=current_stock(item) if item else 0,
                is_active=bool(item and item.is_active),
            )
        )
    return ComboOutput(
        **product_output(combo).model_dump(),
        available=combo_available(combo),
        components=components,
    )


class CatalogService:
    """Domain service for the product catalog."""

    def __init__(self, db: Session):
        self._db = db

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def list_categories(self, include_inactive: bool = False) -> list[Category]:
        query = select(Category)
        if not include_inactive:
            query = query.where(Category.is_active.is_(True))
        return list(self._db.scalars(query.order_by(Category.name.asc())).all())

    def get_category(self, category_id: int) -> Category:
        category = self._db.get(Category, category_id)
        if category is None:
            raise NotFoundError("Categoría", category_id)
        return category

    def _ensure_category_name_free(self, name: str, exclude_id: int | None = None) -> None:
        query = select(Category.id).where(func.lower(Category.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Categoría", name)

    def create_category(self, name: str, description: str | None = None, color: str | None = None) -> Category:
        self._ensure_category_name_free(name)
        category = Category(name=name, description=description, color=color)
        self._db.add(category)
        self._db.flush()
        return category

    def update_category(self, category: Category, data: dict[str, Any]) -> Category:
        if data.get("name") and data["name"] != category.name:
            self._ensure_category_name_free(data["name"], exclude_id=category.id)
        for field in ("name", "description", "color", "is_active"):
            if data.get(field) is not None:
                setattr(category, field, data[field])
        self._db.flush()
        return category

    def delete_category(self, category: Category) -> None:
        in_use = self._db.scalar(
            select(func.count(Product.id)).where(Product.category_id == category.id)
        )
        if in_use:
            raise ConflictError(
                f"La categoría '{category.name}' tiene {in_use} productos asociados",
                category_id=category.id,
            )
        self._db.delete(category)
        self._db.flush()

    # -------------------------------------------------------------------------
    # Products
    # -------------------------------------------------------------------------

    def _product_query(self):
        return select(Product).options(
            selectinload(Product.category),
            selectinload(Product.stock),
            selectinload(Product.combo_components)
            .selectinload(ComboComponent.product)
            .selectinload(Product.stock),
        )

    def list_products(
        self,
        category_id: int | None = None,
        active: bool | None = None,
        search: str | None = None,
        combos: bool | None = None,
    ) -> list[Product]:
        query = self._product_query()
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if active is not None:
            query = query.where(Product.is_active.is_(active))
        if combos is not None:
            query = query.where(Product.is_combo.is_(combos))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Product.name.ilike(pattern), Product.code.ilike(pattern)))
        return list(self._db.scalars(query.order_by(Product.name.asc(), Product.id.asc())).all())

    def get_product(self, product_id: int) -> Product:
        product = self._db.scalar(self._product_query().where(Product.id == product_id))
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def _ensure_code_free(self, code: str, exclude_id: int | None = None) -> None:
        query = select(Product.id).where(Product.code == code)
        if exclude_id is not None:
            query = query.where(Product.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Producto", code)

    def _validate_category(self, category_id: int | None) -> None:
        if category_id is not None and self._db.get(Category, category_id) is None:
            raise NotFoundError("Categoría", category_id)

    def create_product(self, data: dict[str, Any], is_combo: bool = False) -> Product:
        self._ensure_code_free(data["code"])
        self._validate_category(data.get("category_id"))
        if data.get("price") is not None and data["price"] < 0:
            raise ValidationError("El precio no puede ser negativo", field="price")
        if data.get("cost") is not None and data["cost"] < 0:
            raise ValidationError("El costo no puede ser negativo", field="cost")

        product = Product(
            **{field: data.get(field) for field in PRODUCT_FIELDS if data.get(field) is not None},
            is_combo=is_combo,
        )
        if not is_combo:
            product.stock = InventoryStock(quantity=0, min_stock=0)
        self._db.add(product)
        self._db.flush()
        logger.info("Product created", product_id=product.id, code=product.code, is_combo=is_combo)
        return product

    def update_product(self, product: Product, data: dict[str, Any]) -> Product:
        if data.get("code") and data["code"] != product.code:
            self._ensure_code_free(data["code"], exclude_id=product.id)
        if "category_id" in data:
            self._validate_category(data["category_id"])
        for field in PRODUCT_FIELDS:
            if field in data and (data[field] is not None or field in ("category_id", "description", "image_url")):
                setattr(product, field, data[field])
        if data.get("is_active") is not None:
            if data["is_active"]:
                product.restore()
            else:
                product.soft_delete()
        self._db.flush()
        return product

    def _is_referenced(self, product: Product) -> bool:
        checks = (
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product.id),
            select(func.count(InventoryMovement.id)).where(InventoryMovement.product_id == product.id),
            select(func.count(ComboComponent.id)).where(ComboComponent.product_id == product.id),
            select(func.count(ProductComplement.id)).where(
                ProductComplement.complement_id == product.id
            ),
        )
        return any(self._db.scalar(check) for check in checks)

    def delete_product(self, product: Product) -> bool:
        """
        Remove a product. Returns True for a hard delete.

        Products referenced by orders, the ledger or other products are
        deactivated instead so history stays readable.
        """
        if self._is_referenced(product):
            product.soft_delete()
            self._db.flush()
            logger.info("Product deactivated", product_id=product.id)
            return False
        self._db.delete(product)
        self._db.flush()
        logger.info("Product deleted", product_id=product.id)
        return True

    # -------------------------------------------------------------------------
    # Combos
    # -------------------------------------------------------------------------

    def _set_components(self, combo: Product, components: list[ComboComponentInput]) -> None:
        if not components:
            raise ValidationError("Un combo necesita al menos un componente", field="components")

        seen: set[int] = set()
        for component in components:
            if component.product_id == combo.id:
                raise ValidationError("Un combo no puede contenerse a sí mismo", field="components")
            if component.product_id in seen:
                raise ValidationError(
                    f"Producto {component.product_id} repetido en el combo", field="components"
                )
            if component.quantity < 1:
                raise ValidationError("La cantidad de cada componente debe ser al menos 1")
            item = self._db.get(Product, component.product_id)
            if item is None:
                raise ProductNotFoundError(component.product_id)
            if item.is_combo:
                raise ValidationError(
                    f"'{item.name}' es un combo y no puede ser componente", field="components"
                )
            seen.add(component.product_id)

        combo.combo_components.clear()
        self._db.flush()
        for component in components:
            combo.combo_components.append(
                ComboComponent(product_id=component.product_id, quantity=component.quantity)
            )

    def create_combo(self, data: dict[str, Any], components: list[ComboComponentInput]) -> Product:
        combo = self.create_product(data, is_combo=True)
        self._set_components(combo, components)
        self._db.flush()
        return self.get_product(combo.id)

    def update_combo(
        self,
        combo: Product,
        data: dict[str, Any],
        components: list[ComboComponentInput] | None = None,
    ) -> Product:
        if not combo.is_combo:
            raise ValidationError(f"El producto {combo.id} no es un combo", product_id=combo.id)
        self.update_product(combo, data)
        if components is not None:
            self._set_components(combo, components)
        self._db.flush()
        self._db.expire(combo)
        return self.get_product(combo.id)

    def list_combos(self, active: bool | None = None) -> list[Product]:
        return self.list_products(active=active, combos=True)

    # -------------------------------------------------------------------------
    # Complements
    # -------------------------------------------------------------------------

    def get_complements(self, product_id: int) -> list[ComplementOutput]:
        self.get_product(product_id)
        relations = self._db.scalars(
            select(ProductComplement)
            .options(selectinload(ProductComplement.complement))
            .where(ProductComplement.product_id == product_id)
            .order_by(ProductComplement.id.asc())
        ).all()
        return [
            ComplementOutput(
                complement_id=relation.complement_id,
                name=relation.complement.name if relation.complement else "",
                price=float(relation.complement.price) if relation.complement else 0.0,
                required_quantity=relation.required_quantity,
                is_mandatory=relation.is_mandatory,
                is_free=relation.is_free,
            )
            for relation in relations
        ]

    def set_complements(self, product_id: int, complements: list[ComplementInput]) -> list[ComplementOutput]:
        """Replace the complement list of a principal product."""
        product = self.get_product(product_id)

        seen: set[int] = set()
        for complement in complements:
            if complement.complement_id == product.id:
                raise ValidationError("Un producto no puede ser su propio complemento")
            if complement.complement_id in seen:
                raise ValidationError(f"Complemento {complement.complement_id} repetido")
            if self._db.get(Product, complement.complement_id) is None:
                raise ProductNotFoundError(complement.complement_id)
            seen.add(complement.complement_id)

        product.complements.clear()
        self._db.flush()
        for complement in complements:
            product.complements.append(
                ProductComplement(
                    complement_id=complement.complement_id,
                    required_quantity=complement.required_quantity,
                    is_mandatory=complement.is_mandatory,
                    is_free=complement.is_free,
                )
            )
        self._db.flush()
        return self.get_complements(product_id)
