"""
Supplier and Purchase Order Domain Service.

Purchase orders move pendiente -> parcial -> recibido as goods arrive,
or pendiente -> cancelado. Only a pendiente order can be edited or
cancelled. Receiving writes one entrada movement per line for the units
that arrived since the last delivery.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.constants import Limits, MovementType, PurchaseOrderStatus
from pos_shared.config.logging import get_logger
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    InvalidStateError,
    NotFoundError,
    ProductNotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import (
    PurchaseOrderItemInput,
    PurchaseOrderItemOutput,
    PurchaseOrderOutput,
    ReceiveLineInput,
)
from pos_api.models import Product, PurchaseOrder, PurchaseOrderItem, Supplier
from .inventory_service import InventoryService

logger = get_logger(__name__)

SUPPLIER_FIELDS = ("name", "tax_id", "address", "phone", "email", "contact", "notes")


def format_purchase_order_number(order_id: int, when: date | None = None) -> str:
    when = when or datetime.now(timezone.utc).date()
    return f"PED-{when:%Y%m%d}-{order_id:04d}"


def purchase_order_output(order: PurchaseOrder) -> PurchaseOrderOutput:
    items = [
        PurchaseOrderItemOutput(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product.name if item.product else None,
            product_code=item.product.code if item.product else None,
            quantity=item.quantity,
            received_quantity=item.received_quantity,
            unit_price=float(item.unit_price),
            subtotal=float(item.subtotal),
            notes=item.notes,
        )
        for item in order.items
    ]
    return PurchaseOrderOutput(
        id=order.id,
        order_number=order.order_number,
        supplier_id=order.supplier_id,
        supplier_name=order.supplier.name if order.supplier else None,
        user_id=order.user_id,
        user_name=order.user.name if order.user else None,
        state=order.state,
        ordered_on=order.ordered_on,
        expected_on=order.expected_on,
        received_at=order.received_at,
        total=float(order.total),
        notes=order.notes,
        created_at=order.created_at,
        items=items,
    )


def _append_note(current: str | None, extra: str | None) -> str | None:
    if not extra:
        return current
    return f"{current}\n{extra}" if current else extra


class SupplierService:
    """Domain service for suppliers and their purchase orders."""

    def __init__(self, db: Session):
        self._db = db
        self._inventory = InventoryService(db)

    # -------------------------------------------------------------------------
    # Suppliers
    # -------------------------------------------------------------------------

    def list_suppliers(self, search: str | None = None, active: bool | None = None) -> list[Supplier]:
        """Suppliers by name. `search` matches name, tax id, contact or email."""
        query = select(Supplier)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Supplier.name).like(pattern),
                    func.lower(Supplier.tax_id).like(pattern),
                    func.lower(Supplier.contact).like(pattern),
                    func.lower(Supplier.email).like(pattern),
                )
            )
        if active is not None:
            query = query.where(Supplier.is_active.is_(active))
        return list(self._db.scalars(query.order_by(Supplier.name.asc(), Supplier.id.asc())).all())

    def get_supplier(self, supplier_id: int) -> Supplier:
        supplier = self._db.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Proveedor", supplier_id)
        return supplier

    def _ensure_tax_id_free(self, tax_id: str, exclude_id: int | None = None) -> None:
        query = select(Supplier.id).where(Supplier.tax_id == tax_id)
        if exclude_id is not None:
            query = query.where(Supplier.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Proveedor", tax_id)

    def create_supplier(self, data: dict[str, Any]) -> Supplier:
        if data.get("tax_id"):
            self._ensure_tax_id_free(data["tax_id"])
        supplier = Supplier(**{field: data.get(field) for field in SUPPLIER_FIELDS})
        if data.get("is_active") is False:
            supplier.soft_delete()
        self._db.add(supplier)
        self._db.flush()
        logger.info("Supplier created", supplier_id=supplier.id, supplier_name=supplier.name)
        return supplier

    def update_supplier(self, supplier: Supplier, data: dict[str, Any]) -> Supplier:
        if data.get("tax_id") and data["tax_id"] != supplier.tax_id:
            self._ensure_tax_id_free(data["tax_id"], exclude_id=supplier.id)
        for field in SUPPLIER_FIELDS:
            if field not in data:
                continue
            if field == "name" and not data[field]:
                continue
            setattr(supplier, field, data[field])
        if data.get("is_active") is not None:
            if data["is_active"]:
                supplier.restore()
            else:
                supplier.soft_delete()
        self._db.flush()
        return supplier

    def delete_supplier(self, supplier: Supplier) -> None:
        """
        Raises:
            ConflictError: The supplier has purchase orders.
        """
        orders = self._db.scalar(
            select(func.count(PurchaseOrder.id)).where(PurchaseOrder.supplier_id == supplier.id)
        )
        if orders:
            raise ConflictError(
                "No se puede eliminar el proveedor porque tiene pedidos asociados",
                supplier_id=supplier.id,
                orders=orders,
            )
        self._db.delete(supplier)
        self._db.flush()

    # -------------------------------------------------------------------------
    # Purchase orders
    # -------------------------------------------------------------------------

    def _order_query(self):
        return select(PurchaseOrder).options(
            selectinload(PurchaseOrder.supplier),
            selectinload(PurchaseOrder.user),
            selectinload(PurchaseOrder.items).selectinload(PurchaseOrderItem.product),
        )

    def list_orders(
        self,
        search: str | None = None,
        state: str | None = None,
        supplier_id: int | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = Limits.DEFAULT_LIST_LIMIT,
    ) -> list[PurchaseOrder]:
        query = self._order_query()
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(PurchaseOrder.order_number).like(pattern),
                    func.lower(PurchaseOrder.notes).like(pattern),
                    PurchaseOrder.supplier.has(func.lower(Supplier.name).like(pattern)),
                )
            )
        if state is not None:
            query = query.where(PurchaseOrder.state == state)
        if supplier_id is not None:
            query = query.where(PurchaseOrder.supplier_id == supplier_id)
        if date_from is not None:
            query = query.where(PurchaseOrder.ordered_on >= date_from)
        if date_to is not None:
            query = query.where(PurchaseOrder.ordered_on <= date_to)
        query = query.order_by(PurchaseOrder.ordered_on.desc(), PurchaseOrder.id.desc()).limit(limit)
        return list(self._db.scalars(query).all())

    def get_order(self, order_id: int) -> PurchaseOrder:
        order = self._db.scalar(self._order_query().where(PurchaseOrder.id == order_id))
        if order is None:
            raise NotFoundError("Pedido", order_id)
        return order

    def _orderable_product(self, product_id: int) -> Product:
        product = self._db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        if product.is_combo:
            raise ValidationError(
                f"'{product.name}' es un combo; pida sus componentes",
                product_id=product_id,
            )
        return product

    def _active_supplier(self, supplier_id: int) -> Supplier:
        supplier = self.get_supplier(supplier_id)
        if not supplier.is_active:
            raise ValidationError(
                f"El proveedor '{supplier.name}' está inactivo", supplier_id=supplier_id
            )
        return supplier

    @staticmethod
    def _fill_line(item: PurchaseOrderItem, line: PurchaseOrderItemInput) -> None:
        item.product_id = line.product_id
        item.quantity = line.quantity
        item.unit_price = line.unit_price
        item.subtotal = line.unit_price * line.quantity
        item.notes = line.notes

    @staticmethod
    def _recalculate(order: PurchaseOrder) -> None:
        order.total = sum((item.subtotal for item in order.items), Decimal("0"))

    def create_order(
        self,
        supplier_id: int,
        ordered_on: date,
        items: list[PurchaseOrderItemInput],
        actor_id: int | None,
        expected_on: date | None = None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        if not items:
            raise ValidationError("El pedido debe tener al menos un producto", field="items")
        self._active_supplier(supplier_id)

        order = PurchaseOrder(
            supplier_id=supplier_id,
            user_id=actor_id,
            state=PurchaseOrderStatus.PENDING,
            ordered_on=ordered_on,
            expected_on=expected_on,
            notes=notes,
        )
        for line in items:
            self._orderable_product(line.product_id)
            item = PurchaseOrderItem(received_quantity=0)
            self._fill_line(item, line)
            order.items.append(item)
        self._recalculate(order)

        self._db.add(order)
        self._db.flush()
        order.order_number = format_purchase_order_number(order.id)
        self._db.flush()
        logger.info(
            "Purchase order created",
            purchase_order_id=order.id,
            supplier_id=supplier_id,
            lines=len(items),
            total=str(order.total),
        )
        return order

    def _ensure_pending(self, order: PurchaseOrder) -> None:
        if order.state != PurchaseOrderStatus.PENDING:
            raise InvalidStateError("Pedido", order.state, [PurchaseOrderStatus.PENDING])

    def update_order(self, order: PurchaseOrder, data: dict[str, Any]) -> PurchaseOrder:
        """
        Edit a pendiente order.

        `data["items"]`, when present, is the complete new line list: lines
        carrying an `id` are updated in place, lines without one are added
        and existing lines left out are removed.
        """
        self._ensure_pending(order)

        if data.get("supplier_id") is not None and data["supplier_id"] != order.supplier_id:
            self._active_supplier(data["supplier_id"])
            order.supplier_id = data["supplier_id"]
        if data.get("ordered_on") is not None:
            order.ordered_on = data["ordered_on"]
        for field in ("expected_on", "notes"):
            if field in data:
                setattr(order, field, data[field])

        lines = data.get("items")
        if lines is not None:
            self._sync_lines(order, [PurchaseOrderItemInput.model_validate(line) for line in lines])
            self._recalculate(order)

        self._db.flush()
        return order

    def _sync_lines(self, order: PurchaseOrder, lines: list[PurchaseOrderItemInput]) -> None:
        if not lines:
            raise ValidationError("El pedido debe tener al menos un producto", field="items")
        existing = {item.id: item for item in order.items}
        kept: list[PurchaseOrderItem] = []
        for line in lines:
            self._orderable_product(line.product_id)
            if line.id is None:
                item = PurchaseOrderItem(received_quantity=0)
            else:
                item = existing.get(line.id)
                if item is None:
                    raise ValidationError(
                        f"La línea {line.id} no pertenece al pedido", purchase_order_id=order.id
                    )
            self._fill_line(item, line)
            kept.append(item)
        # delete-orphan removes the lines left out
        order.items = kept

    def receive(
        self,
        order: PurchaseOrder,
        lines: Iterable[ReceiveLineInput],
        actor_id: int | None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """
        Record a delivery.

        Each line carries the total received so far. The difference against
        what was already received goes into stock as an entrada movement.
        The order becomes recibido once every line is complete, parcial if
        anything has arrived, and keeps its state otherwise.

        Raises:
            InvalidStateError: The order is recibido or cancelado.
            ValidationError: Unknown line, more than ordered, or less than already received.
        """
        if order.state not in PurchaseOrderStatus.RECEIVABLE:
            raise InvalidStateError("Pedido", order.state, PurchaseOrderStatus.RECEIVABLE)

        items = {item.id: item for item in order.items}
        note = f"Recepción de pedido #{order.order_number}"
        added = 0
        for line in lines:
            item = items.get(line.item_id)
            if item is None:
                raise ValidationError(
                    f"La línea {line.item_id} no pertenece al pedido", purchase_order_id=order.id
                )
            if line.received_quantity > item.quantity:
                raise ValidationError(
                    "La cantidad recibida no puede exceder la cantidad pedida",
                    item_id=item.id,
                    ordered=item.quantity,
                    received=line.received_quantity,
                )
            if line.received_quantity < item.received_quantity:
                raise ValidationError(
                    "La cantidad recibida no puede ser menor a la ya registrada",
                    item_id=item.id,
                    already_received=item.received_quantity,
                )

            delta = line.received_quantity - item.received_quantity
            if delta > 0:
                self._inventory.apply_movement(
                    item.product,
                    MovementType.IN,
                    delta,
                    actor_id,
                    unit_price=item.unit_price,
                    note=note,
                    purchase_order_id=order.id,
                )
                added += delta
            item.received_quantity = line.received_quantity

        previous = order.state
        if all(item.is_complete for item in order.items):
            order.state = PurchaseOrderStatus.RECEIVED
        elif any(item.received_quantity > 0 for item in order.items):
            order.state = PurchaseOrderStatus.PARTIAL
        if added:
            order.received_at = datetime.now(timezone.utc)
        order.notes = _append_note(order.notes, notes)

        self._db.flush()
        logger.info(
            "Purchase order received",
            purchase_order_id=order.id,
            units=added,
            from_state=previous,
            to_state=order.state,
        )
        return order

    def cancel(self, order: PurchaseOrder) -> PurchaseOrder:
        self._ensure_pending(order)
        order.state = PurchaseOrderStatus.CANCELED
        stamp = datetime.now(timezone.utc).strftime("%d/%m/%Y %H:%M")
        order.notes = _append_note(order.notes, f"Pedido cancelado el {stamp}")
        self._db.flush()
        logger.info("Purchase order cancelled", purchase_order_id=order.id)
        return order

    def delete_order(self, order: PurchaseOrder) -> None:
        if order.state not in PurchaseOrderStatus.DELETABLE:
            raise InvalidStateError("Pedido", order.state, PurchaseOrderStatus.DELETABLE)
        self._db.delete(order)
        self._db.flush()
