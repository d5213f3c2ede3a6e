"""
Centralized HTTP exceptions for consistent error handling.

Usage:
    from pos_shared.utils.exceptions import NotFoundError, ForbiddenError, ValidationError

    raise NotFoundError("Producto", product_id)
    raise ForbiddenError("eliminar órdenes")
    raise ValidationError("El precio debe ser positivo")

Every exception logs itself when constructed. The API exception handler
turns them into {"success": false, "message": detail}.
"""

from typing import Any

from fastapi import HTTPException, status

from pos_shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Orden", 123)
    """

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} con ID {entity_id} no encontrado"
        else:
            detail = f"{entity} no encontrado"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Orden", order_id, **log_context)


class TableNotFoundError(NotFoundError):
    """Table not found."""

    def __init__(self, table_id: int | None = None, **log_context: Any):
        super().__init__("Mesa", table_id, **log_context)


class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: int | None = None, **log_context: Any):
        super().__init__("Producto", product_id, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization error (403).

    Usage:
        raise ForbiddenError("eliminar esta orden")
    """

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"No autorizado para {action}"
        else:
            detail = "Acceso denegado"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


class InsufficientRoleError(ForbiddenError):
    """User doesn't have any of the required roles."""

    def __init__(self, required_roles: list[str], **log_context: Any):
        roles_str = ", ".join(sorted(required_roles))
        super().__init__(
            f"realizar esta acción (requiere rol: {roles_str})",
            required_roles=sorted(required_roles),
            **log_context,
        )


class MissingPermissionError(ForbiddenError):
    """User's role lacks a permission slug."""

    def __init__(self, permission: str, **log_context: Any):
        super().__init__(
            f"realizar esta acción (requiere permiso: {permission})",
            permission=permission,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("La cantidad debe ser mayor a cero", field="cantidad")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    def __init__(
        self,
        entity: str,
        current_state: str,
        expected_states: list[str] | None = None,
        **log_context: Any,
    ):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} está en estado '{current_state}', se esperaba: {states_str}"
        else:
            detail = f"{entity} no puede estar en estado '{current_state}' para esta operación"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        detail = f"Transición inválida de '{from_status}' a '{to_status}' para {entity}"
        super().__init__(
            detail, entity=entity, from_status=from_status, to_status=to_status, **log_context
        )


class DuplicateEntityError(ValidationError):
    """Entity already exists."""

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier:
            detail = f"{entity} con identificador '{identifier}' ya existe"
        else:
            detail = f"{entity} ya existe"

        super().__init__(detail, entity=entity, identifier=identifier, **log_context)


class PaymentAmountError(ValidationError):
    """Payment amount validation error."""

    def __init__(self, amount: Any, reason: str, **log_context: Any):
        detail = f"Monto de pago inválido ({amount}): {reason}"
        super().__init__(detail, amount=str(amount), **log_context)


# =============================================================================
# 409 Conflict Errors
# =============================================================================


class ConflictError(AppException):
    """
    Resource conflict error (409).

    Usage:
        raise ConflictError("La mesa tiene una orden activa")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class StaleOrderError(ConflictError):
    """Order was modified by someone else since it was read."""

    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(
            f"La orden {order_id} fue modificada por otro usuario. Recargue e intente de nuevo.",
            order_id=order_id,
            **log_context,
        )


class AlreadyPaidError(ConflictError):
    """Order is already paid."""

    def __init__(self, order_id: int, **log_context: Any):
        super().__init__(f"La orden {order_id} ya está pagada", order_id=order_id, **log_context)


class InsufficientStockError(ConflictError):
    """Not enough stock to complete a sale or movement."""

    def __init__(self, product_name: str, available: int, required: int, **log_context: Any):
        super().__init__(
            f"Stock insuficiente para '{product_name}': disponible {available}, requerido {required}",
            product=product_name,
            available=available,
            required=required,
            **log_context,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("No se pudo procesar el cobro", order_id=123)
    """

    def __init__(self, detail: str = "Error interno del servidor", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DatabaseError(InternalError):
    """Database operation failed. The message never carries the driver error."""

    def __init__(self, operation: str, **log_context: Any):
        detail = f"Error de base de datos durante {operation}. Por favor intente de nuevo."
        super().__init__(detail, operation=operation, **log_context)
