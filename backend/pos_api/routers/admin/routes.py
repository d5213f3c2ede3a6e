"""
User and role administration router.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pos_shared.config.constants import Permissions
from pos_shared.infrastructure.db import get_db
from pos_shared.security.auth import current_user_context, ctx_user_id, require_permission
from pos_shared.utils.schemas import (
    PermissionOutput,
    RoleCreate,
    RoleOutput,
    RolePermissionsUpdate,
    RoleUpdate,
    UserCreate,
    UserOutput,
    UserUpdate,
)
from pos_api.services.domain import UserService
from pos_api.services.domain.user_service import role_output, user_output
from pos_api.routers._common import commit_or_fail, ok


router = APIRouter(prefix="/api/admin", tags=["admin"])


# =============================================================================
# Users
# =============================================================================


@router.get("/users", response_model=list[UserOutput])
def list_users(
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[UserOutput]:
    require_permission(ctx, Permissions.MANAGE_USERS)
    return [user_output(u) for u in UserService(db).list_users(include_inactive)]


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_USERS)
    service = UserService(db)
    user = service.create_user(body.name, body.email, body.password, body.role_id)
    commit_or_fail(db, "creación de usuario")
    return ok(user_output(service.get_user(user.id)), "Usuario creado correctamente")


@router.get("/users/{user_id}", response_model=UserOutput)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> UserOutput:
    require_permission(ctx, Permissions.MANAGE_USERS)
    return user_output(UserService(db).get_user(user_id))


@router.put("/users/{user_id}")
def update_user(
    user_id: int,
    body: UserUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_USERS)
    service = UserService(db)
    service.update_user(
        service.get_user(user_id),
        actor_id=ctx_user_id(ctx),
        **body.model_dump(exclude_unset=True),
    )
    commit_or_fail(db, "actualización de usuario", user_id=user_id)
    return ok(user_output(service.get_user(user_id)), "Usuario actualizado correctamente")


@router.delete("/users/{user_id}")
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Deactivate a user. Accounts are never hard-deleted."""
    require_permission(ctx, Permissions.MANAGE_USERS)
    service = UserService(db)
    service.deactivate_user(service.get_user(user_id), actor_id=ctx_user_id(ctx))
    commit_or_fail(db, "desactivación de usuario", user_id=user_id)
    return ok({"id": user_id}, "Usuario desactivado correctamente")


# =============================================================================
# Roles and permissions
# =============================================================================


@router.get("/permissions", response_model=list[PermissionOutput])
def list_permissions(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[PermissionOutput]:
    require_permission(ctx, Permissions.MANAGE_ROLES)
    return [PermissionOutput.model_validate(p) for p in UserService(db).list_permissions()]


@router.get("/roles", response_model=list[RoleOutput])
def list_roles(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[RoleOutput]:
    require_permission(ctx, Permissions.MANAGE_ROLES)
    return [role_output(r) for r in UserService(db).list_roles()]


@router.post("/roles", status_code=status.HTTP_201_CREATED)
def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_ROLES)
    service = UserService(db)
    role = service.create_role(body.name, body.description)
    commit_or_fail(db, "creación de rol")
    return ok(role_output(service.get_role(role.id)), "Rol creado correctamente")


@router.put("/roles/{role_id}")
def update_role(
    role_id: int,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_ROLES)
    service = UserService(db)
    service.update_role(service.get_role(role_id), body.name, body.description)
    commit_or_fail(db, "actualización de rol", role_id=role_id)
    return ok(role_output(service.get_role(role_id)), "Rol actualizado correctamente")


@router.delete("/roles/{role_id}")
def delete_role(
    role_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    require_permission(ctx, Permissions.MANAGE_ROLES)
    service = UserService(db)
    service.delete_role(service.get_role(role_id))
    commit_or_fail(db, "eliminación de rol", role_id=role_id)
    return ok({"id": role_id}, "Rol eliminado correctamente")


@router.put("/roles/{role_id}/permissions")
def set_role_permissions(
    role_id: int,
    body: RolePermissionsUpdate,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Replace the role's permissions. Takes effect at each user's next login."""
    require_permission(ctx, Permissions.MANAGE_ROLES)
    service = UserService(db)
    service.set_permissions(service.get_role(role_id), body.permissions)
    commit_or_fail(db, "actualización de permisos", role_id=role_id)
    return ok(role_output(service.get_role(role_id)), "Permisos actualizados correctamente")
