"""
User and Role Service.

Staff accounts, roles and the permission slugs each role grants.
Also authenticates logins.
"""

from __future__ import annotations

import re
import unicodedata

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from pos_shared.config.constants import Limits
from pos_shared.config.logging import auth_logger, get_logger, mask_email
from pos_shared.security.password import hash_password, needs_rehash, verify_password
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from pos_shared.utils.schemas import RoleOutput, UserOutput
from pos_api.models import Permission, Role, User

logger = get_logger(__name__)


def slugify(name: str) -> str:
    """'Jefe de Barra' -> 'jefe_de_barra'."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "_", ascii_name.lower()).strip("_")


def user_output(user: User) -> UserOutput:
    return UserOutput(
        id=user.id,
        name=user.name,
        email=user.email,
        role_id=user.role_id,
        role=user.role_slug,
        is_active=user.is_active,
        created_at=user.created_at,
    )


def role_output(role: Role) -> RoleOutput:
    return RoleOutput(
        id=role.id,
        name=role.name,
        slug=role.slug,
        description=role.description,
        permissions=role.permission_slugs,
        user_count=len(role.users),
    )


class UserService:
    """
    Service for staff and role administration.

    Business rules:
    - E-mails are unique
    - Passwords are bcrypt-hashed and at least 8 characters
    - Nobody can deactivate their own account
    - A role cannot be deleted while users hold it
    """

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Authentication
    # =========================================================================

    def authenticate(self, email: str, password: str) -> User | None:
        """Active user matching the credentials, or None."""
        user = self._db.scalar(
            select(User)
            .options(selectinload(User.role).selectinload(Role.permissions))
            .where(func.lower(User.email) == email.lower())
        )
        if user is None or not user.is_active:
            auth_logger.warning("Login failed: unknown or inactive user", email=mask_email(email))
            return None
        if not verify_password(password, user.password):
            auth_logger.warning("Login failed: wrong password", email=mask_email(email))
            return None
        if needs_rehash(user.password):
            user.password = hash_password(password)
        return user

    # =========================================================================
    # Users
    # =========================================================================

    def list_users(self, include_inactive: bool = False) -> list[User]:
        query = select(User).options(selectinload(User.role))
        if not include_inactive:
            query = query.where(User.is_active.is_(True))
        return list(self._db.scalars(query.order_by(User.name.asc(), User.id.asc())).all())

    def get_user(self, user_id: int) -> User:
        user = self._db.scalar(
            select(User)
            .options(selectinload(User.role).selectinload(Role.permissions))
            .where(User.id == user_id)
        )
        if user is None:
            raise NotFoundError("Usuario", user_id)
        return user

    def _ensure_email_free(self, email: str, exclude_id: int | None = None) -> None:
        query = select(User.id).where(func.lower(User.email) == email.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Usuario", email)

    def _validate_password(self, password: str) -> None:
        if len(password) < Limits.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"La contraseña debe tener al menos {Limits.MIN_PASSWORD_LENGTH} caracteres",
                field="password",
            )

    def create_user(self, name: str, email: str, password: str, role_id: int) -> User:
        self._ensure_email_free(email)
        self._validate_password(password)
        self.get_role(role_id)

        user = User(name=name, email=email.lower(), password=hash_password(password), role_id=role_id)
        self._db.add(user)
        self._db.flush()
        logger.info("User created", user_id=user.id, email=mask_email(email), role_id=role_id)
        return self.get_user(user.id)

    def update_user(
        self,
        user: User,
        actor_id: int,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
        role_id: int | None = None,
        is_active: bool | None = None,
    ) -> User:
        if email is not None and email.lower() != user.email:
            self._ensure_email_free(email, exclude_id=user.id)
            user.email = email.lower()
        if name is not None:
            user.name = name
        if password is not None:
            self._validate_password(password)
            user.password = hash_password(password)
        if role_id is not None and role_id != user.role_id:
            user.role = self.get_role(role_id)
        if is_active is not None:
            if is_active:
                user.restore()
            else:
                self.deactivate_user(user, actor_id)
        self._db.flush()
        return user

    def deactivate_user(self, user: User, actor_id: int) -> None:
        if user.id == actor_id:
            raise ForbiddenError("desactivar su propia cuenta", user_id=actor_id)
        user.soft_delete()
        logger.info("User deactivated", user_id=user.id, actor_id=actor_id)

    # =========================================================================
    # Roles and permissions
    # =========================================================================

    def list_permissions(self) -> list[Permission]:
        return list(self._db.scalars(select(Permission).order_by(Permission.slug.asc())).all())

    def list_roles(self) -> list[Role]:
        return list(
            self._db.scalars(
                select(Role)
                .options(selectinload(Role.permissions), selectinload(Role.users))
                .order_by(Role.name.asc())
            ).all()
        )

    def get_role(self, role_id: int) -> Role:
        role = self._db.scalar(
            select(Role)
            .options(selectinload(Role.permissions), selectinload(Role.users))
            .where(Role.id == role_id)
        )
        if role is None:
            raise NotFoundError("Rol", role_id)
        return role

    def _ensure_role_free(self, name: str, slug: str, exclude_id: int | None = None) -> None:
        query = select(Role.id).where((func.lower(Role.name) == name.lower()) | (Role.slug == slug))
        if exclude_id is not None:
            query = query.where(Role.id != exclude_id)
        if self._db.scalar(query) is not None:
            raise DuplicateEntityError("Rol", name)

    def create_role(self, name: str, description: str | None = None) -> Role:
        slug = slugify(name)
        if not slug:
            raise ValidationError("Nombre de rol inválido", field="name")
        self._ensure_role_free(name, slug)
        role = Role(name=name, slug=slug, description=description)
        self._db.add(role)
        self._db.flush()
        return self.get_role(role.id)

    def update_role(self, role: Role, name: str | None = None, description: str | None = None) -> Role:
        # The slug is what tokens and access checks use, so it never changes
        if name is not None and name != role.name:
            self._ensure_role_free(name, "", exclude_id=role.id)
            role.name = name
        if description is not None:
            role.description = description
        self._db.flush()
        return role

    def delete_role(self, role: Role) -> None:
        holders = self._db.scalar(select(func.count(User.id)).where(User.role_id == role.id))
        if holders:
            raise ConflictError(
                f"El rol '{role.name}' está asignado a {holders} usuarios", role_id=role.id
            )
        self._db.delete(role)
        self._db.flush()

    def set_permissions(self, role: Role, slugs: list[str]) -> Role:
        """Replace the role's permission set. Unknown slugs are rejected."""
        wanted = set(slugs)
        permissions = list(
            self._db.scalars(select(Permission).where(Permission.slug.in_(wanted))).all()
        )
        unknown = wanted - {p.slug for p in permissions}
        if unknown:
            raise ValidationError(
                f"Permisos desconocidos: {', '.join(sorted(unknown))}", field="permissions"
            )
        role.permissions = permissions
        self._db.flush()
        logger.info("Role permissions updated", role=role.slug, permissions=sorted(wanted))
        return role
