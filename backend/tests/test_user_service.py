"""
Tests for UserService: staff accounts, roles and permissions.
"""

import pytest

from pos_shared.config.constants import Permissions, Roles
from pos_shared.utils.exceptions import (
    ConflictError,
    DuplicateEntityError,
    ForbiddenError,
    ValidationError,
)
from pos_shared.security.password import verify_password
from pos_api.services.domain import UserService
from pos_api.services.domain.user_service import slugify


class TestUsers:
    def test_create_user_hashes_password(self, db_session, seed_roles_data):
        user = UserService(db_session).create_user(
            "Lucía Barra", "Lucia@Test.com", "segura123", seed_roles_data[Roles.BARTENDER].id
        )
        db_session.commit()

        assert user.email == "lucia@test.com"
        assert user.role_slug == Roles.BARTENDER
        assert verify_password("segura123", user.password)

    def test_duplicate_email(self, db_session, seed_roles_data, waiter_user):
        with pytest.raises(DuplicateEntityError):
            UserService(db_session).create_user(
                "Otro", "mesero@test.com", "segura123", seed_roles_data[Roles.WAITER].id
            )

    def test_short_password(self, db_session, seed_roles_data):
        with pytest.raises(ValidationError):
            UserService(db_session).create_user("Corto", "c@test.com", "123", seed_roles_data[Roles.WAITER].id)

    def test_authenticate(self, db_session, waiter_user):
        service = UserService(db_session)
        assert service.authenticate("mesero@test.com", "meseropass1").id == waiter_user.id
        assert service.authenticate("mesero@test.com", "otra") is None
        assert service.authenticate("nadie@test.com", "meseropass1") is None

    def test_cannot_deactivate_yourself(self, db_session, admin_user, waiter_user):
        service = UserService(db_session)
        with pytest.raises(ForbiddenError):
            service.update_user(admin_user, actor_id=admin_user.id, is_active=False)

        service.update_user(waiter_user, actor_id=admin_user.id, is_active=False)
        db_session.commit()
        assert [u.id for u in service.list_users()] == [admin_user.id]


class TestRoles:
    def test_slugify(self):
        assert slugify("Jefe de Barra") == "jefe_de_barra"
        assert slugify("Anfitrión") == "anfitrion"

    def test_create_role_and_set_permissions(self, db_session, seed_roles_data):
        service = UserService(db_session)
        role = service.create_role("Jefe de Barra", "Supervisa la barra")
        service.set_permissions(role, [Permissions.MANAGE_INVENTORY, Permissions.MANAGE_PRODUCTS])
        db_session.commit()

        assert role.slug == "jefe_de_barra"
        assert role.has_permission(Permissions.MANAGE_INVENTORY)
        assert not role.has_permission(Permissions.MANAGE_CASH)

    def test_unknown_permission_is_rejected(self, db_session, seed_roles_data):
        with pytest.raises(ValidationError):
            UserService(db_session).set_permissions(seed_roles_data[Roles.WAITER], ["volar"])

    def test_duplicate_role(self, db_session, seed_roles_data):
        with pytest.raises(DuplicateEntityError):
            UserService(db_session).create_role("Bartender")

    def test_role_in_use_cannot_be_deleted(self, db_session, waiter_user):
        service = UserService(db_session)
        with pytest.raises(ConflictError):
            service.delete_role(service.get_role(waiter_user.role_id))
