"""
User management tests.

Verifies:
- Admin-only account management
- The failsafe account cannot be modified, deactivated or deleted
- Nobody else can take the failsafe email
- Deactivation and password change revoke sessions
- Accounts referenced by handovers cannot be deleted
"""

import pytest

from stockroom.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from stockroom.models import SessionToken, User
from stockroom.permissions import MANAGE_USERS, has_capability
from stockroom.services import handover_service, session_service, user_service
from stockroom.services.auth_service import authenticate, verify_password

from conftest import FAILSAFE_EMAIL, TEST_PASSWORD, make_product, reload


def _payload(**overrides):
    payload = {
        "first_name": "New",
        "last_name": "Hire",
        "email": "New.Hire@Stockroom.test",
        "password": "welcome1",
        "role": "employee",
    }
    payload.update(overrides)
    return payload


class TestCreateUser:
    def test_admin_creates_user(self, db_session, admin):
        user = user_service.create_user(payload=_payload(), actor_user_id=admin.id)
        assert user.email == "new.hire@stockroom.test"
        assert user.role == "employee"
        assert user.is_active
        assert not user.is_failsafe
        assert verify_password("welcome1", user.password_hash)

    def test_role_defaults_to_employee(self, db_session, admin):
        payload = _payload()
        del payload["role"]
        assert user_service.create_user(payload=payload, actor_user_id=admin.id).role == "employee"

    def test_manager_cannot_create(self, db_session, manager):
        with pytest.raises(ForbiddenError):
            user_service.create_user(payload=_payload(), actor_user_id=manager.id)

    def test_duplicate_email_case_insensitive(self, db_session, admin, employee):
        with pytest.raises(ConflictError):
            user_service.create_user(payload=_payload(email="EMPLOYEE@stockroom.test"), actor_user_id=admin.id)

    def test_failsafe_email_reserved(self, db_session, admin):
        with pytest.raises(ForbiddenError):
            user_service.create_user(payload=_payload(email=FAILSAFE_EMAIL.upper()), actor_user_id=admin.id)

    @pytest.mark.parametrize("overrides", [
        {"password": "short"},
        {"password": None},
        {"email": "not-an-email"},
        {"role": "owner"},
        {"first_name": ""},
        {"is_failsafe": True},
    ])
    def test_invalid_payloads(self, db_session, admin, overrides):
        with pytest.raises(ValidationError):
            user_service.create_user(payload=_payload(**overrides), actor_user_id=admin.id)

    def test_provision_user_without_actor(self, db_session):
        user = user_service.provision_user(
            email="cli@stockroom.test", password="cli-pass", first_name="Cli", last_name="User", role="manager",
        )
        assert user.role == "manager"


class TestUpdateUser:
    def test_role_change_changes_capabilities(self, db_session, admin, employee):
        user = user_service.update_user(user_id=employee.id, payload={"role": "admin"}, actor_user_id=admin.id)
        assert has_capability(user, MANAGE_USERS)

    def test_email_conflict(self, db_session, admin, employee, manager):
        with pytest.raises(ConflictError):
            user_service.update_user(
                user_id=employee.id, payload={"email": manager.email}, actor_user_id=admin.id,
            )

    def test_failsafe_is_untouchable(self, db_session, admin, failsafe):
        with pytest.raises(ForbiddenError):
            user_service.update_user(user_id=failsafe.id, payload={"first_name": "X"}, actor_user_id=admin.id)
        with pytest.raises(ForbiddenError):
            user_service.update_user(user_id=failsafe.id, payload={"role": "employee"}, actor_user_id=failsafe.id)
        assert reload(User, failsafe.id).role == "admin"

    def test_password_not_writable_here(self, db_session, admin, employee):
        with pytest.raises(ValidationError):
            user_service.update_user(user_id=employee.id, payload={"password_hash": "x"}, actor_user_id=admin.id)

    def test_unknown_user(self, db_session, admin):
        with pytest.raises(NotFoundError):
            user_service.update_user(user_id=999, payload={"first_name": "X"}, actor_user_id=admin.id)

    def test_profile(self, db_session, employee):
        user = user_service.update_profile(user_id=employee.id, payload={"phone": "0300-1234567"})
        assert user.phone == "0300-1234567"
        with pytest.raises(ValidationError):
            user_service.update_profile(user_id=employee.id, payload={"role": "admin"})


class TestStatusAndDelete:
    def test_toggle_revokes_sessions(self, db_session, admin, employee):
        _, token = session_service.create_session(employee.id)
        user = user_service.toggle_user_status(user_id=employee.id, actor_user_id=admin.id)
        assert not user.is_active
        assert session_service.validate_session(token) is None

        user = user_service.toggle_user_status(user_id=employee.id, actor_user_id=admin.id)
        assert user.is_active

    def test_cannot_deactivate_self_or_failsafe(self, db_session, admin, failsafe):
        with pytest.raises(ForbiddenError):
            user_service.toggle_user_status(user_id=admin.id, actor_user_id=admin.id)
        with pytest.raises(ForbiddenError):
            user_service.toggle_user_status(user_id=failsafe.id, actor_user_id=admin.id)

    def test_delete(self, db_session, admin, employee):
        session_service.create_session(employee.id)
        user_service.delete_user(user_id=employee.id, actor_user_id=admin.id)
        assert reload(User, employee.id) is None
        assert db_session.query(SessionToken).filter_by(user_id=employee.id, is_revoked=False).count() == 0

    def test_cannot_delete_self_or_failsafe(self, db_session, admin, failsafe):
        with pytest.raises(ForbiddenError):
            user_service.delete_user(user_id=admin.id, actor_user_id=admin.id)
        with pytest.raises(ForbiddenError):
            user_service.delete_user(user_id=failsafe.id, actor_user_id=admin.id)

    def test_cannot_delete_user_with_handovers(self, db_session, admin, employee):
        p = make_product(db_session)
        handover_service.create_direct_handover(
            product_id=p.id, employee_id=employee.id, quantity=1, issuer_id=admin.id,
        )
        with pytest.raises(ConflictError):
            user_service.delete_user(user_id=employee.id, actor_user_id=admin.id)


class TestPasswordChange:
    def test_change_password_revokes_sessions(self, db_session, employee):
        _, token = session_service.create_session(employee.id)
        user_service.change_password(user_id=employee.id, current_password=TEST_PASSWORD, new_password="brand-new")
        assert session_service.validate_session(token) is None
        assert authenticate(employee.email, "brand-new") is not None
        assert authenticate(employee.email, TEST_PASSWORD) is None

    def test_wrong_current_password(self, db_session, employee):
        with pytest.raises(ValidationError, match="incorrect"):
            user_service.change_password(user_id=employee.id, current_password="nope", new_password="brand-new")

    def test_new_password_too_short(self, db_session, employee):
        with pytest.raises(ValidationError):
            user_service.change_password(user_id=employee.id, current_password=TEST_PASSWORD, new_password="abc")

    def test_failsafe_password_frozen(self, db_session, failsafe):
        with pytest.raises(ForbiddenError):
            user_service.change_password(user_id=failsafe.id, current_password=TEST_PASSWORD, new_password="brand-new")


class TestFailsafeBootstrap:
    def test_creates_account(self, db_session):
        user = user_service.ensure_failsafe_admin("bootstrap-pass")
        assert user.email == FAILSAFE_EMAIL
        assert user.is_failsafe and user.is_active and user.role == "admin"

    def test_requires_password_to_create(self, db_session):
        with pytest.raises(ValidationError):
            user_service.ensure_failsafe_admin()

    def test_repairs_existing_account(self, db_session, failsafe):
        db_session.query(User).filter_by(id=failsafe.id).update({"role": "employee", "is_active": False})
        db_session.commit()

        user = user_service.ensure_failsafe_admin()
        assert user.role == "admin"
        assert user.is_active
        assert verify_password(TEST_PASSWORD, user.password_hash)


class TestListUsers:
    def test_filters_and_sort(self, db_session, admin, manager, employee, other_employee):
        result = user_service.list_users(actor_user_id=admin.id, role="employee", sort_by="first_name", sort_order="asc")
        assert [u["first_name"] for u in result["users"]] == ["Eve", "Olly"]
        assert result["pagination"]["total"] == 2

        found = user_service.list_users(actor_user_id=admin.id, search="manager@")
        assert [u["id"] for u in found["users"]] == [manager.id]

    def test_bad_sort(self, db_session, admin):
        with pytest.raises(ValidationError):
            user_service.list_users(actor_user_id=admin.id, sort_by="password_hash")

    def test_employee_cannot_list(self, db_session, employee):
        with pytest.raises(ForbiddenError):
            user_service.list_users(actor_user_id=employee.id)

    def test_for_handover_lists_active_users(self, db_session, manager, employee):
        inactive = User(
            first_name="Zed", last_name="Gone", email="zed@stockroom.test",
            password_hash="x", role="employee", is_active=False,
        )
        db_session.add(inactive)
        db_session.commit()

        names = [u["first_name"] for u in user_service.list_users_for_handover(actor_user_id=manager.id)]
        assert names == ["Eve", "Max"]
