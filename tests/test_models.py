import pytest
from unittest.mock import patch
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import generate_password_hash

from taxonomy_admin.models import AdminLog, Currency, Department, Permission, Role, User, db


@pytest.fixture
def test_user():
    """Create a test user fixture"""
    return User(
        username="testuser",
        email="test@example.com",
        password_hash=generate_password_hash("testpass123"),
        first_name="Test",
        last_name="User",
    )


class TestUserModel:
    """Test User model functionality"""

    def test_new_user_defaults(self, test_user, app):
        db.session.add(test_user)
        db.session.commit()

        assert test_user.is_active is True
        assert test_user.is_super_admin is False
        assert test_user.department_id is None
        assert test_user.created_at is not None

    def test_user_repr(self, test_user):
        assert repr(test_user) == "<User testuser>"

    def test_dangling_department_reference_is_allowed(self, test_user, app):
        test_user.department_id = 31337
        db.session.add(test_user)
        db.session.commit()

        assert db.session.get(User, test_user.id).department_id == 31337


class TestRoleModel:
    def test_grant_is_idempotent(self, app):
        permission = Permission(name="view_taxonomy", display_name="View Taxonomy")
        role = Role(name="VIEWER", display_name="Viewer")
        role.grant(permission)
        role.grant(permission)
        db.session.add(role)
        db.session.commit()

        assert len(role.permissions) == 1
        assert role.has_permission("view_taxonomy")
        assert not role.has_permission("manage_taxonomy")
        assert Permission.find_by_name("view_taxonomy") is permission


class TestTaxonomyModels:
    def test_defaults_and_to_dict(self, app):
        currency = Currency(code="EUR", name="Euro")
        db.session.add(currency)
        db.session.commit()

        payload = currency.to_dict()
        assert payload["is_active"] is True
        assert payload["is_default"] is False
        assert payload["exchange_rate"] == 1.0
        assert payload["display_order"] == 0
        assert isinstance(payload["created_at"], str)

    def test_natural_key_is_unique(self, app, taxonomy):
        db.session.add(Department(name_en="Finance"))

        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestAdminLogModel:
    def test_log_action(self, app, admin_user):
        assert AdminLog.log_action(admin_user.id, "TAXONOMY_SYNC", details="ok", ip_address="127.0.0.1")

        entry = AdminLog.query.one()
        assert entry.action == "TAXONOMY_SYNC"
        assert entry.admin_user.username == "admin"
        assert repr(entry) == f"<AdminLog TAXONOMY_SYNC by user {admin_user.id}>"

    def test_log_action_database_error(self, app, admin_user):
        with patch.object(db.session, "commit", side_effect=SQLAlchemyError("Database error")):
            assert AdminLog.log_action(admin_user.id, "TAXONOMY_SYNC") is False
