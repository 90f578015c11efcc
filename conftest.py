# conftest.py

import os
import tempfile

import pytest
from flask_login import FlaskLoginClient
from werkzeug.security import generate_password_hash

# Set testing environment BEFORE importing app so app.py picks TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import app as flask_app  # noqa: E402
from taxonomy_admin.models import (  # noqa: E402
    Currency,
    Department,
    Division,
    JobTitle,
    Project,
    ProjectType,
    ProjectTypeActivity,
    Role,
    Unit,
    User,
    db,
)
from taxonomy_admin.taxonomy.serialization import ImportPreviewCache  # noqa: E402
from taxonomy_admin.utils.permissions import ensure_taxonomy_permissions  # noqa: E402


@pytest.fixture(scope="function")
def app():
    """Create and configure a test Flask application"""
    import uuid

    # Create a unique temporary database file for each test
    db_fd, temp_db = tempfile.mkstemp(suffix=f"_{uuid.uuid4().hex[:8]}.db")

    try:
        flask_app.config.update(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": f"sqlite:///{temp_db}",
                "SECRET_KEY": "test-secret-key-for-testing-only",
                "MONITORING_ENABLED": False,
                "ENABLE_FILE_LOGGING": False,
                "ENABLE_CONSOLE_LOGGING": False,
                "LOG_LEVEL": "DEBUG",
                "TAXONOMY_IMPORT_PREVIEW_ROWS": 10,
                "TAXONOMY_EXPORT_WRAP": True,
                "TAXONOMY_EXPORT_SCHEMA_VERSION": "1.0.0",
            }
        )
        flask_app.test_client_class = FlaskLoginClient

        from taxonomy_admin.utils.logging_config import setup_logging

        setup_logging(flask_app)

        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            yield flask_app
            db.session.remove()
            db.session.close()
            db.drop_all()
    finally:
        # Always close and remove the temporary database file, even on error
        try:
            os.close(db_fd)
        except OSError:
            pass
        try:
            if os.path.exists(temp_db):
                os.unlink(temp_db)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture(autouse=True)
def clear_preview_cache():
    ImportPreviewCache.clear()
    yield
    ImportPreviewCache.clear()


@pytest.fixture
def client(app):
    """Anonymous test client"""
    return app.test_client()


@pytest.fixture
def runner(app):
    """Create a test CLI runner for the Flask application"""
    return app.test_cli_runner()


@pytest.fixture
def make_user(app):
    """Factory creating a persisted user holding the given permissions"""
    permissions = ensure_taxonomy_permissions()
    counter = {"value": 0}

    def _make_user(*permission_names, super_admin=False, **fields):
        counter["value"] += 1
        number = counter["value"]
        role = None
        if permission_names:
            role = Role(name=f"ROLE_{number}", display_name=f"Role {number}")
            for name in permission_names:
                role.grant(permissions[name])
            db.session.add(role)
        user = User(
            username=fields.pop("username", f"user{number}"),
            email=fields.pop("email", f"user{number}@example.com"),
            password_hash=generate_password_hash("testpass123"),
            is_active=True,
            is_super_admin=super_admin,
            role=role,
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def admin_user(make_user):
    return make_user(super_admin=True, username="admin", email="admin@example.com")


@pytest.fixture
def admin_client(app, admin_user):
    """Test client logged in as a super admin"""
    return app.test_client(user=admin_user)


@pytest.fixture
def taxonomy(app):
    """A small set of records for every kind, keyed by a short name"""
    records = {
        "engineering": Department(name_en="Engineering", name_ar="الهندسة", display_order=1),
        "finance": Department(name_en="Finance", name_ar="المالية", display_order=2),
        "hr": Department(name_en="Human Resources", display_order=3),
        "engineer": JobTitle(title_en="Engineer", title_ar="مهندس", display_order=1),
        "analyst": JobTitle(title_en="Analyst", display_order=2),
        "construction": ProjectType(name="Construction", code="CON", display_order=1),
        "excavation": ProjectTypeActivity(
            project_type="Construction",
            activity_name="Excavation",
            default_unit="m3",
            estimated_rate=12.5,
            display_order=1,
        ),
        "north": Division(name="North", code="N", display_order=1),
        "usd": Currency(code="USD", name="US Dollar", symbol="$", exchange_rate=1.0, is_default=True, display_order=1),
        "sar": Currency(code="SAR", name="Saudi Riyal", exchange_rate=3.75, display_order=2),
        "m3": Unit(code="m3", name="Cubic metre", display_order=1),
    }
    db.session.add_all(records.values())
    db.session.commit()
    return records


@pytest.fixture
def owners(app, taxonomy):
    """Users and a project referencing the seeded taxonomy"""
    alice = User(
        username="alice",
        email="alice@example.com",
        password_hash=generate_password_hash("testpass123"),
        department_id=taxonomy["engineering"].id,
        job_title_id=taxonomy["engineer"].id,
    )
    bob = User(
        username="bob",
        email="bob@example.com",
        password_hash=generate_password_hash("testpass123"),
        department_id=taxonomy["engineering"].id,
    )
    project = Project(
        code="P-001",
        name="Ring Road",
        project_type_id=taxonomy["construction"].id,
        primary_activity_id=taxonomy["excavation"].id,
        division_id=taxonomy["north"].id,
        currency_id=taxonomy["usd"].id,
        unit_id=taxonomy["m3"].id,
    )
    db.session.add_all([alice, bob, project])
    db.session.commit()
    return {"alice": alice, "bob": bob, "project": project}
