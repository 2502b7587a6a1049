"""
Pytest fixtures for purchase cycle backend tests.

Provides test database setup, admin/teacher profiles, session headers,
sample sheets, and test client.
"""

import pytest
from bookcycle import create_app
from bookcycle.extensions import db
from bookcycle.models import BookRequest, PurchaseSheet
from bookcycle.models.auth import ROLE_ADMIN, ROLE_TEACHER
from bookcycle.models.purchasing import SHEET_COMPARING, SHEET_PENDING
from bookcycle.services import auth_service, session_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_profile(email, full_name, role=ROLE_TEACHER, department="computer_science_and_engineering"):
    return auth_service.create_profile(
        email=email,
        password=PASSWORD,
        full_name=full_name,
        department=department,
        role=role,
        bcrypt_rounds=4,
    )


@pytest.fixture(scope='function')
def admin(db_session):
    return make_profile("admin@school.test", "Ada Admin", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def teacher(db_session):
    return make_profile("alice@school.test", "Alice Anand")


@pytest.fixture(scope='function')
def teacher_b(db_session):
    return make_profile("bob@school.test", "Bob Bose", department="information_technology")


def make_sheet(assigned_to, status=SHEET_PENDING, name="Term 1", department="computer_science_and_engineering"):
    sheet = PurchaseSheet(
        sheet_name=name,
        department=department,
        assigned_to=assigned_to,
        status=status,
    )
    db.session.add(sheet)
    db.session.commit()
    return sheet


def add_request(sheet, teacher, book_name="Calculus", author="Stewart", edition="8th", quantity=1):
    req = BookRequest(
        sheet_id=sheet.id if sheet is not None else None,
        teacher_id=teacher.id,
        teacher_name=teacher.full_name,
        book_name=book_name,
        author=author,
        edition=edition,
        quantity=quantity,
        status="pending",
    )
    db.session.add(req)
    db.session.commit()
    return req


@pytest.fixture(scope='function')
def pending_sheet(teacher):
    return make_sheet(teacher.id)


@pytest.fixture(scope='function')
def comparing_sheet(teacher):
    return make_sheet(teacher.id, status=SHEET_COMPARING, name="Term 1 Compare")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(profile) -> dict:
    _, token = session_service.create_session(profile.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def teacher_headers(teacher):
    return headers_for(teacher)
