"""
Pytest fixtures for back-office tests.

Provides an in-memory application, a per-test clean database, approved
accounts with session tokens, and a small seeded catalog.
"""

import pytest

from backoffice import create_app
from backoffice.config import TestConfig
from backoffice.extensions import db
from backoffice.models import Customer, UserRole, UserStatus
from backoffice.services import session_service
from backoffice.services.auth_service import get_account_service
from backoffice.services.products_service import create_product

PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Clear all data before each test, keeping the schema."""
    db.session.rollback()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    db.session.rollback()


@pytest.fixture
def accounts(app):
    return get_account_service()


def make_user(email, *, role=UserRole.USER.value, status=UserStatus.APPROVED.value, brand=None):
    return get_account_service().register(
        email=email,
        password=PASSWORD,
        role=role,
        status=status,
        brand=brand,
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture
def new_user(db_session):
    """Factory for accounts; defaults to an approved, unscoped user."""
    return make_user


@pytest.fixture
def login(db_session):
    """Factory returning session headers for an approved user."""
    return headers_for


@pytest.fixture
def admin_user(db_session):
    return make_user("admin@example.com", role=UserRole.ADMIN.value)


@pytest.fixture
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture
def staff_user(db_session):
    """Approved, unscoped non-admin user."""
    return make_user("staff@example.com")


@pytest.fixture
def staff_headers(staff_user):
    return headers_for(staff_user)


@pytest.fixture
def harican_user(db_session):
    """Approved user pinned to the Harican brand."""
    return make_user("harican@example.com", brand="harican")


@pytest.fixture
def harican_headers(harican_user):
    return headers_for(harican_user)


@pytest.fixture
def product(db_session):
    """Single-variant Harican product with 10 units on hand."""
    return create_product(
        patch={
            "brand": "harican",
            "article": "HR-BAG-01",
            "title": "Heavy Bag",
            "category": "Boxing Equipment",
            "wholesale_cents": 1500,
            "retail_cents": 2500,
            "club_cents": 2000,
            "cost_after_cents": 1000,
        },
        quantity=10,
    )


@pytest.fixture
def gloves(db_session):
    """Two-variant Harican product; the 10oz variant overrides the wholesale price."""
    return create_product(
        patch={
            "brand": "harican",
            "article": "HR-GLV-01",
            "title": "Sparring Gloves",
            "category": "Boxing Gloves",
            "wholesale_cents": 1500,
            "retail_cents": 3000,
            "club_cents": 2500,
            "cost_after_cents": 900,
        },
        variants=[
            {"sku": "HR-GLV-01-10", "attributes": {"Size": "10oz", "Color": "Red"}, "quantity": 5,
             "wholesale_cents": 1250},
            {"sku": "HR-GLV-01-12", "attributes": {"Size": "12oz", "Color": "Red"}, "quantity": 3},
        ],
    )


@pytest.fixture
def greenhil_product(db_session):
    return create_product(
        patch={
            "brand": "greenhil",
            "article": "GH-MIT-01",
            "title": "Focus Mitts",
            "wholesale_cents": 800,
            "retail_cents": 1600,
            "club_cents": 1200,
        },
        quantity=4,
    )


@pytest.fixture
def customer(db_session):
    c = Customer(name="Retail Rita", email="rita@example.com", tier="retail", total_orders=0, total_spent_cents=0)
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture
def wholesale_customer(db_session):
    c = Customer(name="Wholesale Gym Ltd", email="orders@gym.example.com", tier="wholesale",
                 company="Gym Ltd", total_orders=0, total_spent_cents=0)
    db_session.add(c)
    db_session.commit()
    return c
