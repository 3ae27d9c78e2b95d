"""
Pytest fixtures for the Spherical backend tests.

Provides test database setup, one user per role, catalog fixtures, and test client.
"""

import pytest
from spherical import create_app
from spherical.extensions import db
from spherical.models import User, ProductCategory, Product, InventoryItem
from spherical.permissions import Role
from spherical.services.auth_service import hash_password
from spherical.services import session_service
from spherical.guard import Identity


TEST_PASSWORD = "secret123"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: create a user with the given role (password TEST_PASSWORD)."""
    counter = {"n": 0}

    def _make(role: Role, email: str | None = None, is_active: bool = True, name: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=email or f"{role.value.lower()}{counter['n']}@spherical.test",
            password_hash=hash_password(TEST_PASSWORD),
            role=role.value,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def director(make_user):
    return make_user(Role.MANAGING_DIRECTOR, email="md@spherical.test")


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user(Role.ADMIN, email="admin@spherical.test")


@pytest.fixture(scope='function')
def inventory_manager(make_user):
    return make_user(Role.INVENTORY_MANAGER, email="stock@spherical.test")


@pytest.fixture(scope='function')
def cashier(make_user):
    return make_user(Role.CASHIER, email="cashier@spherical.test")


@pytest.fixture(scope='function')
def report_viewer(make_user):
    return make_user(Role.REPORT_VIEWER, email="reports@spherical.test")


@pytest.fixture(scope='function')
def category(db_session):
    category = ProductCategory(name="Solar Panels", description="Photovoltaic modules")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def product(db_session, category):
    product = Product(
        sku="SP-400W",
        name="400W Mono Panel",
        category_id=category.id,
        price=150.0,
        cost_price=110.0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session, category):
    product = Product(
        sku="INV-5KW",
        name="5kW Inverter",
        category_id=category.id,
        price=900.0,
        cost_price=700.0,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def stocked_product(db_session, product):
    """Product with 5 units at 'Main Warehouse' (min level 2)."""
    item = InventoryItem(product_id=product.id, location="Main Warehouse", quantity=5, min_stock_level=2)
    db_session.add(item)
    db_session.commit()
    return product


def identity_for(user: User) -> Identity:
    return Identity(user_id=user.id, role=Role(user.role))


def token_for(user: User) -> str:
    """Issue a session token directly (skips the login route)."""
    _session, token = session_service.create_session(user.id)
    return token


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user via the login route."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def director_headers(director):
    return auth_headers(token_for(director))


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


@pytest.fixture(scope='function')
def inventory_headers(inventory_manager):
    return auth_headers(token_for(inventory_manager))


@pytest.fixture(scope='function')
def cashier_headers(cashier):
    return auth_headers(token_for(cashier))


@pytest.fixture(scope='function')
def report_viewer_headers(report_viewer):
    return auth_headers(token_for(report_viewer))
