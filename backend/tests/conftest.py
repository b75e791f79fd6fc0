"""
Pytest fixtures for stockroom backend tests.

Provides the application with an in-memory database, per-test table cleanup,
users for every role, a product factory and auth header helpers.
"""

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Product, User
from stockroom.services.auth_service import hash_password
from stockroom.services.sequence_service import next_product_number


TEST_PASSWORD = "secret123"
FAILSAFE_EMAIL = "failsafe@stockroom.test"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FAILSAFE_ADMIN_EMAIL': FAILSAFE_EMAIL,
        'BCRYPT_ROUNDS': 4,
        'LOGIN_MAX_FAILED_ATTEMPTS': 5,
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
    """Fresh data for each test (schema kept)."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


def make_user(db_session, *, email, role="employee", first_name="Test", last_name="User",
              is_active=True, is_failsafe=False) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        role=role,
        password_hash=hash_password(TEST_PASSWORD),
        is_active=is_active,
        is_failsafe=is_failsafe,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_product(db_session, *, name="Widget", stock=10, **fields) -> Product:
    product = Product(
        product_number=next_product_number(),
        name=name,
        stock_quantity=stock,
        cost_price_cents=fields.pop("cost_price_cents", 1000),
        selling_price_cents=fields.pop("selling_price_cents", 1500),
        **fields,
    )
    db_session.add(product)
    db_session.commit()
    return product


def reload(model, pk):
    """Re-read a row from the database, bypassing the identity map cache."""
    db.session.expire_all()
    return db.session.get(model, pk)


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(db_session, email="admin@stockroom.test", role="admin", first_name="Ada")


@pytest.fixture(scope='function')
def manager(db_session):
    return make_user(db_session, email="manager@stockroom.test", role="manager", first_name="Max")


@pytest.fixture(scope='function')
def employee(db_session):
    return make_user(db_session, email="employee@stockroom.test", role="employee", first_name="Eve")


@pytest.fixture(scope='function')
def other_employee(db_session):
    return make_user(db_session, email="other@stockroom.test", role="employee", first_name="Olly")


@pytest.fixture(scope='function')
def failsafe(db_session):
    return make_user(
        db_session, email=FAILSAFE_EMAIL, role="admin",
        first_name="Failsafe", last_name="Admin", is_failsafe=True,
    )


@pytest.fixture(scope='function')
def product(db_session):
    return make_product(db_session, name="Laptop", stock=10)


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager):
    return auth_headers(get_auth_token(client, manager.email))


@pytest.fixture(scope='function')
def employee_headers(client, employee):
    return auth_headers(get_auth_token(client, employee.email))
