"""
Pytest fixtures for the ledger tests.

Each test gets a fresh application on an in-memory SQLite database. The app
context is only pushed for setup and teardown so that test-client requests
each get their own ``g`` (Flask-Login caches the user there).
"""

from datetime import datetime
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from goldledger import create_app, db
from goldledger.models import User

PASSWORD = "Password123!"


@pytest.fixture
def app():
    app = create_app('config.TestConfig')
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """App context for tests that talk to the store directly."""
    with app.app_context():
        yield app


@pytest.fixture
def store(app):
    return app.extensions['sale_store']


def _make_user(app, username):
    with app.app_context():
        user = User(username=username, password_hash=generate_password_hash(PASSWORD))
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def user_id(app):
    return _make_user(app, "shop")


@pytest.fixture
def other_user_id(app):
    return _make_user(app, "rival")


def login(client, username="shop", password=PASSWORD):
    return client.post(
        "/login",
        data={"username": username, "password": password},
        follow_redirects=True
    )


@pytest.fixture
def auth_client(client, user_id):
    login(client)
    return client


def sale_fields(customer="Asha Rao", base="100000", gst="3000", discount="5000", **extra):
    base, gst, discount = Decimal(base), Decimal(gst), Decimal(discount)
    fields = {
        "customer_name": customer,
        "customer_phone": "9876543210",
        "item_name": "Gold Ring",
        "huid": "HU1234",
        "notes": "",
        "item_base_price": base,
        "gst_amount": gst,
        "discount_amount": discount,
        "total_price_before_discount": base + gst,
        "final_price": base + gst - discount,
    }
    fields.update(extra)
    return fields


@pytest.fixture
def add_sale(app, store):
    """Create a sale for an owner at a fixed timestamp; returns its id."""
    def _add(owner_id, when=datetime(2026, 3, 5, 11, 30), **kwargs):
        with app.app_context():
            return store.create(owner_id, sale_fields(**kwargs), timestamp=when)
    return _add
