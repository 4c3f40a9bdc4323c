"""Shared fixtures for the ledger test suite."""

import os
from datetime import timedelta
from decimal import Decimal

os.environ.setdefault('WMS_SKIP_BOOTSTRAP', '1')

import pytest

from wms import create_app
from wms.config import Config
from wms.extensions import db
from wms.models import Order, OrderStatus, UserRole, Writer, utcnow
from wms.services.accounts import AccountService
from wms.services.shifts import ShiftService

PASSWORD = 'TestPass123!'


@pytest.fixture
def app(tmp_path):
    """Create and configure a test application instance."""

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = 'test-secret-key'
        SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
        RATELIMIT_ENABLED = False
        SESSION_COOKIE_SECURE = False
        REMEMBER_COOKIE_SECURE = False
        ENABLE_SCHEDULER = False
        QUEUE_NOTIFICATIONS = False
        UPLOAD_FOLDER = str(tmp_path / 'uploads')
        SHIFT_BOUNDARY_HOUR = 0
        DEFAULT_MAX_PAGES_PER_SHIFT = 20

    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def admin_id(app):
    with app.app_context():
        user = AccountService.create_user(
            'admin@test.com', PASSWORD, UserRole.ADMIN, first_name='Ada', last_name='Admin'
        )
        return user.id


@pytest.fixture
def writer_id(app):
    """Writer profile id for an approved, active writer."""
    with app.app_context():
        user = AccountService.create_user(
            'writer@test.com', PASSWORD, UserRole.WRITER, first_name='Wanjiru', last_name='Writer'
        )
        return user.writer_profile.id


@pytest.fixture
def other_writer_id(app):
    with app.app_context():
        user = AccountService.create_user(
            'other@test.com', PASSWORD, UserRole.WRITER, first_name='Otieno', last_name='Other'
        )
        return user.writer_profile.id


@pytest.fixture
def shift_id(app):
    with app.app_context():
        return ShiftService.create_new_shift(max_pages=20).id


@pytest.fixture
def order_id(app, writer_id):
    """A 10 page order at 2 per page assigned to ``writer_id``."""
    with app.app_context():
        order = Order(
            order_number='20250101001',
            subject='Research paper',
            deadline=utcnow() + timedelta(days=3),
            pages=Decimal('10'),
            cpp=Decimal('2'),
            total_amount=Decimal('20'),
            writer_id=writer_id,
            status=OrderStatus.ASSIGNED,
        )
        db.session.add(order)
        db.session.commit()
        return order.id


def set_balance(app, writer_id, amount):
    with app.app_context():
        writer = db.session.get(Writer, writer_id)
        writer.balance = Decimal(str(amount))
        db.session.commit()


def login(client, email, password=PASSWORD):
    return client.post('/api/auth/login', json={'email': email, 'password': password})
