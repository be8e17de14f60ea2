"""
Test configuration and fixtures for the subscription backend.

Every test gets a fresh in-memory SQLite database seeded with the
reference roles and account types.
"""
from datetime import datetime, timedelta

import pytest
from flask import g

from app import create_app, seed_reference_data
from config import TestConfig
from models import db
from models.package import SubscriptionPackage
from models.payment import Payment
from models.role import find_role, find_account_type
from models.subscription import UserSubscription
from models.user import User
from utils.auth_utils import generate_access_token


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Flask app bound to an empty, seeded database."""
    app = create_app(TestConfig)

    # Test requests share the pushed app context, so g outlives a request.
    # Flask-Login caches the caller in g; drop it so each request loads
    # its own bearer token.
    @app.before_request
    def _forget_cached_user():
        g.pop('_login_user', None)

    with app.app_context():
        seed_reference_data()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def config(app):
    return app.config


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_user(app):
    """Create and commit a user with the given role and account type names."""
    counter = {'n': 0}

    def _make(email=None, role='User', account_type='Normal', password='secret123', fullname='Test Viewer'):
        counter['n'] += 1
        user = User(fullname=fullname, email=email or f'viewer{counter["n"]}@example.com')
        user.set_password(password)
        user.role = find_role(role) if role else None
        user.account_type = find_account_type(account_type) if account_type else None
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(email='viewer@example.com')


@pytest.fixture
def admin(make_user):
    return make_user(email='admin@example.com', role='Admin', fullname='Site Admin')


@pytest.fixture
def make_package(app):
    """Create a package directly, bypassing catalog classification unless asked."""
    def _make(name='Premium', price=15000, duration_days=30, discount=0, is_active=True, ad_tier=None,
              description='Watch without advertisements'):
        package = SubscriptionPackage(
            name=name,
            description=description,
            price=price,
            duration_days=duration_days,
            discount=discount,
            is_active=is_active,
            features=[],
            account_type_id=find_account_type('Premium').id,
            ad_tier=ad_tier,
        )
        db.session.add(package)
        db.session.commit()
        return package

    return _make


@pytest.fixture
def make_active_subscription(app):
    """An approved subscription (and its completed payment) for a user."""
    def _make(user, package, start=None, end=None):
        now = datetime.utcnow()
        start = start or now - timedelta(days=1)
        end = end or now + timedelta(days=package.duration_days)
        payment = Payment(user_id=user.id, package_id=package.id, amount=package.price,
                          status='completed', approval_status='approved', method='momo')
        db.session.add(payment)
        db.session.flush()
        subscription = UserSubscription(
            user_id=user.id,
            package_id=package.id,
            start_date=start,
            end_date=end,
            is_active=True,
            status='active',
            renewal_status='active',
            payment_id=payment.id,
            payment_confirmed=True,
            account_type_id=package.account_type_id,
        )
        db.session.add(subscription)
        db.session.flush()
        payment.subscription_id = subscription.id
        user.is_premium = True
        user.account_type = find_account_type('Premium')
        user.subscription_end_date = end
        db.session.commit()
        return subscription

    return _make


# =============================================================================
# Auth helpers
# =============================================================================

@pytest.fixture
def auth_header(app):
    def _header(user):
        return {'Authorization': f'Bearer {generate_access_token(user)}'}
    return _header


@pytest.fixture
def user_headers(user, auth_header):
    return auth_header(user)


@pytest.fixture
def admin_headers(admin, auth_header):
    return auth_header(admin)
