"""
Model-level behaviour: status spelling, remaining days, serialization.
"""
from datetime import datetime, timedelta

import pytest

from models import db
from models.subscription import UserSubscription, normalize_status, status_filter_values


class TestStatusNormalization:
    """Both spellings of cancelled are one value."""

    def test_normalize_status(self):
        assert normalize_status('canceled') == 'cancelled'
        assert normalize_status('CANCELLED') == 'cancelled'
        assert normalize_status(' Active ') == 'active'
        assert normalize_status(None) is None

    def test_filter_values_include_legacy_spelling(self):
        assert set(status_filter_values('cancelled')) == {'cancelled', 'canceled'}
        assert status_filter_values('active') == ['active']

    def test_writes_are_normalized(self):
        subscription = UserSubscription(user_id=1, package_id=1, status='canceled', renewal_status='canceled')
        assert subscription.status == 'cancelled'
        assert subscription.renewal_status == 'cancelled'

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            UserSubscription(user_id=1, package_id=1, status='paused')

    def test_expired_is_not_a_renewal_status(self):
        with pytest.raises(ValueError):
            UserSubscription(user_id=1, package_id=1, renewal_status='expired')


class TestDaysLeft:

    def test_rounds_partial_days_up(self):
        now = datetime(2026, 1, 1, 12, 0, 0)
        subscription = UserSubscription(user_id=1, package_id=1, end_date=now + timedelta(days=2, hours=1))
        assert subscription.days_left(now) == 3

    def test_zero_once_passed(self):
        now = datetime(2026, 1, 1)
        subscription = UserSubscription(user_id=1, package_id=1, end_date=now - timedelta(seconds=1))
        assert subscription.days_left(now) == 0

    def test_zero_without_end_date(self):
        assert UserSubscription(user_id=1, package_id=1).days_left(datetime(2026, 1, 1)) == 0

    def test_window_is_inclusive(self):
        start = datetime(2026, 1, 1)
        end = datetime(2026, 1, 31)
        subscription = UserSubscription(user_id=1, package_id=1, start_date=start, end_date=end)
        assert subscription.is_within_window(start)
        assert subscription.is_within_window(end)
        assert not subscription.is_within_window(end + timedelta(seconds=1))


class TestSerialization:

    def test_package_to_dict(self, make_package):
        package = make_package(name='Premium', price=15000, discount=10, ad_tier='premium')
        data = package.to_dict()
        assert data['name'] == 'Premium'
        assert data['price'] == 15000
        assert data['account_type'] == 'Premium'
        assert data['ad_tier'] == 'premium'
        assert data['features'] == []

    def test_legacy_cancelled_row_reads_canonical(self, user, make_package, make_active_subscription):
        subscription = make_active_subscription(user, make_package())
        db.session.execute(
            UserSubscription.__table__.update()
            .where(UserSubscription.id == subscription.id)
            .values(status='canceled', is_active=False)
        )
        db.session.commit()
        db.session.expire_all()
        reloaded = db.session.get(UserSubscription, subscription.id)
        assert reloaded.canonical_status == 'cancelled'
        assert reloaded.to_dict()['status'] == 'cancelled'

    def test_user_to_dict(self, user):
        data = user.to_dict()
        assert data['role'] == 'User'
        assert data['account_type'] == 'Normal'
        assert data['is_premium'] is False
        assert 'password_hash' not in data
