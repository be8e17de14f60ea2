"""
Expiry cascade and the sweeper (service, admin endpoint and CLI).
"""
from datetime import datetime, timedelta

from models import db
from models.role import AccountType
from models.subscription import UserSubscription
from services import expiry
from services.expiry import apply_expiry_cascade, sweep_expired_subscriptions


def _overdue(make_active_subscription, user, package, days=1):
    now = datetime.utcnow()
    return make_active_subscription(user, package, start=now - timedelta(days=30 + days),
                                    end=now - timedelta(days=days))


class TestSweep:

    def test_expires_overdue_and_downgrades_user(self, user, make_package, make_active_subscription):
        subscription = _overdue(make_active_subscription, user, make_package())

        result = sweep_expired_subscriptions()
        assert (result.checked, result.expired, result.failed) == (1, 1, 0)
        assert result.expired_ids == [subscription.id]

        db.session.expire_all()
        subscription = db.session.get(UserSubscription, subscription.id)
        assert subscription.status == 'expired'
        assert subscription.is_active is False
        assert user.is_premium is False
        assert user.subscription_end_date is None
        assert user.role_name == 'User'
        assert user.account_type.name == 'Normal'

    def test_vip_is_moved_back_to_user(self, make_user, make_package, make_active_subscription):
        vip = make_user(role='VIP', account_type='Premium')
        _overdue(make_active_subscription, vip, make_package())
        sweep_expired_subscriptions()
        assert vip.role_name == 'User'

    def test_leaves_current_subscriptions_alone(self, user, make_package, make_active_subscription):
        subscription = make_active_subscription(user, make_package())
        result = sweep_expired_subscriptions()
        assert result.checked == 0
        assert subscription.is_active is True
        assert user.is_premium is True

    def test_second_run_is_a_no_op(self, user, make_package, make_active_subscription):
        _overdue(make_active_subscription, user, make_package())
        assert sweep_expired_subscriptions().expired == 1
        again = sweep_expired_subscriptions()
        assert (again.checked, again.expired, again.failed) == (0, 0, 0)

    def test_cascade_is_idempotent(self, user, make_package, make_active_subscription):
        subscription = _overdue(make_active_subscription, user, make_package())
        assert apply_expiry_cascade(subscription) is True
        db.session.commit()

        user.is_premium = True  # would be wiped by a second downgrade
        db.session.commit()
        assert apply_expiry_cascade(subscription) is False
        assert user.is_premium is True

    def test_privileged_roles_are_never_downgraded(self, make_user, make_package, make_active_subscription):
        package = make_package()
        admin = make_user(role='Admin')
        moderator = make_user(role='Moderator')
        _overdue(make_active_subscription, admin, package)
        _overdue(make_active_subscription, moderator, package)

        result = sweep_expired_subscriptions()
        assert result.expired == 2
        assert admin.role_name == 'Admin'
        assert moderator.role_name == 'Moderator'
        assert admin.is_premium is False
        assert moderator.is_premium is False

    def test_missing_normal_account_type_is_skipped(self, user, make_package, make_active_subscription):
        subscription = _overdue(make_active_subscription, user, make_package())
        premium_type_id = user.account_type_id
        db.session.delete(AccountType.query.filter_by(name='Normal').one())
        db.session.commit()

        result = sweep_expired_subscriptions()
        assert result.expired == 1
        assert subscription.status == 'expired'
        assert user.is_premium is False
        assert user.account_type_id == premium_type_id

    def test_failing_row_does_not_stop_the_sweep(self, monkeypatch, make_user, make_package,
                                                 make_active_subscription):
        package = make_package()
        broken = _overdue(make_active_subscription, make_user(), package, days=2)
        healthy = _overdue(make_active_subscription, make_user(), package, days=1)
        broken_id = broken.id

        original = expiry.apply_expiry_cascade

        def flaky(subscription, now=None):
            if subscription.id == broken_id:
                raise RuntimeError('storage hiccup')
            return original(subscription, now)

        monkeypatch.setattr(expiry, 'apply_expiry_cascade', flaky)
        result = sweep_expired_subscriptions()

        assert (result.checked, result.expired, result.failed) == (2, 1, 1)
        assert result.failed_ids == [broken_id]
        assert db.session.get(UserSubscription, healthy.id).status == 'expired'
        assert db.session.get(UserSubscription, broken_id).status == 'active'


class TestSweepEntryPoints:

    def test_admin_endpoint(self, client, user, make_package, make_active_subscription, admin_headers):
        _overdue(make_active_subscription, user, make_package())
        response = client.post('/api/subscription/admin/expired/check', headers=admin_headers)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['checked'] == 1
        assert data['expired'] == 1
        assert data['failed'] == 0

    def test_admin_endpoint_requires_admin(self, client, user_headers):
        response = client.post('/api/subscription/admin/expired/check', headers=user_headers)
        assert response.status_code == 403

    def test_cli_command(self, app, user, make_package, make_active_subscription):
        _overdue(make_active_subscription, user, make_package())
        result = app.test_cli_runner().invoke(args=['expire-subscriptions'])
        assert result.exit_code == 0
        assert 'expired 1' in result.output
        assert user.is_premium is False
