"""
Subscription state machine through the HTTP API.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from models import db
from models.admin_notification import AdminNotification
from models.payment import Payment
from models.subscription import UserSubscription
from services import subscriptions as subscription_service
from utils.errors import ConflictError, NotFoundError, ValidationError


def _subscribe(client, headers, package_id, method='momo'):
    return client.post('/api/subscription/subscribe', headers=headers,
                       json={'package_id': package_id, 'payment_method': method})


class TestRequestSubscription:

    def test_creates_pending_subscription_and_payment(self, client, user, make_package, user_headers):
        package = make_package(name='Premium', price=15000, discount=10)
        response = _subscribe(client, user_headers, package.id)
        assert response.status_code == 201
        body = response.get_json()
        assert body['success'] is True

        subscription = body['data']['subscription']
        payment = body['data']['payment']
        assert subscription['status'] == 'pending'
        assert subscription['is_active'] is False
        assert subscription['payment_id'] == payment['id']
        assert payment['status'] == 'pending'
        assert payment['approval_status'] == 'pending'
        assert payment['amount'] == 13500.0
        assert payment['subscription_id'] == subscription['id']
        assert payment['transaction_id'].startswith('MOMO-')

    def test_notifies_admins(self, client, make_package, user_headers):
        package = make_package()
        _subscribe(client, user_headers, package.id)
        notification = AdminNotification.query.filter_by(type='subscription').one()
        assert notification.payload['package_name'] == package.name
        assert notification.is_read is False

    def test_inactive_package_not_found(self, client, make_package, user_headers):
        package = make_package(is_active=False)
        response = _subscribe(client, user_headers, package.id)
        assert response.status_code == 404
        assert response.get_json()['success'] is False

    def test_missing_package_not_found(self, client, user_headers):
        assert _subscribe(client, user_headers, 9999).status_code == 404

    def test_invalid_payment_method(self, client, make_package, user_headers):
        response = _subscribe(client, user_headers, make_package().id, method='cash')
        assert response.status_code == 400

    def test_second_request_conflicts_while_pending(self, client, make_package, user_headers):
        package = make_package()
        assert _subscribe(client, user_headers, package.id).status_code == 201
        assert _subscribe(client, user_headers, package.id).status_code == 409
        assert UserSubscription.query.count() == 1

    def test_conflicts_while_active(self, client, user, make_package, make_active_subscription, user_headers):
        package = make_package()
        make_active_subscription(user, package)
        assert _subscribe(client, user_headers, package.id).status_code == 409

    def test_requires_login(self, client, make_package):
        assert _subscribe(client, {}, make_package().id).status_code == 401

    def test_unique_index_backs_the_check(self, user, make_package):
        package = make_package()
        subscription_service.request_subscription(user.id, package.id, 'momo')
        db.session.add(UserSubscription(user_id=user.id, package_id=package.id, status='pending'))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestApproveReject:

    def _pending(self, user, package):
        subscription, _ = subscription_service.request_subscription(user.id, package.id, 'bank_transfer')
        return subscription

    def test_approve_grants_entitlements(self, client, user, admin, make_package, admin_headers):
        package = make_package(duration_days=30)
        subscription = self._pending(user, package)

        response = client.post(f'/api/subscription/admin/approve/{subscription.id}', headers=admin_headers,
                               json={'notes': 'paid by transfer'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'active'
        assert data['is_active'] is True
        assert data['approved_by'] == admin.id
        assert data['payment_confirmed'] is True
        assert data['payment']['status'] == 'completed'
        assert data['payment']['approval_status'] == 'approved'

        db.session.expire_all()
        assert user.is_premium is True
        assert user.account_type.name == 'Premium'
        assert user.role_name == 'VIP'
        approved = db.session.get(UserSubscription, subscription.id)
        assert user.subscription_end_date == approved.end_date
        assert (approved.end_date - approved.start_date).days == 30

    def test_approve_keeps_privileged_role(self, make_user, admin, make_package):
        moderator = make_user(role='Moderator')
        subscription = self._pending(moderator, make_package())
        subscription_service.approve_subscription(subscription.id, admin.id)
        assert moderator.role_name == 'Moderator'
        assert moderator.is_premium is True

    def test_approve_non_pending_not_found(self, client, user, make_package, make_active_subscription,
                                           admin_headers):
        subscription = make_active_subscription(user, make_package())
        response = client.post(f'/api/subscription/admin/approve/{subscription.id}', headers=admin_headers)
        assert response.status_code == 404

    def test_reject_requires_reason(self, client, user, make_package, admin_headers):
        subscription = self._pending(user, make_package())
        response = client.post(f'/api/subscription/admin/reject/{subscription.id}', headers=admin_headers,
                               json={})
        assert response.status_code == 400

    def test_reject(self, client, user, admin, make_package, admin_headers):
        subscription = self._pending(user, make_package())
        response = client.post(f'/api/subscription/admin/reject/{subscription.id}', headers=admin_headers,
                               json={'reason': 'Payment not received'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'rejected'
        assert data['rejected_by'] == admin.id
        assert data['payment']['approval_status'] == 'rejected'
        assert data['payment']['rejection_reason'] == 'Payment not received'
        assert user.is_premium is False
        assert user.role_name == 'User'

    def test_rejected_user_can_request_again(self, user, admin, make_package):
        package = make_package()
        subscription = self._pending(user, package)
        subscription_service.reject_subscription(subscription.id, admin.id, 'No payment')
        again, _ = subscription_service.request_subscription(user.id, package.id, 'momo')
        assert again.status == 'pending'

    def test_admin_routes_forbidden_for_viewers(self, client, user, make_package, user_headers):
        subscription = self._pending(user, make_package())
        response = client.post(f'/api/subscription/admin/approve/{subscription.id}', headers=user_headers)
        assert response.status_code == 403


class TestCancel:

    def test_cancel_pending_deletes_request_and_payment(self, client, user, make_package, user_headers):
        package = make_package()
        created = _subscribe(client, user_headers, package.id).get_json()['data']

        response = client.post('/api/subscription/cancel', headers=user_headers)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['deleted'] is True
        assert data['subscription']['id'] == created['subscription']['id']
        assert UserSubscription.query.count() == 0
        assert db.session.get(Payment, created['payment']['id']) is None

    def test_cancel_active_stops_renewal_only(self, client, user, make_package, make_active_subscription,
                                              user_headers):
        subscription = make_active_subscription(user, make_package())
        subscription.auto_renewal = True
        db.session.commit()

        response = client.post('/api/subscription/cancel', headers=user_headers)
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['deleted'] is False
        assert data['subscription']['renewal_status'] == 'cancelled'
        assert data['subscription']['auto_renewal'] is False
        assert data['subscription']['status'] == 'active'
        assert user.is_premium is True

    def test_cancel_without_subscription(self, client, user_headers):
        assert client.post('/api/subscription/cancel', headers=user_headers).status_code == 404

    def test_cancel_ignores_inactive_row_marked_active(self, user, make_package, make_active_subscription):
        subscription = make_active_subscription(user, make_package())
        subscription.is_active = False
        db.session.commit()

        with pytest.raises(NotFoundError):
            subscription_service.cancel_subscription(user.id)
        assert subscription.renewal_status == 'active'

    def test_admin_cancel_downgrades_immediately(self, client, user, make_package, make_active_subscription,
                                                 admin_headers):
        subscription = make_active_subscription(user, make_package())
        response = client.post(f'/api/subscription/admin/cancel/{subscription.id}', headers=admin_headers,
                               json={'reason': 'Chargeback'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'cancelled'
        assert data['is_active'] is False
        assert data['cancelled_at'] is not None

        db.session.expire_all()
        assert user.is_premium is False
        assert user.subscription_end_date is None
        assert user.account_type.name == 'Normal'
        assert user.role_name == 'User'

    def test_admin_cancel_requires_active(self, user, admin, make_package):
        subscription, _ = subscription_service.request_subscription(user.id, make_package().id, 'momo')
        with pytest.raises(NotFoundError):
            subscription_service.cancel_subscription_by_admin(subscription.id, admin.id)


class TestCurrentAndHistory:

    def test_current_with_days_left(self, client, user, make_package, make_active_subscription, user_headers):
        now = datetime.utcnow()
        make_active_subscription(user, make_package(), end=now + timedelta(days=4, hours=2))
        data = client.get('/api/subscription/current', headers=user_headers).get_json()['data']
        assert data['has_active_subscription'] is True
        assert data['days_left'] == 5
        assert data['is_expired'] is False

    def test_current_expires_overdue_subscription(self, client, user, make_package, make_active_subscription,
                                                  user_headers):
        now = datetime.utcnow()
        subscription = make_active_subscription(user, make_package(),
                                                start=now - timedelta(days=31), end=now - timedelta(hours=1))
        data = client.get('/api/subscription/current', headers=user_headers).get_json()['data']
        assert data['is_expired'] is True
        assert data['has_active_subscription'] is False
        assert data['days_left'] == 0

        db.session.expire_all()
        assert db.session.get(UserSubscription, subscription.id).status == 'expired'
        assert user.is_premium is False
        assert user.account_type.name == 'Normal'

    def test_current_without_subscription(self, client, user_headers):
        data = client.get('/api/subscription/current', headers=user_headers).get_json()['data']
        assert data['has_active_subscription'] is False
        assert data['subscription'] is None

    def test_check_expired_endpoint(self, client, user, make_package, make_active_subscription, user_headers):
        now = datetime.utcnow()
        make_active_subscription(user, make_package(), start=now - timedelta(days=31), end=now - timedelta(days=1))
        data = client.get('/api/subscription/check-expired', headers=user_headers).get_json()['data']
        assert data['expired'] is True
        assert user.is_premium is False

    def test_history_newest_first(self, user, admin, make_package, client, user_headers):
        first_package = make_package(name='Cơ bản', price=10000, description='Hide homepage advertisements')
        second_package = make_package(name='Premium')
        first, _ = subscription_service.request_subscription(user.id, first_package.id, 'momo')
        subscription_service.reject_subscription(first.id, admin.id, 'No payment')
        subscription_service.request_subscription(user.id, second_package.id, 'zalopay')

        data = client.get('/api/subscription/history', headers=user_headers).get_json()['data']
        assert [item['package']['name'] for item in data] == ['Premium', 'Cơ bản']
        assert data[0]['payment']['method'] == 'zalopay'

    def test_pending(self, client, user, make_package, user_headers):
        assert client.get('/api/subscription/pending', headers=user_headers).get_json()['data'] is None
        _subscribe(client, user_headers, make_package().id)
        data = client.get('/api/subscription/pending', headers=user_headers).get_json()['data']
        assert data['status'] == 'pending'


class TestAutoRenewal:

    def test_rejects_non_boolean(self, client, user, make_package, make_active_subscription, user_headers):
        make_active_subscription(user, make_package())
        response = client.put('/api/subscription/auto-renewal', headers=user_headers, json={'auto_renewal': 'yes'})
        assert response.status_code == 400

    def test_requires_active_subscription(self, client, user_headers):
        response = client.put('/api/subscription/auto-renewal', headers=user_headers, json={'auto_renewal': True})
        assert response.status_code == 404

    def test_toggle(self, client, user, make_package, make_active_subscription, user_headers):
        make_active_subscription(user, make_package())
        response = client.put('/api/subscription/auto-renewal', headers=user_headers, json={'auto_renewal': True})
        assert response.status_code == 200
        assert response.get_json()['data']['auto_renewal'] is True

    def test_service_validation(self, user):
        with pytest.raises(ValidationError):
            subscription_service.set_auto_renewal(user.id, 1)


class TestAdminQueries:

    def test_pending_list_paginates(self, client, make_user, make_package, admin_headers):
        package = make_package()
        for _ in range(3):
            subscription_service.request_subscription(make_user().id, package.id, 'momo')

        response = client.get('/api/subscription/admin/pending-subscriptions?page=2&limit=2',
                              headers=admin_headers)
        data = response.get_json()['data']
        assert len(data['subscriptions']) == 1
        assert data['pagination'] == {'total': 3, 'page': 2, 'pages': 2, 'limit': 2}
        assert data['subscriptions'][0]['user']['email'].endswith('@example.com')

    def test_pending_list_rejects_unknown_sort(self, client, admin_headers):
        response = client.get('/api/subscription/admin/pending-subscriptions?sort_by=password',
                              headers=admin_headers)
        assert response.status_code == 400

    def test_pending_count(self, client, user, make_package, admin_headers):
        subscription_service.request_subscription(user.id, make_package().id, 'momo')
        data = client.get('/api/subscription/admin/pending-count', headers=admin_headers).get_json()['data']
        assert data['count'] == 1

    def test_status_filter_accepts_both_spellings(self, client, user, admin, make_package,
                                                  make_active_subscription, admin_headers):
        subscription = make_active_subscription(user, make_package())
        subscription_service.cancel_subscription_by_admin(subscription.id, admin.id)

        for value in ('canceled', 'cancelled'):
            data = client.get(f'/api/subscription/admin/subscriptions?status={value}',
                              headers=admin_headers).get_json()['data']
            assert [item['id'] for item in data] == [subscription.id]

        data = client.get('/api/subscription/admin/subscriptions?status=active,pending',
                          headers=admin_headers).get_json()['data']
        assert data == []

    def test_status_filter_rejects_unknown(self, client, admin_headers):
        response = client.get('/api/subscription/admin/subscriptions?status=paused', headers=admin_headers)
        assert response.status_code == 400

    def test_conflict_error_type(self, user, make_package, make_active_subscription):
        package = make_package()
        make_active_subscription(user, package)
        with pytest.raises(ConflictError):
            subscription_service.request_subscription(user.id, package.id, 'momo')
