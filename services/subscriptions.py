"""
User subscription state machine

    pending --approve--> active --end date passes--> expired
       |                   |
       +--reject--> rejected
       +--user cancel--> (deleted)
                           +--admin cancel--> cancelled

A user cancelling an active subscription only stops renewal; entitlements
stay until the end date.
"""
import logging
import math
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.role import find_role
from models.subscription import (
    UserSubscription, STATUS_PENDING, STATUS_ACTIVE, STATUS_CANCELLED, STATUS_REJECTED,
    STATUSES, normalize_status, status_filter_values,
)
from models.user import User
from services import payments as payment_service
from services.catalog import get_package
from services.expiry import downgrade_user, expire_subscription
from utils.errors import ValidationError, NotFoundError, ConflictError, InternalError

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    'created_at': UserSubscription.created_at,
    'createdAt': UserSubscription.created_at,
    'updated_at': UserSubscription.updated_at,
    'start_date': UserSubscription.start_date,
    'end_date': UserSubscription.end_date,
    'id': UserSubscription.id,
}


def _commit(action, subscription_id=None):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {action} subscription #{subscription_id}: {str(e)}", exc_info=True)
        raise InternalError(f'Failed to {action} subscription', {'subscription_id': subscription_id}, e)


def _get_subscription(subscription_id):
    subscription = db.session.get(UserSubscription, subscription_id)
    if not subscription:
        raise NotFoundError('Subscription not found', {'subscription_id': subscription_id})
    return subscription


def _get_pending(subscription_id):
    subscription = _get_subscription(subscription_id)
    if subscription.canonical_status != STATUS_PENDING:
        raise NotFoundError('Pending subscription not found', {'subscription_id': subscription_id})
    return subscription


def _find_by_status(user_id, status, active_only=False):
    query = UserSubscription.query.filter(
        UserSubscription.user_id == user_id,
        UserSubscription.status.in_(status_filter_values(status)),
    )
    if active_only:
        query = query.filter(UserSubscription.is_active.is_(True))
    return query.first()


def _side_effect(label, func, *args):
    """Run a post-commit notification; never let it fail the request."""
    try:
        func(*args)
    except Exception as e:
        logger.error(f"{label} failed: {str(e)}", exc_info=True)


def request_subscription(user_id, package_id, payment_method, now=None):
    """
    Create a pending subscription and its pending payment.

    Returns (subscription, payment).
    """
    from utils.notifications import notify_new_subscription
    from utils.mail import send_new_subscription_notification

    now = now or datetime.utcnow()
    if package_id in (None, ''):
        raise ValidationError('package_id is required')
    payment_service.validate_method(payment_method)
    package = get_package(package_id, active_only=True)

    if _find_by_status(user_id, STATUS_ACTIVE):
        raise ConflictError('You already have an active subscription')
    if _find_by_status(user_id, STATUS_PENDING):
        raise ConflictError('You already have a subscription request waiting for approval')

    try:
        payment = payment_service.create_payment(user_id, package, payment_method)
        db.session.flush()

        # Dates are provisional until approval
        subscription = UserSubscription(
            user_id=user_id,
            package_id=package.id,
            start_date=now,
            end_date=now + timedelta(days=package.duration_days),
            is_active=False,
            status=STATUS_PENDING,
            payment_id=payment.id,
            renewal_status=STATUS_PENDING,
            auto_renewal=False,
            payment_confirmed=False,
            account_type_id=package.account_type_id,
            notes='Waiting for admin approval',
        )
        db.session.add(subscription)
        db.session.flush()
        payment.subscription_id = subscription.id
        _commit('request')
    except IntegrityError as e:
        db.session.rollback()
        raise ConflictError('You already have an active or pending subscription', original_error=e)

    logger.info(f"Subscription #{subscription.id} requested by user #{user_id} for package #{package.id}")

    user = db.session.get(User, user_id)
    if user is not None:
        _side_effect('Admin notification', notify_new_subscription, subscription, user, package, payment)
        _side_effect('Admin email', send_new_subscription_notification, subscription, user, package, payment)
    return subscription, payment


def _grant_premium(user, subscription, package):
    user.is_premium = True
    user.account_type = package.account_type
    user.subscription_end_date = subscription.end_date
    if user.is_privileged:
        return
    premium_role = find_role(current_app.config['PREMIUM_ROLE'])
    if premium_role:
        user.role = premium_role


def approve_subscription(subscription_id, admin_id, notes=None, now=None):
    """Activate a pending subscription and grant its entitlements to the user."""
    from utils.notifications import notify_status_change, notify_user_updated, notify_subscription_processed
    from utils.mail import send_subscription_approved_email

    now = now or datetime.utcnow()
    subscription = _get_pending(subscription_id)
    package = subscription.package
    user = db.session.get(User, subscription.user_id)
    if user is None:
        raise NotFoundError('User not found', {'user_id': subscription.user_id})

    subscription.is_active = True
    subscription.status = STATUS_ACTIVE
    subscription.renewal_status = STATUS_ACTIVE
    subscription.approved_by = admin_id
    subscription.approved_at = now
    subscription.payment_confirmed = True
    subscription.start_date = now
    subscription.end_date = now + timedelta(days=package.duration_days)
    if notes:
        subscription.notes = notes

    payment = subscription.payment
    if payment is not None:
        payment_service.mark_approved(payment, admin_id, now)

    _grant_premium(user, subscription, package)

    try:
        _commit('approve', subscription.id)
    except IntegrityError as e:
        raise ConflictError('User already has an active subscription',
                            {'subscription_id': subscription.id}, e)

    logger.info(f"Subscription #{subscription.id} approved by admin #{admin_id}")
    _side_effect('Status push', notify_status_change, subscription, STATUS_ACTIVE, user.id)
    _side_effect('User update push', notify_user_updated, user)
    _side_effect('Audit notification', notify_subscription_processed, 'approved', subscription, admin_id)
    _side_effect('Approval email', send_subscription_approved_email, user, subscription, package)
    return subscription


def reject_subscription(subscription_id, admin_id, reason, now=None):
    from utils.notifications import notify_status_change, notify_subscription_processed
    from utils.mail import send_subscription_rejected_email

    now = now or datetime.utcnow()
    reason = (reason or '').strip() if isinstance(reason, str) else reason
    if not reason:
        raise ValidationError('A rejection reason is required')
    subscription = _get_pending(subscription_id)

    subscription.status = STATUS_REJECTED
    subscription.renewal_status = STATUS_CANCELLED
    subscription.is_active = False
    subscription.rejected_by = admin_id
    subscription.rejected_at = now
    subscription.notes = reason

    if subscription.payment is not None:
        payment_service.mark_rejected(subscription.payment, admin_id, reason)

    _commit('reject', subscription.id)
    logger.info(f"Subscription #{subscription.id} rejected by admin #{admin_id}")

    _side_effect('Status push', notify_status_change, subscription, STATUS_REJECTED, subscription.user_id)
    _side_effect('Audit notification', notify_subscription_processed, 'rejected', subscription, admin_id)
    user = db.session.get(User, subscription.user_id)
    if user is not None:
        _side_effect('Rejection email', send_subscription_rejected_email,
                     user, subscription, subscription.package, reason)
    return subscription


def cancel_subscription(user_id, now=None):
    """
    User-initiated cancel.

    A pending request is withdrawn and deleted together with its payment.
    An active subscription stops renewing but keeps its entitlements.
    Returns {'deleted': bool, 'subscription': dict}; a deleted row is
    serialized before it goes.
    """
    pending = _find_by_status(user_id, STATUS_PENDING)
    if pending is not None:
        payment = pending.payment
        pending_id = pending.id
        snapshot = pending.to_dict(include_package=True, include_payment=True)
        if payment is not None:
            payment.subscription_id = None
        db.session.delete(pending)
        db.session.flush()
        if payment is not None:
            db.session.delete(payment)
        _commit('cancel', pending_id)
        logger.info(f"Pending subscription #{pending_id} withdrawn by user #{user_id}")
        return {'deleted': True, 'subscription': snapshot}

    active = _find_by_status(user_id, STATUS_ACTIVE, active_only=True)
    if active is not None:
        active.renewal_status = STATUS_CANCELLED
        active.auto_renewal = False
        _commit('cancel', active.id)
        logger.info(f"Subscription #{active.id} will not renew (user #{user_id})")
        return {'deleted': False, 'subscription': active.to_dict()}

    raise NotFoundError('No pending or active subscription to cancel')


def cancel_subscription_by_admin(subscription_id, admin_id, reason=None, now=None):
    """Terminate an active subscription immediately and downgrade the user."""
    from utils.notifications import notify_status_change, notify_user_updated, notify_subscription_processed

    now = now or datetime.utcnow()
    subscription = _get_subscription(subscription_id)
    if subscription.canonical_status != STATUS_ACTIVE or not subscription.is_active:
        raise NotFoundError('Active subscription not found', {'subscription_id': subscription_id})

    subscription.status = STATUS_CANCELLED
    subscription.renewal_status = STATUS_CANCELLED
    subscription.is_active = False
    subscription.auto_renewal = False
    subscription.cancelled_at = now
    if reason:
        subscription.notes = reason

    user = db.session.get(User, subscription.user_id)
    if user is not None:
        downgrade_user(user)

    _commit('cancel', subscription.id)
    logger.info(f"Subscription #{subscription.id} cancelled by admin #{admin_id}")

    _side_effect('Status push', notify_status_change, subscription, STATUS_CANCELLED, subscription.user_id)
    if user is not None:
        _side_effect('User update push', notify_user_updated, user)
    _side_effect('Audit notification', notify_subscription_processed, 'cancelled', subscription, admin_id)
    return subscription


def _current_row(user_id):
    return (UserSubscription.query
            .filter(UserSubscription.user_id == user_id, UserSubscription.is_active.is_(True))
            .order_by(UserSubscription.end_date.desc())
            .first())


def get_current_subscription(user_id, now=None):
    """
    The user's active subscription, expiring it on the spot when overdue.

    Returns a dict with has_active_subscription, subscription, days_left
    and is_expired.
    """
    now = now or datetime.utcnow()
    subscription = _current_row(user_id)
    if subscription is None:
        return {'has_active_subscription': False, 'subscription': None, 'days_left': 0, 'is_expired': False}

    if subscription.end_date is not None and subscription.end_date < now:
        expire_subscription(subscription, now)
        return {'has_active_subscription': False, 'subscription': subscription, 'days_left': 0, 'is_expired': True}

    return {
        'has_active_subscription': True,
        'subscription': subscription,
        'days_left': subscription.days_left(now),
        'end_date': subscription.end_date,
        'is_expired': False,
    }


def check_current_expiry(user_id, now=None):
    """Explicit expiry check for the current user."""
    now = now or datetime.utcnow()
    subscription = _current_row(user_id)
    if subscription is None:
        return {'has_active_subscription': False, 'expired': False, 'subscription': None}
    if subscription.end_date is not None and subscription.end_date < now:
        expired = expire_subscription(subscription, now)
        return {'has_active_subscription': False, 'expired': expired, 'subscription': subscription}
    return {
        'has_active_subscription': True,
        'expired': False,
        'subscription': subscription,
        'days_left': subscription.days_left(now),
    }


def get_subscription_history(user_id):
    return (UserSubscription.query
            .filter_by(user_id=user_id)
            .order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc())
            .all())


def get_pending_subscription(user_id):
    return _find_by_status(user_id, STATUS_PENDING)


def set_auto_renewal(user_id, value):
    if not isinstance(value, bool):
        raise ValidationError('auto_renewal must be true or false')
    subscription = _find_by_status(user_id, STATUS_ACTIVE)
    if subscription is None or not subscription.is_active:
        raise NotFoundError('No active subscription')
    subscription.auto_renewal = value
    subscription.renewal_status = STATUS_ACTIVE if value else STATUS_CANCELLED
    _commit('update', subscription.id)
    return subscription


def parse_statuses(raw):
    """'active,canceled' -> ['active', 'cancelled']; rejects unknown values"""
    if not raw:
        return []
    statuses = []
    for part in str(raw).split(','):
        status = normalize_status(part)
        if not status:
            continue
        if status not in STATUSES:
            raise ValidationError(f'Unknown status: {part.strip()}', {'allowed': list(STATUSES)})
        if status not in statuses:
            statuses.append(status)
    return statuses


def list_subscriptions(statuses=None):
    query = UserSubscription.query
    if statuses:
        values = []
        for status in statuses:
            values.extend(status_filter_values(status))
        query = query.filter(UserSubscription.status.in_(values))
    return query.order_by(UserSubscription.created_at.desc(), UserSubscription.id.desc()).all()


def list_pending_subscriptions(page=1, limit=10, sort_by='created_at', sort_order='desc'):
    """Pending requests for the admin queue, with a pagination block"""
    try:
        page = max(1, int(page))
        limit = max(1, min(100, int(limit)))
    except (TypeError, ValueError):
        raise ValidationError('page and limit must be integers')
    column = SORTABLE_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(f'Cannot sort by {sort_by}', {'allowed': sorted(SORTABLE_FIELDS)})
    order = column.asc() if str(sort_order).lower() == 'asc' else column.desc()

    query = UserSubscription.query.filter(UserSubscription.status == STATUS_PENDING)
    total = query.count()
    items = query.order_by(order, UserSubscription.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        'subscriptions': items,
        'pagination': {
            'total': total,
            'page': page,
            'pages': math.ceil(total / limit) if total else 0,
            'limit': limit,
        },
    }


def count_pending_subscriptions():
    return UserSubscription.query.filter(UserSubscription.status == STATUS_PENDING).count()


def subscription_detail(subscription):
    """Admin view of a subscription: row, user, package and payment"""
    data = subscription.to_dict(include_package=True, include_payment=True)
    user = db.session.get(User, subscription.user_id)
    data['user'] = {
        'id': user.id,
        'fullname': user.fullname,
        'email': user.email,
    } if user else None
    return data
