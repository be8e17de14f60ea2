"""
Subscription expiry: the downgrade cascade and the sweeper that applies it.

The cascade is shared by the sweeper, the lazy check on read and the admin
cancel. It only touches the session; callers own the commit so that the
subscription row and the user row change in one transaction.
"""
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.role import find_role, find_account_type
from models.subscription import UserSubscription, STATUS_ACTIVE, STATUS_EXPIRED
from models.user import User
from utils.errors import InternalError

logger = logging.getLogger(__name__)


class SweepResult:
    """Counters reported by one sweeper run"""

    def __init__(self, checked=0, expired=0, failed=0):
        self.checked = checked
        self.expired = expired
        self.failed = failed
        self.expired_ids = []
        self.failed_ids = []

    def to_dict(self):
        return {
            'checked': self.checked,
            'expired': self.expired,
            'failed': self.failed,
            'expired_ids': list(self.expired_ids),
            'failed_ids': list(self.failed_ids),
        }

    def __repr__(self):
        return f'<SweepResult checked={self.checked} expired={self.expired} failed={self.failed}>'


def downgrade_user(user):
    """
    Remove premium entitlements from a user.

    The account type falls back to the default one when that seed exists.
    The role falls back to the default role unless the user is privileged.
    """
    user.is_premium = False
    user.subscription_end_date = None

    default_type = find_account_type(current_app.config['DEFAULT_ACCOUNT_TYPE'])
    if default_type:
        user.account_type = default_type
    else:
        logger.warning(
            f"Account type '{current_app.config['DEFAULT_ACCOUNT_TYPE']}' not found; "
            f"keeping account type of user #{user.id}"
        )

    if user.is_privileged:
        logger.info(f"User #{user.id} keeps role {user.role_name}")
        return user

    default_role = find_role(current_app.config['DEFAULT_ROLE'])
    if default_role:
        user.role = default_role
    else:
        logger.warning(f"Role '{current_app.config['DEFAULT_ROLE']}' not found; keeping role of user #{user.id}")
    return user


def apply_expiry_cascade(subscription, now=None):
    """
    Mark an active subscription expired and downgrade its owner.

    Returns False without touching anything when the row is already
    inactive, so the sweeper and the lazy check can both run safely.
    """
    if not subscription.is_active:
        return False

    subscription.is_active = False
    subscription.status = STATUS_EXPIRED

    user = db.session.get(User, subscription.user_id)
    if user is None:
        logger.warning(f"Subscription #{subscription.id} has no user #{subscription.user_id}")
        return True
    downgrade_user(user)
    return True


def _after_expiry(subscription):
    """Push and e-mail the expiry. Failures are logged only."""
    from utils.notifications import notify_status_change
    from utils.mail import send_subscription_expired_email

    notify_status_change(subscription, STATUS_EXPIRED, subscription.user_id)
    try:
        user = db.session.get(User, subscription.user_id)
        if user is not None:
            send_subscription_expired_email(user, subscription, subscription.package)
    except Exception as e:
        logger.error(f"Expiry email for subscription #{subscription.id} failed: {str(e)}", exc_info=True)


def expire_subscription(subscription, now=None):
    """Apply the cascade and commit it as one transaction."""
    try:
        changed = apply_expiry_cascade(subscription, now)
        if not changed:
            return False
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to expire subscription #{subscription.id}: {str(e)}", exc_info=True)
        raise InternalError('Failed to expire subscription', {'subscription_id': subscription.id}, e)

    logger.info(f"Subscription #{subscription.id} expired (user #{subscription.user_id})")
    _after_expiry(subscription)
    return True


def find_expired_subscriptions(now):
    return (UserSubscription.query
            .filter(UserSubscription.is_active.is_(True),
                    UserSubscription.status == STATUS_ACTIVE,
                    UserSubscription.end_date < now)
            .order_by(UserSubscription.end_date.asc())
            .all())


def sweep_expired_subscriptions(now=None):
    """
    Expire every active subscription whose end date has passed.

    Each row commits on its own; a failing row is rolled back, logged and
    counted, and the sweep carries on with the next one.
    """
    now = now or datetime.utcnow()
    result = SweepResult()
    candidates = find_expired_subscriptions(now)
    result.checked = len(candidates)
    logger.info(f"Expiry sweep at {now.isoformat()}: {result.checked} candidate(s)")

    for subscription in candidates:
        subscription_id = subscription.id
        try:
            if expire_subscription(subscription, now):
                result.expired += 1
                result.expired_ids.append(subscription_id)
        except Exception as e:
            db.session.rollback()
            result.failed += 1
            result.failed_ids.append(subscription_id)
            logger.error(f"Sweep failed for subscription #{subscription_id}: {str(e)}", exc_info=True)

    logger.info(f"Expiry sweep done: {result.expired} expired, {result.failed} failed")
    return result
