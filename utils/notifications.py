"""
Admin notification utility functions

Every notification is stored as an AdminNotification row and pushed to the
admin websocket channel. Failures are logged and never propagated.
"""
from models import db
from models.admin_notification import AdminNotification
from flask import current_app

from utils.websocket import get_registry


def push_to_admins(message):
    """Send a message to connected admins; returns False on failure."""
    try:
        registry = get_registry()
        if registry is None:
            return False
        registry.notify_admins(message)
        return True
    except Exception as e:
        current_app.logger.error(f"Failed to push admin message: {str(e)}", exc_info=True)
        return False


def create_notification(notification_type, title, message, related_id=None, payload=None):
    """
    Create a new admin notification

    Args:
        notification_type: 'subscription', 'payment', 'user', or 'system'
        title: Notification title
        message: Notification message
        related_id: Optional ID of related entity (subscription_id, payment_id, user_id)
        payload: Optional JSON body forwarded to the websocket

    Returns:
        AdminNotification object or None if creation failed
    """
    try:
        notification = AdminNotification(
            type=notification_type,
            title=title,
            message=message,
            related_id=related_id,
            payload=payload,
            is_read=False
        )
        db.session.add(notification)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification: {str(e)}", exc_info=True)
        return None

    push_to_admins({'type': 'admin_notification', 'data': notification.to_dict()})
    return notification


def notify_new_user(user):
    """Create notification for new user registration"""
    title = "New User Registered"
    message = f"New user registered: {user.fullname} ({user.email})"
    return create_notification('user', title, message, related_id=user.id)


def notify_new_subscription(subscription, user, package, payment=None):
    """Create notification for new subscription request and alert live admins"""
    title = "New Subscription Request"
    message = f"User {user.fullname} requested subscription for {package.name} (Status: PENDING)"
    payload = {
        'subscription_id': subscription.id,
        'user_id': user.id,
        'fullname': user.fullname,
        'email': user.email,
        'package_id': package.id,
        'package_name': package.name,
        'amount': float(payment.amount) if payment is not None else None,
        'method': payment.method if payment is not None else None,
        'created_at': subscription.created_at.isoformat() if subscription.created_at else None,
    }
    notification = create_notification('subscription', title, message,
                                       related_id=subscription.id, payload=payload)
    try:
        registry = get_registry()
        if registry is not None:
            registry.notify_new_premium(payload)
    except Exception as e:
        current_app.logger.error(f"Failed to push new premium request: {str(e)}", exc_info=True)
    return notification


def notify_status_change(subscription, new_status, user_id=None):
    """Push a status change to admins and to the subscriber"""
    try:
        registry = get_registry()
        if registry is not None:
            registry.notify_premium_status_change(subscription.id, new_status, user_id)
            return True
    except Exception as e:
        current_app.logger.error(f"Failed to push status change for subscription #{subscription.id}: {str(e)}",
                                 exc_info=True)
    return False


def notify_user_updated(user):
    """Tell the user's open sessions that their account changed"""
    try:
        registry = get_registry()
        if registry is not None:
            registry.send_to_user(user.id, {'type': 'user_updated', 'data': user.to_dict()})
            return True
    except Exception as e:
        current_app.logger.error(f"Failed to push user update for #{user.id}: {str(e)}", exc_info=True)
    return False


def notify_subscription_processed(action, subscription, admin_id):
    """Audit row for an admin approval, rejection or cancellation"""
    title = f"Subscription {action.title()}"
    message = f"Subscription #{subscription.id} was {action} by admin #{admin_id}"
    return create_notification('subscription', title, message, related_id=subscription.id,
                               payload={'action': action, 'subscription_id': subscription.id,
                                        'admin_id': admin_id})


def notify_subscriptions_expired(result):
    """Summary row after a sweep that expired at least one subscription"""
    if not result.expired:
        return None
    title = "Subscriptions Expired"
    message = f"{result.expired} subscription(s) expired ({result.failed} failed, {result.checked} checked)"
    return create_notification('system', title, message, payload=result.to_dict())
