"""
Admin notification routes
"""
from flask import Blueprint, request, current_app

from routes.admin.auth import admin_required
from models import db
from models.admin_notification import AdminNotification, NOTIFICATION_TYPES
from utils.errors import NotFoundError, ValidationError, InternalError
from utils.responses import success_response

admin_notifications_bp = Blueprint('admin_notifications', __name__, url_prefix='/api/admin')


@admin_notifications_bp.route('/notifications')
@admin_required
def get_notifications():
    """Newest notifications first: ?limit=50&unread_only=true&type=subscription"""
    limit = min(max(request.args.get('limit', 50, type=int), 1), 200)
    unread_only = request.args.get('unread_only', 'false').lower() == 'true'
    notification_type = request.args.get('type', '').strip()

    query = AdminNotification.query
    if unread_only:
        query = query.filter_by(is_read=False)
    if notification_type:
        if notification_type not in NOTIFICATION_TYPES:
            raise ValidationError(f'type must be one of: {", ".join(NOTIFICATION_TYPES)}')
        query = query.filter_by(type=notification_type)

    notifications = query.order_by(AdminNotification.created_at.desc(), AdminNotification.id.desc()).limit(limit).all()
    return success_response('Notifications', {
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': AdminNotification.unread_count(),
    })


@admin_notifications_bp.route('/notifications/unread-count')
@admin_required
def get_unread_count():
    return success_response('Unread notification count', {'unread_count': AdminNotification.unread_count()})


@admin_notifications_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@admin_required
def mark_as_read(notification_id):
    notification = db.session.get(AdminNotification, notification_id)
    if not notification:
        raise NotFoundError('Notification not found', {'notification_id': notification_id})
    notification.is_read = True
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to mark notification as read: {str(e)}", exc_info=True)
        raise InternalError('Failed to mark notification as read', original_error=e)
    return success_response('Notification marked as read', notification.to_dict())


@admin_notifications_bp.route('/notifications/mark-all-read', methods=['POST'])
@admin_required
def mark_all_as_read():
    try:
        updated = AdminNotification.query.filter_by(is_read=False).update({'is_read': True})
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to mark all notifications as read: {str(e)}", exc_info=True)
        raise InternalError('Failed to mark all notifications as read', original_error=e)
    return success_response('All notifications marked as read', {'updated': updated})
