"""
Admin subscription management routes
"""
from flask import Blueprint, request, current_app

from routes.admin.auth import admin_required, get_current_admin
from services import subscriptions as subscription_service
from services.expiry import sweep_expired_subscriptions
from utils.responses import success_response

admin_subscriptions_bp = Blueprint('admin_subscriptions', __name__, url_prefix='/api/subscription/admin')


@admin_subscriptions_bp.route('/subscriptions')
@admin_required
def subscriptions():
    """All subscriptions, optionally filtered: ?status=active,cancelled"""
    statuses = subscription_service.parse_statuses(request.args.get('status', ''))
    items = subscription_service.list_subscriptions(statuses)
    return success_response('Subscriptions', [subscription_service.subscription_detail(s) for s in items])


@admin_subscriptions_bp.route('/pending-subscriptions')
@admin_required
def pending_subscriptions():
    result = subscription_service.list_pending_subscriptions(
        page=request.args.get('page', 1),
        limit=request.args.get('limit', 10),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc'),
    )
    return success_response('Pending subscriptions', {
        'subscriptions': [subscription_service.subscription_detail(s) for s in result['subscriptions']],
        'pagination': result['pagination'],
    })


@admin_subscriptions_bp.route('/pending-count')
@admin_required
def pending_count():
    return success_response('Pending subscription count',
                            {'count': subscription_service.count_pending_subscriptions()})


@admin_subscriptions_bp.route('/approve/<int:subscription_id>', methods=['POST'])
@admin_required
def approve(subscription_id):
    admin = get_current_admin()
    data = request.get_json(silent=True) or {}
    subscription = subscription_service.approve_subscription(subscription_id, admin.id, data.get('notes'))
    return success_response('Subscription approved', subscription_service.subscription_detail(subscription))


@admin_subscriptions_bp.route('/reject/<int:subscription_id>', methods=['POST'])
@admin_required
def reject(subscription_id):
    admin = get_current_admin()
    data = request.get_json(silent=True) or {}
    subscription = subscription_service.reject_subscription(subscription_id, admin.id, data.get('reason'))
    return success_response('Subscription rejected', subscription_service.subscription_detail(subscription))


@admin_subscriptions_bp.route('/cancel/<int:subscription_id>', methods=['POST'])
@admin_required
def cancel(subscription_id):
    """Immediate termination; the user is downgraded right away"""
    admin = get_current_admin()
    data = request.get_json(silent=True) or {}
    subscription = subscription_service.cancel_subscription_by_admin(subscription_id, admin.id, data.get('reason'))
    return success_response('Subscription cancelled and user downgraded to the standard plan',
                            subscription_service.subscription_detail(subscription))


@admin_subscriptions_bp.route('/expired/check', methods=['POST'])
@admin_required
def check_expired():
    """Run the expiry sweep now"""
    result = sweep_expired_subscriptions()
    try:
        from utils.notifications import notify_subscriptions_expired
        notify_subscriptions_expired(result)
    except Exception as e:
        current_app.logger.error(f"Failed to record sweep notification: {str(e)}", exc_info=True)
    return success_response(f'Expired {result.expired} subscription(s)', result.to_dict())
