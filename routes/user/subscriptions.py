"""
User subscription routes
"""
from datetime import datetime

from flask import Blueprint, request, current_app
from flask_login import login_required, current_user

from services import subscriptions as subscription_service
from services.ad_benefits import get_ad_benefits
from utils.errors import ValidationError
from utils.responses import success_response

subscriptions_bp = Blueprint('user_subscriptions', __name__, url_prefix='/api/subscription')


def _serialize_current(result):
    data = dict(result)
    subscription = data.get('subscription')
    data['subscription'] = subscription.to_dict() if subscription is not None else None
    if data.get('end_date') is not None:
        data['end_date'] = data['end_date'].isoformat()
    return data


@subscriptions_bp.route('/subscribe', methods=['POST'])
@login_required
def subscribe():
    """Request a package; an admin approves it later"""
    data = request.get_json(silent=True) or {}
    subscription, payment = subscription_service.request_subscription(
        current_user.id,
        data.get('package_id'),
        data.get('payment_method'),
    )
    return success_response('Subscription request submitted for approval', {
        'subscription': subscription.to_dict(),
        'package': subscription.package.to_dict(),
        'payment': payment.to_dict(),
    }, 201)


@subscriptions_bp.route('/cancel', methods=['POST'])
@login_required
def cancel():
    result = subscription_service.cancel_subscription(current_user.id)
    if result['deleted']:
        message = 'Subscription request withdrawn'
    else:
        message = 'Auto-renewal cancelled. Premium stays available until the end date'
    return success_response(message, result)


@subscriptions_bp.route('/current')
@login_required
def current():
    """Active subscription with days left; expires it on the spot when overdue"""
    result = subscription_service.get_current_subscription(current_user.id)
    if result['is_expired']:
        message = 'Subscription has expired'
    elif result['has_active_subscription']:
        message = 'Current subscription'
    else:
        message = 'No active subscription'
    return success_response(message, _serialize_current(result))


@subscriptions_bp.route('/check-expired')
@login_required
def check_expired():
    result = subscription_service.check_current_expiry(current_user.id)
    message = 'Subscription expired and account downgraded' if result['expired'] else 'Subscription checked'
    return success_response(message, _serialize_current(result))


@subscriptions_bp.route('/history')
@login_required
def history():
    items = subscription_service.get_subscription_history(current_user.id)
    return success_response('Subscription history',
                            [s.to_dict(include_package=True, include_payment=True) for s in items])


@subscriptions_bp.route('/auto-renewal', methods=['PUT'])
@login_required
def auto_renewal():
    data = request.get_json(silent=True) or {}
    if 'auto_renewal' not in data:
        raise ValidationError('auto_renewal is required')
    subscription = subscription_service.set_auto_renewal(current_user.id, data['auto_renewal'])
    state = 'enabled' if subscription.auto_renewal else 'disabled'
    return success_response(f'Auto-renewal {state}', subscription.to_dict())


@subscriptions_bp.route('/pending')
@login_required
def pending():
    subscription = subscription_service.get_pending_subscription(current_user.id)
    if subscription is None:
        return success_response('No pending subscription', None)
    return success_response('Pending subscription', subscription.to_dict(include_payment=True))


@subscriptions_bp.route('/ad-benefits')
@login_required
def ad_benefits():
    """Which ads the current user should not see"""
    benefits = get_ad_benefits(current_user.id, current_app.config, datetime.utcnow())
    return success_response('Ad benefits', benefits)
