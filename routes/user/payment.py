"""
User payment routes
"""
from flask import request, Blueprint
from flask_login import login_required, current_user

from services import payments as payment_service
from utils.errors import ValidationError
from utils.responses import success_response

payment_bp = Blueprint('user_payment', __name__, url_prefix='/api/subscription')


@payment_bp.route('/confirm-payment', methods=['POST'])
@login_required
def confirm_payment():
    """The user reports the transfer as done; approval stays with admins"""
    data = request.get_json(silent=True) or {}
    payment_id = data.get('payment_id')
    try:
        if isinstance(payment_id, bool):
            raise TypeError('payment_id')
        payment_id = int(payment_id)
    except (TypeError, ValueError):
        raise ValidationError('payment_id is required')

    payment = payment_service.confirm_payment(current_user.id, payment_id)
    return success_response('Payment confirmation received. An admin will verify it shortly.',
                            payment.to_dict())
