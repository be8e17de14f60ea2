"""
Admin payment listing routes
"""
from flask import Blueprint, request

from routes.admin.auth import admin_required
from services import payments as payment_service
from utils.responses import success_response

admin_payments_bp = Blueprint('admin_payments', __name__, url_prefix='/api/admin')


@admin_payments_bp.route('/payments')
@admin_required
def payments():
    """Payment list with filters and the revenue summary"""
    filters = {
        'status': request.args.get('status', '').strip(),
        'approval_status': request.args.get('approval_status', '').strip(),
        'user_id': request.args.get('user_id', type=int),
        'method': request.args.get('method', '').strip(),
        'date_from': request.args.get('date_from', '').strip(),
        'date_to': request.args.get('date_to', '').strip(),
    }
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    pagination = payment_service.list_payments(filters, page=page, per_page=per_page)
    return success_response('Payments', {
        'payments': [p.to_dict() for p in pagination.items],
        'pagination': {
            'total': pagination.total,
            'page': pagination.page,
            'pages': pagination.pages,
            'limit': pagination.per_page,
        },
        'summary': payment_service.payment_summary(),
    })
