"""
Payment records attached to subscription requests
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.payment import Payment, PAYMENT_METHODS
from models.subscription import UserSubscription
from utils.errors import ValidationError, NotFoundError, InternalError
from utils.payment_gateway import generate_transaction_id

logger = logging.getLogger(__name__)

PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded')
APPROVAL_STATUSES = ('pending', 'approved', 'rejected')

_CENTS = Decimal('0.01')


def compute_amount(package):
    """Price after the package discount, rounded to 2 decimals."""
    price = Decimal(package.price or 0)
    discount = Decimal(package.discount or 0)
    if discount > 0:
        price = price * (Decimal(1) - discount / Decimal(100))
    return price.quantize(_CENTS, rounding=ROUND_HALF_UP)


def validate_method(method):
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f'Invalid payment method. Accepted: {", ".join(PAYMENT_METHODS)}',
            {'method': method},
        )
    return method


def create_payment(user_id, package, method):
    """Add a pending payment to the session (caller commits)."""
    validate_method(method)
    payment = Payment(
        user_id=user_id,
        package_id=package.id,
        amount=compute_amount(package),
        status='pending',
        approval_status='pending',
        method=method,
        transaction_id=generate_transaction_id(method),
        description=f'Subscription: {package.name}',
        payment_details={
            'package_name': package.name,
            'price': package.price,
            'discount': package.discount,
            'duration_days': package.duration_days,
        },
    )
    db.session.add(payment)
    return payment


def mark_approved(payment, admin_id, now=None):
    now = now or datetime.utcnow()
    payment.status = 'completed'
    payment.approval_status = 'approved'
    payment.approved_by = admin_id
    payment.completed_at = now
    return payment


def mark_rejected(payment, admin_id, reason):
    payment.status = 'refunded'
    payment.approval_status = 'rejected'
    payment.approved_by = admin_id
    payment.rejection_reason = reason
    return payment


def confirm_payment(user_id, payment_id, now=None):
    """The user declares they have paid; admins still approve."""
    now = now or datetime.utcnow()
    payment = db.session.get(Payment, payment_id)
    if not payment or payment.user_id != user_id or payment.approval_status != 'pending':
        raise NotFoundError('Pending payment not found', {'payment_id': payment_id})

    payment.user_confirmed = True
    payment.user_confirmed_at = now

    subscription = None
    if payment.subscription_id:
        subscription = db.session.get(UserSubscription, payment.subscription_id)
    if subscription is None:
        subscription = UserSubscription.query.filter_by(payment_id=payment.id).first()
    if subscription is not None:
        subscription.payment_confirmed = True

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to confirm payment #{payment_id}: {str(e)}", exc_info=True)
        raise InternalError('Failed to confirm payment', original_error=e)
    return payment


def _parse_date(value, field):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)')


def list_payments(filters=None, page=1, per_page=20):
    """Admin payment listing with status/user/method/date filters"""
    filters = filters or {}
    query = Payment.query

    status = filters.get('status')
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f'status must be one of: {", ".join(PAYMENT_STATUSES)}')
        query = query.filter(Payment.status == status)
    approval_status = filters.get('approval_status')
    if approval_status:
        if approval_status not in APPROVAL_STATUSES:
            raise ValidationError(f'approval_status must be one of: {", ".join(APPROVAL_STATUSES)}')
        query = query.filter(Payment.approval_status == approval_status)
    if filters.get('user_id'):
        query = query.filter(Payment.user_id == filters['user_id'])
    if filters.get('method'):
        query = query.filter(Payment.method == validate_method(filters['method']))

    date_from = _parse_date(filters.get('date_from'), 'date_from')
    date_to = _parse_date(filters.get('date_to'), 'date_to')
    if date_from:
        query = query.filter(Payment.created_at >= date_from)
    if date_to:
        query = query.filter(Payment.created_at < date_to.replace(hour=23, minute=59, second=59))

    pagination = query.order_by(Payment.created_at.desc(), Payment.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return pagination


def payment_summary():
    """Revenue and success-rate figures for the admin payments page"""
    total = db.session.query(func.count(Payment.id)).scalar() or 0
    completed = Payment.query.filter_by(status='completed').count()
    pending = Payment.query.filter_by(approval_status='pending').count()
    rejected = Payment.query.filter_by(approval_status='rejected').count()
    revenue = db.session.query(func.sum(Payment.amount)).filter(Payment.status == 'completed').scalar() or 0

    now = datetime.utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    monthly_revenue = db.session.query(func.sum(Payment.amount)).filter(
        Payment.status == 'completed',
        Payment.completed_at >= month_start
    ).scalar() or 0

    return {
        'total_payments': total,
        'completed': completed,
        'pending': pending,
        'rejected': rejected,
        'total_revenue': float(revenue),
        'monthly_revenue': float(monthly_revenue),
        'success_rate': round(completed / total * 100, 2) if total else 0.0,
    }
