"""
User subscription model definition
"""
from models import db
from datetime import datetime
from sqlalchemy.orm import validates

STATUS_PENDING = 'pending'
STATUS_ACTIVE = 'active'
STATUS_EXPIRED = 'expired'
STATUS_CANCELLED = 'cancelled'
STATUS_REJECTED = 'rejected'
STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_EXPIRED, STATUS_CANCELLED, STATUS_REJECTED)

RENEWAL_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_CANCELLED)

# Older rows were written with both spellings
_STATUS_ALIASES = {'canceled': STATUS_CANCELLED}


def normalize_status(value):
    """Map any accepted spelling of a status to its canonical value."""
    if value is None:
        return None
    value = str(value).strip().lower()
    return _STATUS_ALIASES.get(value, value)


def status_filter_values(value):
    """All stored spellings that mean ``value`` (for filtering legacy rows)."""
    canonical = normalize_status(value)
    return [canonical] + [alias for alias, target in _STATUS_ALIASES.items() if target == canonical]


class UserSubscription(db.Model):
    """A user's enrollment in a subscription package"""
    __tablename__ = 'user_subscriptions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    package_id = db.Column(db.Integer, db.ForeignKey('subscription_packages.id'), nullable=False, index=True)
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey('payments.id', ondelete='SET NULL'), nullable=True)
    renewal_status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    auto_renewal = db.Column(db.Boolean, default=False, nullable=False)
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    payment_confirmed = db.Column(db.Boolean, default=False, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    account_type_id = db.Column(db.Integer, db.ForeignKey('account_types.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # At most one active and one pending subscription per user
    __table_args__ = (
        db.Index(
            'uq_user_subscriptions_one_active', 'user_id', unique=True,
            postgresql_where=db.text("status = 'active'"),
            sqlite_where=db.text("status = 'active'"),
        ),
        db.Index(
            'uq_user_subscriptions_one_pending', 'user_id', unique=True,
            postgresql_where=db.text("status = 'pending'"),
            sqlite_where=db.text("status = 'pending'"),
        ),
    )

    # Relationships
    payment = db.relationship('Payment', foreign_keys=[payment_id], lazy=True)

    @validates('status', 'renewal_status')
    def _normalize(self, key, value):
        value = normalize_status(value)
        allowed = STATUSES if key == 'status' else RENEWAL_STATUSES
        if value not in allowed:
            raise ValueError(f'Invalid {key}: {value}')
        return value

    @property
    def canonical_status(self):
        return normalize_status(self.status)

    def days_left(self, now=None):
        """Whole days remaining until end_date, rounded up; 0 once passed."""
        if not self.end_date:
            return 0
        now = now or datetime.utcnow()
        remaining = (self.end_date - now).total_seconds()
        if remaining <= 0:
            return 0
        return int(-(-remaining // 86400))

    def is_within_window(self, now):
        return bool(self.start_date and self.end_date and self.start_date <= now <= self.end_date)

    def __repr__(self):
        return f'<UserSubscription {self.id}>'

    def to_dict(self, include_package=True, include_payment=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'package_id': self.package_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'is_active': self.is_active,
            'status': self.canonical_status,
            'payment_id': self.payment_id,
            'renewal_status': normalize_status(self.renewal_status),
            'auto_renewal': self.auto_renewal,
            'approved_by': self.approved_by,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'rejected_by': self.rejected_by,
            'rejected_at': self.rejected_at.isoformat() if self.rejected_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'payment_confirmed': self.payment_confirmed,
            'notes': self.notes,
            'account_type_id': self.account_type_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_package:
            data['package'] = self.package.to_dict() if self.package else None
        if include_payment:
            data['payment'] = self.payment.to_dict() if self.payment else None
        return data
