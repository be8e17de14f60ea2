"""
Payment model definition
"""
from models import db
from datetime import datetime

PAYMENT_METHODS = ('credit_card', 'bank_transfer', 'e_wallet', 'momo', 'zalopay')


class Payment(db.Model):
    """Payment record for a subscription request"""
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey('user_subscriptions.id', use_alter=True, ondelete='SET NULL'), nullable=True, index=True)
    package_id = db.Column(db.Integer, db.ForeignKey('subscription_packages.id'), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # fixed at creation
    status = db.Column(db.String(20), default='pending', index=True)  # pending, completed, failed, refunded
    approval_status = db.Column(db.String(20), default='pending', index=True)  # pending, approved, rejected
    method = db.Column(db.String(30), nullable=False)
    transaction_id = db.Column(db.String(100), unique=True, nullable=True)
    description = db.Column(db.String(255), nullable=True)
    payment_details = db.Column(db.JSON, nullable=True)
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    user_confirmed = db.Column(db.Boolean, default=False)
    user_confirmed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    package = db.relationship('SubscriptionPackage', lazy=True)

    def __repr__(self):
        return f'<Payment {self.id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'subscription_id': self.subscription_id,
            'package_id': self.package_id,
            'amount': float(self.amount) if self.amount is not None else None,
            'status': self.status,
            'approval_status': self.approval_status,
            'method': self.method,
            'transaction_id': self.transaction_id,
            'description': self.description,
            'payment_details': self.payment_details,
            'approved_by': self.approved_by,
            'rejection_reason': self.rejection_reason,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'user_confirmed': self.user_confirmed,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
