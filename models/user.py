"""
User model definition
"""
from models import db
from datetime import datetime
from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash


class User(UserMixin, db.Model):
    """User model for viewer and staff accounts"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    fullname = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=True)
    account_type_id = db.Column(db.Integer, db.ForeignKey('account_types.id'), nullable=True)
    is_premium = db.Column(db.Boolean, default=False, nullable=False)
    subscription_end_date = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    role = db.relationship('Role', lazy='joined')
    account_type = db.relationship('AccountType', lazy='joined')
    subscriptions = db.relationship('UserSubscription', backref='user', lazy=True,
                                    foreign_keys='UserSubscription.user_id')
    payments = db.relationship('Payment', backref='user', lazy=True,
                               foreign_keys='Payment.user_id')

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if password matches"""
        return check_password_hash(self.password_hash, password)

    @property
    def role_name(self):
        return self.role.name if self.role else None

    @property
    def is_admin(self):
        return self.role_name == current_app.config['ADMIN_ROLE']

    @property
    def is_privileged(self):
        """Admins and moderators keep their role through every downgrade."""
        return self.role_name in current_app.config['PRIVILEGED_ROLES']

    def __repr__(self):
        return f'<User {self.fullname}>'

    def to_dict(self):
        return {
            'id': self.id,
            'fullname': self.fullname,
            'email': self.email,
            'role': self.role_name,
            'role_id': self.role_id,
            'account_type': self.account_type.name if self.account_type else None,
            'account_type_id': self.account_type_id,
            'is_premium': self.is_premium,
            'subscription_end_date': self.subscription_end_date.isoformat() if self.subscription_end_date else None,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
