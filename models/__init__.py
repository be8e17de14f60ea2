"""
Models package for the subscription backend
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.role import Role, AccountType
from models.user import User
from models.package import SubscriptionPackage
from models.payment import Payment
from models.subscription import UserSubscription
from models.admin_notification import AdminNotification

__all__ = [
    'db',
    'Role',
    'AccountType',
    'User',
    'SubscriptionPackage',
    'Payment',
    'UserSubscription',
    'AdminNotification',
]
