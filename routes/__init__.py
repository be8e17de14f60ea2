"""
Routes package for the subscription backend
"""
# Export blueprints for registration in app.py
from routes.public import public_bp
from routes.auth import auth_bp
from routes.user.subscriptions import subscriptions_bp as user_subscriptions_bp
from routes.user.payment import payment_bp as user_payment_bp
from routes.admin.packages import admin_packages_bp
from routes.admin.subscriptions import admin_subscriptions_bp
from routes.admin.payments import admin_payments_bp
from routes.admin.notifications import admin_notifications_bp
from routes.ws import sock

__all__ = [
    'public_bp',
    'auth_bp',
    'user_subscriptions_bp',
    'user_payment_bp',
    'admin_packages_bp',
    'admin_subscriptions_bp',
    'admin_payments_bp',
    'admin_notifications_bp',
    'sock',
]
