"""
Admin access control for the JSON API
"""
from functools import wraps

from flask_login import current_user

from utils.errors import UnauthorizedError, ForbiddenError


def admin_required(f):
    """Decorator to require a logged-in, active user holding the admin role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            raise UnauthorizedError('Authentication required')
        if not current_user.is_active:
            raise ForbiddenError('Your account is inactive. Please contact support.')
        if not current_user.is_admin:
            raise ForbiddenError('Access denied. Admin privileges required.')
        return f(*args, **kwargs)
    return decorated_function


def get_current_admin():
    """Helper function to get the acting admin, or None"""
    if not current_user.is_authenticated or not current_user.is_admin:
        return None
    return current_user._get_current_object()
