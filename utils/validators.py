"""
Input validators for account forms
"""
import re

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def validate_email(email):
    """Basic email format check"""
    return bool(email) and bool(EMAIL_RE.match(email))


def validate_password(password):
    """
    Returns (ok, message). At least 6 characters with a letter and a digit.
    """
    if not password or len(password) < 6:
        return False, 'Password must be at least 6 characters.'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return False, 'Password must contain letters and numbers.'
    return True, ''
