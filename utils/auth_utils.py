"""
Authentication utility functions: password hashing and bearer tokens
"""
from datetime import datetime, timezone

import jwt
from flask import current_app
from werkzeug.security import generate_password_hash, check_password_hash


def hash_password(password):
    """Generate password hash"""
    return generate_password_hash(password)


def verify_password(password_hash, password):
    """Verify password against hash"""
    return check_password_hash(password_hash, password)


def generate_access_token(user, expires_in=None, not_before=None):
    """
    Issue a signed access token for user.

    The same token authenticates HTTP requests (Authorization: Bearer) and
    the websocket handshake.
    """
    now = datetime.now(timezone.utc)
    expires_in = expires_in if expires_in is not None else current_app.config['JWT_EXPIRES']
    payload = {
        'userId': user.id,
        'email': user.email,
        'role': user.role_name,
        'isAdmin': user.is_admin,
        'iat': now,
        'exp': now + expires_in,
    }
    if not_before is not None:
        payload['nbf'] = not_before
    return jwt.encode(
        payload,
        current_app.config['JWT_SECRET_KEY'],
        algorithm=current_app.config['JWT_ALGORITHM'],
    )


def decode_access_token(token):
    """
    Decode and verify an access token.

    Raises:
        jwt.ExpiredSignatureError, jwt.ImmatureSignatureError,
        jwt.InvalidTokenError: when the token is not acceptable
    """
    return jwt.decode(
        token,
        current_app.config['JWT_SECRET_KEY'],
        algorithms=[current_app.config['JWT_ALGORITHM']],
    )


def token_from_header(header_value):
    """Extract the token from an 'Authorization: Bearer <token>' header value."""
    if not header_value:
        return None
    scheme, _, token = header_value.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user_from_token(token):
    """Return the active User a token belongs to, or None."""
    from models import db
    from models.user import User

    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except jwt.InvalidTokenError:
        return None
    user_id = payload.get('userId')
    if user_id is None:
        return None
    user = db.session.get(User, int(user_id))
    if not user or not user.is_active:
        return None
    return user
