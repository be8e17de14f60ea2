"""
Authentication routes: register, login (bearer token), current account
"""
from flask import Blueprint, request, current_app
from flask_login import login_required, current_user
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import db
from models.role import find_role, find_account_type
from models.user import User
from utils.auth_utils import generate_access_token
from utils.errors import ValidationError, ConflictError, UnauthorizedError, ForbiddenError
from utils.responses import success_response
from utils.validators import validate_email, validate_password

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create a viewer account on the default role and account type"""
    data = request.get_json(silent=True) or {}
    fullname = (data.get('fullname') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not fullname or len(fullname) < 2:
        raise ValidationError('Full name must be at least 2 characters.')
    if not validate_email(email):
        raise ValidationError('Please enter a valid email address.')
    ok, message = validate_password(password)
    if not ok:
        raise ValidationError(message)

    if User.query.filter(func.lower(User.email) == email).first():
        raise ConflictError('An account with this email already exists.')

    user = User(fullname=fullname, email=email)
    user.set_password(password)
    user.role = find_role(current_app.config['DEFAULT_ROLE'])
    user.account_type = find_account_type(current_app.config['DEFAULT_ACCOUNT_TYPE'])
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('An account with this email already exists.')

    current_app.logger.info(f"New user registered: {user.email} (#{user.id})")
    try:
        from utils.notifications import notify_new_user
        notify_new_user(user)
    except Exception as e:
        current_app.logger.error(f"Failed to create admin notification for new user: {str(e)}", exc_info=True)

    return success_response('Registration successful.', {
        'user': user.to_dict(),
        'token': generate_access_token(user),
    }, 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    """Exchange email and password for an access token"""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('Please enter both email and password.')

    user = User.query.filter(func.lower(User.email) == email).first()
    if not user or not user.check_password(password):
        raise UnauthorizedError('Invalid email or password.')
    if not user.is_active:
        raise ForbiddenError('Your account is inactive. Please contact support.')

    return success_response('Login successful.', {
        'user': user.to_dict(),
        'token': generate_access_token(user),
    })


@auth_bp.route('/me')
@login_required
def me():
    return success_response('Current account', current_user.to_dict())
