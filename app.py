"""
Main Flask application entry point for the subscription backend
"""
import logging
import os

import click
from flask import Flask, request
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User
from utils.auth_utils import load_user_from_token, token_from_header
from utils.errors import SubscriptionError
from utils.mail import mail
from utils.responses import error_response
from utils import websocket

logger = logging.getLogger(__name__)

# Initialize login manager (no DB access at import time)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    """Load user for Flask-Login (runs in request context)."""
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """Authenticate API calls with 'Authorization: Bearer <token>'."""
    return load_user_from_token(token_from_header(req.headers.get('Authorization')))


@login_manager.unauthorized_handler
def unauthorized():
    return error_response('Authentication required', 401)


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.logger.setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(SubscriptionError)
    def handle_subscription_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{e.__class__.__name__}: {e.message}", exc_info=e.original_error or True)
        return error_response(e.message, e.status_code, e.details)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code is None or e.code < 400:
            return e
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(500)
    def handle_500_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error on {request.path}: {str(e)}", exc_info=True)
        return error_response('Internal server error. Please try again later.', 500)


def register_commands(app):
    @app.cli.command('expire-subscriptions')
    def expire_subscriptions_command():
        """Expire overdue subscriptions and downgrade their users."""
        from services.expiry import sweep_expired_subscriptions
        from utils.notifications import notify_subscriptions_expired

        result = sweep_expired_subscriptions()
        notify_subscriptions_expired(result)
        click.echo(f"Checked {result.checked}, expired {result.expired}, failed {result.failed}")
        if result.failed:
            raise SystemExit(1)

    @app.cli.command('seed')
    def seed_command():
        """Create tables and seed roles, account types, packages and the admin."""
        db.create_all()
        seed_reference_data()
        seed_packages()
        seed_admin()
        click.echo("Seed complete")


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    websocket.init_app(app)

    register_error_handlers(app)

    # Create tables and seed only inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
            if app.config.get('SEED_DEFAULTS'):
                seed_reference_data()
                seed_packages()
                seed_admin()
        except Exception as e:
            logger.warning("Database init/seed skipped (non-fatal): %s", e)

    # Register blueprints
    from routes import (
        public_bp, auth_bp, user_subscriptions_bp, user_payment_bp,
        admin_packages_bp, admin_subscriptions_bp, admin_payments_bp, admin_notifications_bp, sock,
    )

    app.register_blueprint(public_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(user_subscriptions_bp)
    app.register_blueprint(user_payment_bp)

    # Register admin blueprints
    app.register_blueprint(admin_packages_bp)
    app.register_blueprint(admin_subscriptions_bp)
    app.register_blueprint(admin_payments_bp)
    app.register_blueprint(admin_notifications_bp)

    sock.init_app(app)
    register_commands(app)

    return app


def seed_reference_data():
    """Roles and account types the cascades look up by name"""
    from models.role import Role, AccountType

    role_names = ['Admin', 'Moderator', 'User', 'VIP']
    account_types = {
        'Normal': 'Standard account with ads',
        'Premium': 'Paid account with reduced ads',
    }

    for name in role_names:
        if not Role.query.filter_by(name=name).first():
            db.session.add(Role(name=name))
    for name, description in account_types.items():
        if not AccountType.query.filter_by(name=name).first():
            db.session.add(AccountType(name=name, description=description))

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error("Error seeding roles/account types: %s", e)


def seed_packages():
    """Seed initial packages if the catalog is empty"""
    from flask import current_app
    from models.package import SubscriptionPackage
    from models.role import find_account_type
    from services.catalog import classify_ad_tier

    if SubscriptionPackage.query.count() > 0:
        return

    premium_type = find_account_type(current_app.config['PREMIUM_ACCOUNT_TYPE'])
    if not premium_type:
        logger.warning("Account type '%s' missing; packages not seeded", current_app.config['PREMIUM_ACCOUNT_TYPE'])
        return

    packages_data = [
        {
            'name': 'Cơ bản',
            'description': 'Hide homepage advertisements for 30 days',
            'price': 10000,
            'duration_days': 30,
            'features': ['No homepage ads'],
        },
        {
            'name': 'Premium',
            'description': 'Watch without any advertisements for 30 days',
            'price': 15000,
            'duration_days': 30,
            'features': ['No homepage ads', 'No video ads'],
        },
    ]

    for package_data in packages_data:
        package = SubscriptionPackage(**package_data, is_active=True, discount=0, account_type_id=premium_type.id)
        db.session.add(package)
        db.session.flush()
        package.ad_tier = classify_ad_tier(package.id, package.name, current_app.config)

    try:
        db.session.commit()
        logger.info("Initial packages seeded successfully")
    except Exception as e:
        db.session.rollback()
        logger.error("Error seeding packages: %s", e)


def seed_admin():
    """Ensure the admin from SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD exists."""
    from flask import current_app
    from models.role import find_role, find_account_type

    seed_email = (os.environ.get("SEED_ADMIN_EMAIL") or "").strip().lower()
    seed_password = os.environ.get("SEED_ADMIN_PASSWORD")
    if not seed_email or not seed_password:
        return

    admin = User.query.filter(User.email.ilike(seed_email)).first()
    if not admin:
        admin = User(
            fullname=os.environ.get("SEED_ADMIN_NAME", "Administrator"),
            email=seed_email,
            is_active=True,
        )
        db.session.add(admin)
    admin.role = find_role(current_app.config['ADMIN_ROLE'])
    admin.account_type = find_account_type(current_app.config['DEFAULT_ACCOUNT_TYPE'])
    admin.is_active = True
    admin.set_password(seed_password)

    try:
        db.session.commit()
        logger.info("Admin ready. Email: %s", seed_email)
    except Exception as e:
        db.session.rollback()
        logger.error("Error seeding admin: %s", e)


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
