"""
Configuration for the subscription backend.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or DB_* fallback.
"""
import os
from datetime import timedelta
from urllib.parse import quote_plus


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri():
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or DB_*."""
    url = os.environ.get("DATABASE_URL")
    if _is_production():
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url)

    if url and url.strip():
        return _normalize_database_url(url)

    host = os.environ.get("DB_HOST", "localhost")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "streaming")
    user = os.environ.get("DB_USER", "streaming")
    password = os.environ.get("DB_PASSWORD", "")
    if password:
        password = quote_plus(password)
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def _env_list(name, default=""):
    """Comma separated environment value as a list of stripped, non-empty strings."""
    raw = os.environ.get(name, default) or ""
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_bool(name, default="false"):
    return os.environ.get(name, default).lower() in ("true", "on", "1")


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens shared by the HTTP API and the WebSocket handshake
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET") or SECRET_KEY
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES = timedelta(hours=int(os.environ.get("JWT_EXPIRES_HOURS") or 24))

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@streaming.local"
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND")
    ADMIN_NOTIFICATION_EMAILS = _env_list("ADMIN_NOTIFICATION_EMAILS")

    # Ad-benefit classification. PACKAGE_TYPE_1/2 are the legacy single-id variables.
    BASIC_PACKAGE_IDS = _env_list("BASIC_PACKAGE_IDS") + _env_list("PACKAGE_TYPE_1")
    PREMIUM_PACKAGE_IDS = _env_list("PREMIUM_PACKAGE_IDS") + _env_list("PACKAGE_TYPE_2")
    BASIC_PACKAGE_KEYWORDS = _env_list("BASIC_PACKAGE_KEYWORDS", "basic,standard,cơ bản")
    PREMIUM_PACKAGE_KEYWORDS = _env_list("PREMIUM_PACKAGE_KEYWORDS", "premium,gold,platinum,vip")

    # Reference data looked up by name
    DEFAULT_ACCOUNT_TYPE = "Normal"
    PREMIUM_ACCOUNT_TYPE = "Premium"
    DEFAULT_ROLE = "User"
    PREMIUM_ROLE = "VIP"
    ADMIN_ROLE = "Admin"
    PRIVILEGED_ROLES = ("Admin", "Moderator")

    SEED_DEFAULTS = _env_bool("SEED_DEFAULTS", "true")


class TestConfig(Config):
    """In-memory SQLite configuration used by the test suite."""
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    MAIL_SUPPRESS_SEND = True
    MAIL_SERVER = None
    BASIC_PACKAGE_IDS = []
    PREMIUM_PACKAGE_IDS = []
    SEED_DEFAULTS = False
