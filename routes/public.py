"""
Public routes: health check and the package catalog
"""
from flask import Blueprint
from sqlalchemy import text

from models import db
from services import catalog
from utils.responses import success_response, error_response

public_bp = Blueprint('public', __name__)


@public_bp.route('/health')
def health():
    """Liveness plus a database round trip"""
    try:
        db.session.execute(text('SELECT 1'))
        database = 'ok'
    except Exception:
        db.session.rollback()
        return error_response('Database unavailable', 503, {'database': 'unavailable'})
    return success_response('ok', {'database': database})


@public_bp.route('/api/subscription/packages')
def packages():
    """Active packages, cheapest first"""
    items = catalog.list_packages()
    return success_response('Subscription packages', [p.to_dict() for p in items])


@public_bp.route('/api/subscription/packages/<int:package_id>')
def package_detail(package_id):
    package = catalog.get_package(package_id, active_only=True)
    return success_response('Subscription package', package.to_dict())
