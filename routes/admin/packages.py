"""
Admin package (catalog) management routes
"""
from flask import Blueprint, request, current_app

from routes.admin.auth import admin_required
from services import catalog
from utils.responses import success_response

admin_packages_bp = Blueprint('admin_packages', __name__, url_prefix='/api/subscription/admin/packages')


@admin_packages_bp.route('', methods=['GET'])
@admin_required
def packages():
    """Every package including inactive ones"""
    items = catalog.list_packages(include_inactive=True)
    return success_response('Subscription packages', [p.to_dict() for p in items])


@admin_packages_bp.route('', methods=['POST'])
@admin_required
def create_package():
    package = catalog.create_package(request.get_json(silent=True) or {}, current_app.config)
    return success_response('Package created', package.to_dict(), 201)


@admin_packages_bp.route('/<int:package_id>', methods=['GET'])
@admin_required
def package_detail(package_id):
    return success_response('Subscription package', catalog.get_package(package_id).to_dict())


@admin_packages_bp.route('/<int:package_id>', methods=['PUT'])
@admin_required
def update_package(package_id):
    package = catalog.update_package(package_id, request.get_json(silent=True) or {}, current_app.config)
    return success_response('Package updated', package.to_dict())


@admin_packages_bp.route('/<int:package_id>', methods=['DELETE'])
@admin_required
def delete_package(package_id):
    catalog.delete_package(package_id)
    return success_response('Package deleted', {'id': package_id})
