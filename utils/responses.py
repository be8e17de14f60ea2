"""
JSON envelope helpers: {"success": bool, "message": str, "data": ...}
"""
from flask import jsonify


def success_response(message, data=None, status=200):
    return jsonify({'success': True, 'message': message, 'data': data}), status


def error_response(message, status=400, details=None):
    body = {'success': False, 'message': message, 'data': None}
    if details:
        body['details'] = details
    return jsonify(body), status
