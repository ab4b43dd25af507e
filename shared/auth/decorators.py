"""
Shared authentication decorators for Flask routes.
"""
from functools import wraps
from flask import current_app, jsonify, request

DEFAULT_CSRF_HEADER = 'X-Requested-With'
DEFAULT_CSRF_VALUE = 'XMLHttpRequest'


def has_csrf_header() -> bool:
    """
    Check the request carries the same-origin marker header.

    Browsers only let same-origin script set custom headers, so cross-site
    forms, images and script tags never carry it.
    """
    name = current_app.config.get('CSRF_HEADER_NAME', DEFAULT_CSRF_HEADER)
    value = current_app.config.get('CSRF_HEADER_VALUE', DEFAULT_CSRF_VALUE)
    return request.headers.get(name) == value


def csrf_protection_enabled() -> bool:
    return current_app.config.get('CSRF_PROTECTION', True)


def csrf_required(f):
    """
    Decorator to require the CSRF marker header on a route.

    Returns 403 JSON if protection is enabled and the header is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if csrf_protection_enabled() and not has_csrf_header():
            return jsonify({'error': 'Invalid request'}), 403
        return f(*args, **kwargs)
    return decorated_function
