"""
Shared error handlers for Flask apps.

Usage:
    from shared.error_handlers import register_error_handlers
    register_error_handlers(app, logger)

Routes return their own domain errors; these handlers only cover what Flask
raises itself: unknown routes, wrong methods and unhandled exceptions. API
clients (paths under /api/, the CSRF marker header, or Accept: application/json)
get {"error": ...}; browsers get a small HTML page.
"""

import logging
from flask import current_app, jsonify, request, render_template_string


ERROR_TEMPLATE = '''
<!DOCTYPE html>
<html>
<head>
    <title>{{ title }}</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
               max-width: 600px; margin: 80px auto; padding: 20px; text-align: center; }
        .error-box { background: #fef2f2; border: 1px solid #fecaca; border-radius: 8px;
                     padding: 30px; margin: 20px 0; }
        h1 { color: #991b1b; margin: 0 0 10px 0; }
        p { color: #7f1d1d; margin: 0; }
    </style>
</head>
<body>
    <div class="error-box">
        <h1>{{ code }} - {{ title }}</h1>
        <p>{{ message }}</p>
    </div>
    <p><a href="/">Back to your tasks</a></p>
</body>
</html>
'''


def _wants_json():
    if request.path.startswith('/api/'):
        return True
    header = current_app.config.get('CSRF_HEADER_NAME', 'X-Requested-With')
    value = current_app.config.get('CSRF_HEADER_VALUE', 'XMLHttpRequest')
    if request.headers.get(header) == value:
        return True
    best = request.accept_mimetypes.best_match(['application/json', 'text/html'])
    return best == 'application/json'


def _error_response(code, title, message):
    if _wants_json():
        return jsonify({'error': message}), code
    return render_template_string(ERROR_TEMPLATE, code=code, title=title, message=message), code


def register_error_handlers(app, logger=None):
    """
    Register the framework-level error handlers on a Flask app.

    Args:
        app: Flask application instance
        logger: Optional logger for unhandled exceptions
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    @app.errorhandler(404)
    def not_found(error):
        return _error_response(404, 'Not Found', 'Nothing lives at this address.')

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error_response(405, 'Method Not Allowed', f'{request.method} is not supported here.')

    @app.errorhandler(500)
    def internal_error(error):
        """Unhandled exceptions: log the detail, return a generic message"""
        logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        return _error_response(500, 'Internal Server Error', 'Something went wrong. Please try again later.')
