"""Main Flask application for Tilly, the task tracker."""

import logging
import time
from datetime import timedelta
from typing import Optional

from flask import Flask, g, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

from shared.error_handlers import register_error_handlers
from tilly.config import Config

logger = logging.getLogger(__name__)


def create_app(config: Optional[Config] = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config: Loaded configuration. If None, Config() is loaded from the environment.

    Returns:
        Configured Flask app instance

    Raises:
        ConfigError: If configuration is invalid
    """
    if config is None:
        config = Config()

    app = Flask(__name__)
    app.config['TILLY_CONFIG'] = config

    # Sessions
    app.secret_key = config.flask_secret_key
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['SESSION_COOKIE_SECURE'] = config.session_cookie_secure
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(days=config.session_lifetime_days)

    # Trust proxy headers (nginx forwards X-Forwarded-Proto, X-Forwarded-Host, etc.)
    # This ensures url_for generates https:// callback URLs when behind nginx with SSL
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    from tilly.services.auth import init_auth
    init_auth(app, config)

    from tilly.api.auth import auth_bp
    from tilly.api.tasks import tasks_bp
    from tilly.web.routes import web_bp

    app.register_blueprint(web_bp)
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(tasks_bp, url_prefix='/api/tasks')

    register_error_handlers(app, logger)
    _register_system_routes(app)

    logger.info(f"{config.name} {config.version} ready ({config.auth_transport} sessions)")
    return app


def _register_system_routes(app: Flask) -> None:

    @app.before_request
    def before_request():
        """Store request start time."""
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        """Log request details after completion."""
        if hasattr(g, 'start_time'):
            duration_ms = (time.time() - g.start_time) * 1000
            logger.info(
                f"{request.method} {request.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {duration_ms:.2f}ms"
            )
        return response

    @app.route('/robots.txt')
    def robots():
        """Block search engine crawlers"""
        return """User-agent: *
Disallow: /
""", 200, {'Content-Type': 'text/plain'}

    @app.route('/health')
    def health():
        """Health check endpoint"""
        config = app.config['TILLY_CONFIG']
        return jsonify({
            'status': 'healthy',
            'bot': config.name,
            'version': config.version,
            'transport': config.auth_transport,
        })

    @app.route('/info')
    def info():
        """App information endpoint"""
        config = app.config['TILLY_CONFIG']
        return jsonify({
            'name': config.name,
            'description': config.description,
            'version': config.version,
            'emoji': config.emoji,
            'endpoints': {
                'auth': {
                    'GET /api/auth/login': 'Start Google sign-in',
                    'GET /api/auth/callback': 'OAuth callback',
                    'POST /api/auth/logout': 'Sign out',
                    'GET /api/auth/session': 'Current user',
                    'GET /api/auth/check-access': 'Allow-list check for the current user'
                },
                'tasks': {
                    'GET /api/tasks': 'List my tasks',
                    'POST /api/tasks': 'Create a task',
                    'GET /api/tasks/<id>': 'Get a task',
                    'PUT /api/tasks/<id>': 'Update a task',
                    'DELETE /api/tasks/<id>': 'Delete a task'
                },
                'system': {
                    '/health': 'Health check',
                    '/info': 'App information'
                }
            }
        })


def main():
    """Run the Flask development server."""
    config = Config()
    app = create_app(config)

    print("\n" + "=" * 50)
    print(f"{config.emoji} Hi! I'm Tilly")
    print("   Task Tracker")
    print(f"   Running on http://localhost:{config.server_port}")
    print("=" * 50 + "\n")

    app.run(
        host=config.server_host,
        port=config.server_port,
        debug=config.debug
    )


if __name__ == '__main__':
    main()
