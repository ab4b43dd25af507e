"""
Authentication service for Tilly.

Sets up Flask-Login on top of the configured session verifier and provides the
request gate every task endpoint runs first:

    1. CSRF marker header (cookie transport only)  -> 403
    2. Session verification                        -> 401
    3. Allow-list membership                       -> 403 (cookie sessions are signed out)
"""

import logging
from dataclasses import dataclass
from functools import wraps

from flask import current_app, g, jsonify, request
from flask_login import LoginManager, current_user, logout_user

from shared.auth.decorators import csrf_protection_enabled, has_csrf_header
from tilly.database.db import DatabaseError, admin_database, user_database
from tilly.database.tasks import TaskStore
from tilly.services.allow_list import AllowList
from tilly.services.identity import SupabaseAuth
from tilly.services.sessions import make_verifier

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """What a protected endpoint gets once the gate lets a request through"""
    owner_id: str
    email: str
    tasks: TaskStore


def init_auth(app, config):
    """Initialize authentication for the Flask app"""
    identity = SupabaseAuth(
        config.supabase_url,
        config.supabase_publishable_key,
        provider=config.oauth_provider,
        timeout=config.supabase_timeout,
    )
    verifier = make_verifier(config, identity)

    app.config['SUPABASE_AUTH'] = identity
    app.config['SESSION_VERIFIER'] = verifier
    app.config['ALLOW_LIST'] = AllowList(admin_database(config))
    app.config['CSRF_PROTECTION'] = verifier.uses_cookies
    app.config['CSRF_HEADER_NAME'] = config.csrf_header
    app.config['CSRF_HEADER_VALUE'] = config.csrf_value

    # Configure Flask-Login; users come from the verifier on every request
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.session_protection = None

    @login_manager.request_loader
    def load_user_from_request(req):
        return current_app.config['SESSION_VERIFIER'].verify(req)

    return login_manager


def _reject(message, status):
    return None, (jsonify({'error': message}), status)


def authenticate():
    """
    Run the gate for the current request.

    Returns:
        (AuthContext, None) when authorized, or (None, response) to return as-is
    """
    if csrf_protection_enabled() and not has_csrf_header():
        return _reject('Invalid request', 403)

    if not current_user.is_authenticated:
        return _reject('Authentication required. Please log in.', 401)

    try:
        allowed = bool(current_user.email) and current_app.config['ALLOW_LIST'].is_allowed(current_user.email)
    except DatabaseError:
        logger.exception("Allow-list lookup failed")
        return _reject('Could not verify access. Please try again later.', 500)

    if not allowed:
        logger.warning(f"Access denied for {current_user.email}: not on the allow-list")
        verifier = current_app.config['SESSION_VERIFIER']
        if verifier.uses_cookies:
            verifier.sign_out(request)
            logout_user()
        return _reject('This account does not have access.', 403)

    config = current_app.config['TILLY_CONFIG']
    store = TaskStore(
        user_database(config, current_user.access_token),
        current_user.id,
        title_max_length=config.title_max_length,
    )
    return AuthContext(owner_id=current_user.id, email=current_user.email, tasks=store), None


def gate_required(f):
    """
    Decorator to run the gate before a route.

    The authorized context is available as g.auth inside the route.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth, error = authenticate()
        if error is not None:
            return error
        g.auth = auth
        return f(*args, **kwargs)
    return decorated_function
