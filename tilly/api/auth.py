"""
Auth API for Tilly

Endpoints:
- GET  /api/auth/login         Start Google sign-in (cookie transport only)
- GET  /api/auth/callback      OAuth callback (cookie transport only)
- POST /api/auth/logout        Sign out (CSRF header required for cookies)
- GET  /api/auth/session       Current user
- GET  /api/auth/check-access  Is the current user on the allow-list
"""

import logging

from flask import Blueprint, current_app, jsonify, redirect, request, session, url_for
from flask_login import current_user, logout_user

from shared.auth.decorators import csrf_required
from tilly.database.db import DatabaseError
from tilly.services.identity import IdentityError, new_code_verifier
from tilly.services.sessions import PKCE_KEY

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _cookie_transport_only():
    if not current_app.config['SESSION_VERIFIER'].uses_cookies:
        return jsonify({'error': 'Not available for this deployment'}), 404
    return None


@auth_bp.route('/login', methods=['GET'])
def login():
    """Redirect to the provider's consent screen"""
    unavailable = _cookie_transport_only()
    if unavailable:
        return unavailable

    code_verifier = new_code_verifier()
    redirect_to = url_for('auth.callback', _external=True)

    try:
        authorize_url = current_app.config['SUPABASE_AUTH'].authorize_url(redirect_to, code_verifier)
    except IdentityError as e:
        logger.error(f"Could not start login: {e}")
        return redirect(url_for('web.index', error='login_failed'))

    session[PKCE_KEY] = code_verifier
    return redirect(authorize_url)


@auth_bp.route('/callback', methods=['GET'])
def callback():
    """Exchange the one-time code for a session and go home"""
    unavailable = _cookie_transport_only()
    if unavailable:
        return unavailable

    code = request.args.get('code')
    code_verifier = session.pop(PKCE_KEY, None)

    if code and code_verifier:
        try:
            provider_session = current_app.config['SUPABASE_AUTH'].exchange_code(code, code_verifier)
        except IdentityError as e:
            logger.error(f"Code exchange failed: {e}")
        else:
            current_app.config['SESSION_VERIFIER'].start(provider_session)
            logger.info(f"Signed in {provider_session['user'].get('email')}")
            return redirect(url_for('web.index'))
    else:
        logger.warning(f"Callback without code or verifier: {request.args.get('error_description', '')}")

    return redirect(url_for('web.index', error='auth'))


@auth_bp.route('/logout', methods=['POST'])
@csrf_required
def logout():
    """Sign out and clear the session"""
    current_app.config['SESSION_VERIFIER'].sign_out(request)
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/session', methods=['GET'])
def get_session():
    """Return the signed-in user"""
    if not current_user.is_authenticated:
        return jsonify({'user': None}), 401
    return jsonify({'user': current_user.to_dict()})


@auth_bp.route('/check-access', methods=['GET'])
def check_access():
    """Tell the UI whether the signed-in user is on the allow-list"""
    if not current_user.is_authenticated or not current_user.email:
        return jsonify({'allowed': False}), 401

    try:
        allowed = current_app.config['ALLOW_LIST'].is_allowed(current_user.email)
    except DatabaseError:
        logger.exception("Allow-list lookup failed")
        return jsonify({'error': 'Could not verify access. Please try again later.'}), 500

    return jsonify({'allowed': allowed})
