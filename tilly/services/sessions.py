"""
Session verifiers.

Two interchangeable ways of carrying the caller's session, one per deployment:
- CookieSessionVerifier: provider tokens live in the signed Flask session cookie
  and are refreshed transparently when close to expiry
- BearerTokenVerifier: the client sends Authorization: Bearer <access token>
"""

import logging
import time
from typing import Optional

from flask import session

from shared.auth.user import User
from tilly.services.identity import IdentityError, SupabaseAuth

logger = logging.getLogger(__name__)

SESSION_KEY = 'supabase_session'
PKCE_KEY = 'pkce_code_verifier'


class SessionVerifier:
    """Resolves the caller of a request to a User, or None"""

    uses_cookies = False

    def __init__(self, auth: SupabaseAuth):
        self.auth = auth

    def access_token(self, request) -> Optional[str]:
        raise NotImplementedError

    def verify(self, request) -> Optional[User]:
        raise NotImplementedError

    def _lookup(self, access_token: str) -> Optional[User]:
        try:
            user_info = self.auth.get_user(access_token)
        except IdentityError as e:
            if e.rejected:
                logger.info(f"Access token rejected by identity provider ({e.status_code})")
            else:
                # Fail closed: an unreachable provider means unauthenticated
                logger.error(f"Could not verify session: {e}")
            return None
        return User.from_provider_info(user_info, access_token)

    def sign_out(self, request) -> None:
        """Revoke the caller's session with the provider, if there is one"""
        token = self.access_token(request)
        if not token:
            return
        try:
            self.auth.sign_out(token)
        except IdentityError as e:
            logger.warning(f"Provider sign-out failed: {e}")


class CookieSessionVerifier(SessionVerifier):
    """Session kept in the signed cookie; refreshed during verification"""

    uses_cookies = True

    def __init__(self, auth: SupabaseAuth, refresh_margin_seconds: int = 90):
        super().__init__(auth)
        self.refresh_margin_seconds = refresh_margin_seconds

    def start(self, provider_session: dict) -> None:
        """Store a freshly issued provider session in the cookie"""
        session[SESSION_KEY] = provider_session
        session.permanent = True

    def clear(self) -> None:
        session.pop(SESSION_KEY, None)

    def access_token(self, request) -> Optional[str]:
        stored = session.get(SESSION_KEY)
        return stored.get('access_token') if stored else None

    def _expiring(self, stored: dict) -> bool:
        expires_at = stored.get('expires_at') or 0
        return expires_at - time.time() < self.refresh_margin_seconds

    def _refresh(self, stored: dict) -> Optional[dict]:
        try:
            refreshed = self.auth.refresh_session(stored.get('refresh_token') or '')
        except IdentityError as e:
            if e.rejected:
                logger.info("Refresh token rejected, clearing session")
                self.clear()
            else:
                logger.error(f"Session refresh failed: {e}")
            return None

        session[SESSION_KEY] = refreshed
        return refreshed

    def verify(self, request) -> Optional[User]:
        stored = session.get(SESSION_KEY)
        if not stored or not stored.get('access_token'):
            return None

        if self._expiring(stored):
            stored = self._refresh(stored)
            if stored is None:
                return None

        return self._lookup(stored['access_token'])

    def sign_out(self, request) -> None:
        super().sign_out(request)
        self.clear()


class BearerTokenVerifier(SessionVerifier):
    """Session carried as a bearer token; the client owns refresh"""

    def access_token(self, request) -> Optional[str]:
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme.lower() != 'bearer' or not token.strip():
            return None
        return token.strip()

    def verify(self, request) -> Optional[User]:
        token = self.access_token(request)
        if not token:
            return None
        return self._lookup(token)


def make_verifier(config, auth: SupabaseAuth) -> SessionVerifier:
    """Pick the verifier for the configured transport"""
    if config.auth_transport == 'bearer':
        return BearerTokenVerifier(auth)
    return CookieSessionVerifier(auth, refresh_margin_seconds=config.refresh_margin_seconds)
