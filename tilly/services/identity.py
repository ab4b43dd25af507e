"""
Supabase Auth adapter for Tilly.

Handles the PKCE OAuth flow (Google via Supabase), token refresh, user lookup
and sign-out. Token issuance and verification stay with Supabase; this module
only makes the HTTP calls.
"""

import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from authlib.common.security import generate_token
from authlib.oauth2.rfc7636 import create_s256_code_challenge

from shared.http_client import SupabaseHttpClient

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"


class IdentityError(Exception):
    """Raised when a call to the identity provider fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def rejected(self) -> bool:
        """True when the provider refused the credential (as opposed to being unreachable)"""
        return self.status_code is not None and 400 <= self.status_code < 500


def new_code_verifier() -> str:
    """PKCE code verifier (RFC 7636 allows 43-128 characters)"""
    return generate_token(64)


def session_from_token_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce a token response to what the session cookie keeps.

    Returns:
        Dict with access_token, refresh_token, expires_at (epoch seconds) and user {id, email}
    """
    try:
        expires_at = data.get('expires_at')
        if expires_at is None:
            expires_at = int(time.time()) + int(data['expires_in'])
        user = data.get('user') or {}
        return {
            'access_token': data['access_token'],
            'refresh_token': data['refresh_token'],
            'expires_at': int(expires_at),
            'user': {'id': user.get('id'), 'email': user.get('email')},
        }
    except (KeyError, TypeError, ValueError) as e:
        raise IdentityError(f"Malformed token response: {e}") from e


class SupabaseAuth:
    """Client for the Supabase Auth (GoTrue) HTTP API"""

    def __init__(self, base_url: str, api_key: str, provider: str = 'google', timeout: int = 10):
        """
        Args:
            base_url: Supabase project URL
            api_key: Publishable key
            provider: OAuth provider name as configured in Supabase
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.provider = provider
        self.timeout = timeout

    def _client(self, access_token: str = None) -> SupabaseHttpClient:
        return SupabaseHttpClient(self.base_url, self.api_key, access_token=access_token, timeout=self.timeout)

    def _call(self, method: str, path: str, access_token: str = None, **kwargs) -> requests.Response:
        try:
            response = self._client(access_token).request(method, f"{AUTH_PATH}{path}", **kwargs)
        except requests.RequestException as e:
            raise IdentityError(f"Could not reach identity provider: {e}") from e

        if response.status_code >= 400:
            raise IdentityError(
                f"Identity provider returned {response.status_code} for {path}",
                status_code=response.status_code,
            )
        return response

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise IdentityError("Identity provider returned a non-JSON response") from e

    def provider_enabled(self) -> bool:
        """Check the project's auth settings for the configured OAuth provider"""
        settings = self._json(self._call('GET', '/settings'))
        return bool((settings.get('external') or {}).get(self.provider))

    def authorize_url(self, redirect_to: str, code_verifier: str) -> str:
        """
        Build the URL that sends the browser to the provider's consent screen.

        Raises:
            IdentityError: If the provider is unreachable or not enabled
        """
        if not self.provider_enabled():
            raise IdentityError(f"OAuth provider '{self.provider}' is not enabled")

        query = urlencode({
            'provider': self.provider,
            'redirect_to': redirect_to,
            'code_challenge': create_s256_code_challenge(code_verifier),
            'code_challenge_method': 's256',
        })
        return f"{self.base_url}{AUTH_PATH}/authorize?{query}"

    def exchange_code(self, auth_code: str, code_verifier: str) -> Dict[str, Any]:
        """Exchange the one-time code from the callback for a session"""
        response = self._call(
            'POST', '/token',
            params={'grant_type': 'pkce'},
            json={'auth_code': auth_code, 'code_verifier': code_verifier},
        )
        return session_from_token_response(self._json(response))

    def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        """Trade a refresh token for a fresh session"""
        response = self._call(
            'POST', '/token',
            params={'grant_type': 'refresh_token'},
            json={'refresh_token': refresh_token},
        )
        return session_from_token_response(self._json(response))

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Resolve an access token to the provider's user record"""
        user = self._json(self._call('GET', '/user', access_token=access_token))
        if not user.get('id'):
            raise IdentityError("Identity provider returned a user without an id")
        return user

    def sign_out(self, access_token: str) -> None:
        """Revoke the session behind this access token"""
        self._call('POST', '/logout', access_token=access_token, params={'scope': 'local'})
