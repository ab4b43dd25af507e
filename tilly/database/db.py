"""
Database service for Tilly.

Talks to the Supabase Postgres database through its PostgREST API. Two kinds of
handle exist: user handles (publishable key + the caller's access token, so
row-level security applies) and the admin handle (secret key, bypasses RLS and
is only used for the allow-list).
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from shared.http_client import SupabaseHttpClient

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"


class DatabaseError(Exception):
    """Raised when the database call fails for any reason other than validation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _eq_filters(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {column: f"eq.{value}" for column, value in (filters or {}).items()}


class Database:
    """PostgREST table operations over one authenticated HTTP client"""

    def __init__(self, client: SupabaseHttpClient):
        self.client = client

    def _send(self, method: str, table: str, params=None, json=None, prefer: str = None) -> List[Dict[str, Any]]:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.client.request(
                method,
                f"{REST_PATH}/{table}",
                params=params,
                json=json,
                headers=headers,
            )
        except requests.RequestException as e:
            logger.error(f"{method} {table} failed: {e}")
            raise DatabaseError(f"Could not reach database: {e}") from e

        if response.status_code >= 400:
            logger.error(f"{method} {table} returned {response.status_code}: {response.text}")
            raise DatabaseError(
                f"Database returned status {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as e:
            raise DatabaseError("Database returned a non-JSON response") from e

    # ─────────────────────────────────────────────────────────────
    # TABLE OPERATIONS
    # ─────────────────────────────────────────────────────────────

    def select(self, table, filters=None, columns="*", order=None, limit=None):
        """Return rows matching all equality filters"""
        params = {"select": columns, **_eq_filters(filters)}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        return self._send("GET", table, params=params)

    def insert(self, table, row):
        """Insert one row and return the stored row"""
        rows = self._send("POST", table, json=row, prefer="return=representation")
        if not rows:
            raise DatabaseError(f"Insert into {table} returned no row")
        return rows[0]

    def update(self, table, values, filters):
        """Update matching rows and return them (empty list if nothing matched)"""
        return self._send(
            "PATCH", table,
            params=_eq_filters(filters),
            json=values,
            prefer="return=representation",
        )

    def delete(self, table, filters):
        """Delete matching rows and return them (empty list if nothing matched)"""
        return self._send(
            "DELETE", table,
            params=_eq_filters(filters),
            prefer="return=representation",
        )


def user_database(config, access_token: str) -> Database:
    """Handle that acts as the signed-in user (row-level security applies)"""
    client = SupabaseHttpClient(
        config.supabase_url,
        config.supabase_publishable_key,
        access_token=access_token,
        timeout=config.supabase_timeout,
    )
    return Database(client)


def admin_database(config) -> Database:
    """Handle using the secret key; bypasses row-level security"""
    if not config.supabase_secret_key:
        raise DatabaseError("SUPABASE_SECRET_KEY is not configured")
    client = SupabaseHttpClient(
        config.supabase_url,
        config.supabase_secret_key,
        timeout=config.supabase_timeout,
    )
    return Database(client)
