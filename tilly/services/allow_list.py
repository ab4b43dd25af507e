"""
Allow-list check.

Reads the `allowed_users` table with the admin handle, so the per-user policies
on that table can neither hide nor fake entries. Every call re-queries the table;
revoking an entry takes effect on the next request.
"""

import logging

from shared.auth.email_check import domain_pattern, normalize_email
from tilly.database.db import Database

logger = logging.getLogger(__name__)

TABLE = "allowed_users"


class AllowList:
    """Email / domain allow-list backed by the database"""

    def __init__(self, db: Database):
        self.db = db

    def _has_entry(self, entry_type: str, pattern: str) -> bool:
        rows = self.db.select(
            TABLE,
            filters={"type": entry_type, "pattern": pattern},
            columns="id",
            limit=1,
        )
        return len(rows) > 0

    def is_allowed(self, email: str) -> bool:
        """
        Check an email against the allow-list.

        Args:
            email: Verified email address from the identity provider

        Returns:
            True if the exact address or its '@domain' is listed

        Raises:
            DatabaseError: If the allow-list cannot be read
        """
        email = normalize_email(email)
        if not email:
            return False

        if self._has_entry("email", email):
            return True

        domain = domain_pattern(email)
        if domain is None:
            return False
        return self._has_entry("domain", domain)
