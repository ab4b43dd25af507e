"""
Shared authentication module.

This module provides the authentication building blocks used by the app:
- User class for Flask-Login
- CSRF marker header checks and decorator
- Email normalisation for allow-list checks

Usage:
    from shared.auth import User, csrf_required
    from shared.auth.email_check import normalize_email, domain_pattern
"""

# User class
from shared.auth.user import User

# Decorators
from shared.auth.decorators import csrf_required, has_csrf_header, csrf_protection_enabled

# Email checks
from shared.auth.email_check import normalize_email, domain_pattern

__all__ = [
    # User
    'User',
    # Decorators
    'csrf_required',
    'has_csrf_header',
    'csrf_protection_enabled',
    # Email checks
    'normalize_email',
    'domain_pattern',
]
