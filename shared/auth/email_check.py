"""
Shared email normalisation helpers for allow-list checks.
"""
from typing import Optional


def normalize_email(email: Optional[str]) -> str:
    """
    Normalise an email address for comparison.

    Args:
        email: Email address as supplied by the identity provider

    Returns:
        Lowercased, stripped address ('' for None)
    """
    if not email:
        return ''
    return email.lower().strip()


def domain_pattern(email: Optional[str]) -> Optional[str]:
    """
    Build the '@domain' pattern an email would match in a domain rule.

    Args:
        email: Email address to check

    Returns:
        '@example.com' for 'User@Example.com', or None if there is no domain part
    """
    email = normalize_email(email)
    if '@' not in email:
        return None

    domain = email.split('@')[1]
    if not domain:
        return None
    return f'@{domain}'
