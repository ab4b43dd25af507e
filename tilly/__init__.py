"""Tilly: task tracker with Google sign-in and an allow-list."""

__version__ = "1.0.0"
