"""WSGI entry point: gunicorn tilly.wsgi:app"""
from tilly.app import create_app

app = create_app()
