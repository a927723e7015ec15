"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    gunicorn wsgi:app
"""

from finishline import create_app

app = create_app()
