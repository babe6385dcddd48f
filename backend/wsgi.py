"""WSGI entry point: ``gunicorn -c gunicorn.conf.py wsgi:app``."""

from tracker_auth import create_app

app = create_app()
