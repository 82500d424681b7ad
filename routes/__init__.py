"""
Request handlers. Each request gets one SQLite connection, opened lazily
and closed on app-context teardown.
"""

from flask import current_app, g, request

from database import get_db_connection


def get_db():
    if 'db' not in g:
        g.db = get_db_connection(current_app.config['DATABASE'],
                                 current_app.config['DATABASE_TIMEOUT'])
    return g.db


def close_db(exc=None):
    db = g.pop('db', None)
    if db is not None:
        db.close()


def request_value(name: str, default: str = '') -> str:
    """Look a parameter up in the JSON body, then the form/query string."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    value = body.get(name)
    if value is None:
        value = request.values.get(name, default)
    return str(value).strip()
