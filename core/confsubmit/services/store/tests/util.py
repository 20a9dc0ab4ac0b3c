from contextlib import contextmanager
from typing import Optional

from flask import Flask

from ... import store


@contextmanager
def in_memory_db(app: Optional[Flask] = None):
    """Provide an in-memory sqlite database for testing purposes."""
    if app is None:
        app = Flask('foo')
    app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config.setdefault('NOTIFICATIONS_ENABLED', False)

    with app.app_context():
        if 'sqlalchemy' not in app.extensions:
            store.init_app(app)
        store.create_all()
        try:
            yield store.current_session()
        except Exception:
            raise
        finally:
            store.current_session().rollback()
            store.drop_all()
