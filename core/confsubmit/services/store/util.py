"""Utility classes and functions for :mod:`.services.store`."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, Generator, Any

from flask import Flask
import sqlalchemy.types as types
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.session import Session
from flask_sqlalchemy import SQLAlchemy

from .exceptions import TransactionFailed, Unavailable, Conflict
from ... import serializer
from ...domain.util import as_utc


class SubmissionSQLAlchemy(SQLAlchemy):
    """SQLAlchemy integration for the submission database."""

    def init_app(self, app: Flask) -> None:
        """Set default configuration."""
        app.config.setdefault(
            'SQLALCHEMY_DATABASE_URI',
            app.config.get('SUBMISSION_DATABASE_URI', 'sqlite://')
        )
        app.config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
        super(SubmissionSQLAlchemy, self).init_app(app)


db: SQLAlchemy = SubmissionSQLAlchemy()


logger = logging.getLogger(__name__)


class SQLiteJSON(types.TypeDecorator):
    """A SQLite-friendly JSON data type."""

    impl = types.TEXT
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[str]:
        """Serialize a value to JSON."""
        if value is not None:
            value = serializer.dumps(value)
        return value

    def process_result_value(self, value: Optional[str], dialect: Any) -> Any:
        """Deserialize JSON content."""
        if value is not None:
            value = serializer.loads(value)
        return value


# SQLite does not support JSON, so we extend JSON to use our custom data type
# as a variant for the 'sqlite' dialect.
FriendlyJSON = types.JSON().with_variant(SQLiteJSON, 'sqlite')


class UTCDateTime(types.TypeDecorator):
    """Stores naive UTC timestamps, and hands back UTC-localized ones."""

    impl = types.DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime],
                           dialect: Any) -> Optional[datetime]:
        """Drop the timezone after converting to UTC."""
        if value is not None:
            value = as_utc(value).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime],
                             dialect: Any) -> Optional[datetime]:
        """Localize to UTC."""
        return as_utc(value)


def current_engine() -> Engine:
    """Get/create :class:`.Engine` for this context."""
    return db.engine


def current_session() -> Session:
    """Get/create :class:`.Session` for this context."""
    return db.session()


@contextmanager
def transaction() -> Generator:
    """
    Context manager for database transaction.

    Changes are committed when the block exits normally, and rolled back
    otherwise. Exceptions raised inside the block propagate unchanged, except
    for database errors, which are raised as :class:`.Conflict` (uniqueness
    violations), :class:`.Unavailable` (connection problems), or
    :class:`.TransactionFailed` (anything else).
    """
    session = current_session()
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        logger.debug('Command failed, rolling back: %s', str(e))
        session.rollback()
        raise Conflict('Write rejected by a uniqueness constraint') from e
    except OperationalError as e:
        logger.debug('Command failed, rolling back: %s', str(e))
        session.rollback()
        raise Unavailable('Submission database unavailable') from e
    except SQLAlchemyError as e:
        logger.debug('Command failed, rolling back: %s', str(e))
        session.rollback()
        raise TransactionFailed('Failed to execute transaction') from e
    except Exception as e:
        logger.debug('Command failed, rolling back: %s', str(e))
        session.rollback()
        raise
