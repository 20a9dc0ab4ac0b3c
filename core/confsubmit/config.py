"""Submission core configuration parameters."""

from os import environ
import warnings

LOGLEVEL = int(environ.get('LOGLEVEL', '20'))
"""
Logging verbosity.

See `https://docs.python.org/3/library/logging.html#levels`_.
"""

JWT_SECRET = environ.get('JWT_SECRET')
"""Secret key for signing + verifying authentication JWTs."""

if not JWT_SECRET:
    warnings.warn('JWT_SECRET is not set; authn/z may not work correctly!')

JWT_ALGORITHM = environ.get('JWT_ALGORITHM', 'HS256')
"""Algorithm used to sign authentication JWTs."""

ENABLE_CALLBACKS = bool(int(environ.get('ENABLE_CALLBACKS', '1')))
"""Enable/disable the :func:`Event.bind` feature."""

SERIAL_NUMBER_ATTEMPTS = int(environ.get('SERIAL_NUMBER_ATTEMPTS', '3'))
"""Number of serial numbers to try before giving up on a submission."""


# --- DATABASE CONFIGURATION ---

SUBMISSION_DATABASE_URI = environ.get('SUBMISSION_DATABASE_URI', 'sqlite:///')
"""Full database URI for the submission database."""

SQLALCHEMY_DATABASE_URI = SUBMISSION_DATABASE_URI
"""Full database URI for the submission database."""

SQLALCHEMY_TRACK_MODIFICATIONS = False
"""Track modifications feature should always be disabled."""


# --- NOTIFICATION CONFIGURATION ---

NOTIFICATIONS_ENABLED = bool(int(environ.get('NOTIFICATIONS_ENABLED', '1')))
"""Enable/disable notifications to authors and reviewers."""

NOTIFICATION_ENDPOINT = environ.get('NOTIFICATION_ENDPOINT',
                                    'http://localhost:8025/notifications')
"""URL to which notification requests are POSTed."""

NOTIFICATION_TIMEOUT = float(environ.get('NOTIFICATION_TIMEOUT', '5'))
"""Seconds to wait for the notification service before giving up."""

NOTIFICATION_VERIFY = bool(int(environ.get('NOTIFICATION_VERIFY', '1')))
"""Enable/disable TLS certificate verification for notifications."""

if NOTIFICATION_ENDPOINT.startswith('https') and not NOTIFICATION_VERIFY:
    warnings.warn('Certificate verification for notifications is disabled;'
                  ' this should not be disabled in production.')


# --- FILE STORAGE ---

FILESTORE_ROOT = environ.get('FILESTORE_ROOT', '/tmp/confsubmit/files')
"""Directory under which uploaded files are persisted."""

MAX_UPLOAD_BYTES = int(environ.get('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))
"""Largest file that will be accepted, in bytes."""

MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 1024 * 1024
"""Flask rejects request bodies larger than this outright."""
