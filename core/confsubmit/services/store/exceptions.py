"""Exceptions raised by :mod:`confsubmit.services.store`."""


class StoreException(RuntimeError):
    """Base for store service exceptions."""


class TransactionFailed(StoreException):
    """Raised when there was a problem committing changes to the database."""


class Unavailable(StoreException):
    """The database is not available."""


class ConsistencyError(StoreException):
    """Attempted to persist stale or inconsistent state."""


class Conflict(StoreException):
    """A write was rejected by a uniqueness constraint."""
