"""
Exceptions raised by the submission workflow.

Every error carries a stable :attr:`kind`, so that callers can react to the
category of a failure without parsing its message.
"""

from typing import Any, Optional


class InvalidEvent(ValueError):
    """Raised when an invalid event is encountered."""

    kind = 'invalid'

    def __init__(self, event: Any, message: str = '') -> None:
        """Use the :class:`.Event` to build an error message."""
        self.event = event
        self.message = message
        name = getattr(event, 'event_type', None) or 'operation'
        r = f"Invalid {name}: {message}"
        super(InvalidEvent, self).__init__(r)


class ValidationError(InvalidEvent):
    """Input is missing or malformed."""

    kind = 'validation'


class StateError(InvalidEvent):
    """The operation is not allowed in the current lifecycle state."""

    kind = 'state'


class PermissionDenied(InvalidEvent):
    """The actor does not hold a role required for the operation."""

    kind = 'permission'


class PolicyError(InvalidEvent):
    """The operation would violate a standing policy."""

    kind = 'policy'


class ConflictError(RuntimeError):
    """A concurrent or duplicate write was rejected."""

    kind = 'conflict'


class SerialNumberCollision(ConflictError):
    """A generated serial number is already in use."""


class NotFound(LookupError):
    """A referenced entity does not exist, or is not visible to the actor."""

    kind = 'not_found'


class NoSuchSubmission(NotFound):
    """An operation was performed on/for a submission that does not exist."""


class NoSuchDraft(NotFound):
    """An operation was performed on/for a draft that does not exist."""


class NoSuchUser(NotFound):
    """The referenced user does not exist."""


class NoSuchConference(NotFound):
    """The referenced conference does not exist."""


class NoSuchAssignment(NotFound):
    """The actor has no review assignment on the submission."""


class SaveError(RuntimeError):
    """Failed to persist event state."""

    kind = 'save'


class NothingToDo(RuntimeError):
    """There is nothing to do."""

    kind = 'nothing_to_do'


def kind_of(error: Optional[BaseException]) -> str:
    """Get the stable kind of an error raised by this package."""
    return getattr(error, 'kind', 'unknown')
