"""Provides the base event class."""

import copy
import hashlib
import logging
from collections import defaultdict
from datetime import datetime
from functools import wraps
from typing import Optional, Callable, Tuple, Iterable, List, ClassVar, \
    Mapping, Type, Any, Dict

from dataclasses import field, fields
from flask import current_app, has_app_context

from ...exceptions import PermissionDenied
from ..agent import Agent, Role, System, agent_factory
from ..submission import Manuscript
from .util import dataclass, EVENT_TYPES

logger = logging.getLogger(__name__)

Condition = Callable[['Event', Optional[Manuscript], Manuscript], bool]
Callback = Callable[['Event', Optional[Manuscript], Manuscript], None]
Decorator = Callable[[Callable], Callable]
Rule = Tuple[Condition, Callback]
Store = Callable[['Event', Optional[Manuscript], Manuscript],
                 Tuple['Event', Manuscript]]


class EventType(type):
    """Metaclass for :class:`.Event`."""


@dataclass()
class Event(metaclass=EventType):
    """
    Base class for manuscript-related events/commands.

    An event represents a change to a :class:`.domain.submission.Draft` or a
    :class:`.domain.submission.Submission`. Rather than changing manuscripts
    directly, an application should create (and store) events. Each event
    class must inherit from this base class, extend it with whatever data is
    needed for the event, and define methods for validation and projection:

    - ``validate(self, manuscript) -> None`` should raise
      :class:`.InvalidEvent` (or one of its subclasses) if the event instance
      cannot be applied to the manuscript.
    - ``project(self, manuscript) -> Manuscript`` should perform changes to
      the manuscript and return it.

    Roles required to issue an event are declared on the class, in
    :attr:`REQUIRED_ROLES`. They are checked by :meth:`authorize` before
    anything is loaded from the store.

    An event class also provides a hook for doing things automatically after
    the manuscript changes. To register a function that gets called once an
    event has been committed, use the :func:`bind` method.
    """

    NAME = 'base event'
    NAMED = 'base event'

    REQUIRED_ROLES: ClassVar[Tuple[Role, ...]] = ()
    """If set, the creator must hold at least one of these roles."""

    SERIALIZE_EXCLUDE: ClassVar[Tuple[str, ...]] = (
        'creator', 'created', 'submission_id', 'draft_id', 'committed',
        'before', 'after', 'event_type'
    )

    creator: Agent
    """The agent responsible for the operation represented by this event."""

    created: Optional[datetime] = field(default=None)
    """The timestamp when the event was originally committed."""

    submission_id: Optional[int] = field(default=None)
    """
    The primary identifier of the submission being operated upon.

    This is defined as optional to support creation events, and events that
    operate on drafts.
    """

    draft_id: Optional[int] = field(default=None)
    """The identifier of the draft being operated upon, if any."""

    committed: bool = field(default=False)
    """
    Indicates whether the event has been committed to the database.

    This should generally not be set from outside this package.
    """

    before: Optional[Manuscript] = None
    """The state of the manuscript prior to the event."""

    after: Optional[Manuscript] = None
    """The state of the manuscript after the event."""

    event_type: str = field(default_factory=str)

    _hooks: ClassVar[Mapping[type, List[Rule]]] = defaultdict(list)

    def __post_init__(self) -> None:
        """Make sure data look right."""
        self.event_type = self.get_event_type()
        if self.creator and isinstance(self.creator, dict):
            self.creator = agent_factory(**self.creator)

    @classmethod
    def get_event_type(cls) -> str:
        """Get the name of the event type."""
        return cls.__name__

    @property
    def event_id(self) -> str:
        """Unique ID for this event."""
        if not self.created:
            raise RuntimeError('Event not yet committed')
        return self.get_id(self.created, self.event_type, self.creator)

    @staticmethod
    def get_id(created: datetime, event_type: str, creator: Agent) -> str:
        h = hashlib.new('sha1')
        h.update(b'%s:%s:%s' % (created.isoformat().encode('utf-8'),
                                event_type.encode('utf-8'),
                                creator.agent_identifier.encode('utf-8')))
        return h.hexdigest()

    def authorize(self) -> None:
        """
        Verify that the creator holds a role required for this event.

        This is a pure check against the creator's role set, and must be
        called before the manuscript is loaded.

        Raises
        ------
        :class:`.PermissionDenied`

        """
        if not self.REQUIRED_ROLES:
            return
        if self.creator is None or not self.creator.has_role(
                *self.REQUIRED_ROLES):
            required = ', '.join(role.value for role in self.REQUIRED_ROLES)
            raise PermissionDenied(self, f'Requires one of: {required}')

    def apply(self, manuscript: Optional[Manuscript] = None) -> Manuscript:
        """Apply the projection for this :class:`.Event` instance."""
        self.before = copy.deepcopy(manuscript)
        self.validate(manuscript)    # type: ignore
        if manuscript is not None:
            self.after = self.project(copy.deepcopy(manuscript))
        else:   # Creation events start from nothing.
            self.after = self.project(None)    # type: ignore
        assert self.after is not None
        self.after.updated = self.created

        # Keep identifiers in sync between the event and the manuscript.
        for attr in ('submission_id', 'draft_id'):
            if getattr(self.after, attr, None) is None \
                    and getattr(self, attr) is not None \
                    and hasattr(self.after, attr):
                setattr(self.after, attr, getattr(self, attr))
            if getattr(self, attr) is None \
                    and getattr(self.after, attr, None) is not None:
                setattr(self, attr, getattr(self.after, attr))
        return self.after

    @classmethod
    def bind(cls, condition: Optional[Condition] = None) -> Decorator:
        """
        Generate a decorator to bind a callback to an event type.

        To register a function that will be called after an event has been
        committed, decorate it like so:

        .. code-block:: python

           @MyEvent.bind()
           def say_hello(event: MyEvent, before: Manuscript,
                         after: Manuscript) -> None:
               ...

        The callback function will be passed the event that triggered it, and
        the state of the manuscript before and after the triggering event was
        applied. Callbacks are run after the transaction has been committed;
        they cannot change the outcome of the operation, and any exception
        that they raise is logged and discarded.

        By default, callbacks will only be called if the creator of the
        trigger event is not a :class:`.System` instance. You can pass a
        custom condition to the decorator, with the signature ``(event:
        MyEvent, before: Manuscript, after: Manuscript) -> bool``.

        Parameters
        ----------
        condition : Callable
            If this callable returns ``True``, the callback will be triggered
            when the event to which it is bound is saved.

        Returns
        -------
        Callable
            Decorator for a callback function.

        """
        if condition is None:
            def _creator_is_not_system(e: Event, *ar: Any, **kw: Any) -> bool:
                return type(e.creator) is not System
            condition = _creator_is_not_system

        def decorator(func: Callback) -> Callback:
            """Register a callback for an event type and condition."""
            name = f'{cls.__name__}::{func.__module__}.{func.__name__}'

            @wraps(func)
            def do(event: Event, before: Manuscript, after: Manuscript,
                   **kwargs: Any) -> None:
                """Perform the callback. Here in case we need to hook in."""
                return func(event, before, after)

            setattr(do, '__name__', name)
            assert condition is not None
            cls._add_callback(condition, do)
            return do
        return decorator

    @classmethod
    def _add_callback(cls: Type['Event'], condition: Condition,
                      callback: Callback) -> None:
        cls._hooks[cls].append((condition, callback))

    def _get_callbacks(self) -> Iterable[Tuple[Condition, Callback]]:
        return ((condition, callback) for cls in type(self).__mro__[::-1]
                for condition, callback in self._hooks[cls])

    def _should_apply_callbacks(self) -> bool:
        config = current_app.config if has_app_context() else {}
        return bool(int(config.get('ENABLE_CALLBACKS', 1)))

    def validate(self, manuscript: Manuscript) -> None:
        """Validate this event and its data against a manuscript."""
        raise NotImplementedError('Must be implemented by subclass')

    def project(self, manuscript: Manuscript) -> Manuscript:
        """Apply this event and its data to a manuscript."""
        raise NotImplementedError('Must be implemented by subclass')

    def commit(self, store: Store) -> Manuscript:
        """
        Persist this event instance using an injected store method.

        Parameters
        ----------
        store : Callable
            Should have signature ``(event, before, after) -> Tuple[Event,
            Manuscript]``.

        Returns
        -------
        :class:`.Draft` or :class:`.Submission`
            State of the manuscript after storage. Some changes may have been
            made to ensure consistency with the underlying datastore.

        """
        assert self.after is not None
        _, self.after = store(self, self.before, self.after)
        self.committed = True
        return self.after

    def notify(self) -> int:
        """
        Run the callbacks bound to this event.

        This must only be called once the event has been committed. Failures
        are logged and do not propagate.

        Returns
        -------
        int
            The number of callbacks that failed.

        """
        if not self.committed or not self._should_apply_callbacks():
            return 0
        failures = 0
        for condition, callback in self._get_callbacks():
            if not condition(self, self.before, self.after):
                continue
            try:
                callback(self, self.before, self.after)
            except Exception:
                failures += 1
                logger.exception('Callback %s failed for event %s',
                                 callback.__name__, self.event_id)
        return failures

    def get_data(self) -> Dict[str, Any]:
        """Get the data that distinguishes this event, for the event log."""
        return {f.name: getattr(self, f.name) for f in fields(self)
                if f.name not in self.SERIALIZE_EXCLUDE}


def event_factory(event_type: str, created: datetime, **data: Any) -> Event:
    """
    Generate an :class:`Event` instance from stored event data.

    Parameters
    ----------
    event_type : str
        Should be the name of a :class:`.Event` subclass.
    data : kwargs
        Keyword parameters passed to the event constructor.

    Returns
    -------
    :class:`.Event`
        An instance of an :class:`.Event` subclass.

    """
    data['created'] = created
    if event_type in EVENT_TYPES:
        klass = EVENT_TYPES[event_type]
        data = {k: v for k, v in data.items()
                if k in klass.__dataclass_fields__}
        return klass(**data)
    raise RuntimeError('Unknown event type: %s' % event_type)
