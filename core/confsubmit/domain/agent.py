"""Data structures for agents and their roles."""

import hashlib
from enum import Enum
from typing import Any, Iterable, List, Union

from dataclasses import dataclass, field

__all__ = ('Role', 'Agent', 'User', 'System', 'agent_factory',
           'STAFF_ROLES')


class Role(Enum):
    """Roles that a user may hold in the conference."""

    AUTHOR = 'AUTHOR'
    REVIEWER = 'REVIEWER'
    EDITOR = 'EDITOR'
    CHIEF_EDITOR = 'CHIEF_EDITOR'
    ADMIN = 'ADMIN'


STAFF_ROLES = (Role.CHIEF_EDITOR, Role.EDITOR, Role.REVIEWER)
"""Roles that can be granted through member management."""


@dataclass
class Agent:
    """
    Base class for agents in the submission system.

    An agent is an actor/system that generates/is responsible for events.
    """

    native_id: str
    """Type-specific identifier for the agent."""

    def __post_init__(self) -> None:
        """Set derivative fields."""
        self.agent_type = self.__class__.get_agent_type()
        self.agent_identifier = self.get_agent_identifier()

    @classmethod
    def get_agent_type(cls) -> str:
        """Get the name of the instance's class."""
        return cls.__name__

    def get_agent_identifier(self) -> str:
        """
        Get the unique identifier for this agent instance.

        Based on both the agent type and native ID.
        """
        h = hashlib.new('sha1')
        h.update(b'%s:%s' % (self.agent_type.encode('utf-8'),
                             str(self.native_id).encode('utf-8')))
        return h.hexdigest()

    def has_role(self, *roles: Role) -> bool:
        """Agents other than users hold no roles."""
        return False

    def __eq__(self, other: Any) -> bool:
        """Equality comparison for agents based on type and identifier."""
        if not isinstance(other, self.__class__):
            return False
        return self.agent_identifier == other.agent_identifier


@dataclass
class User(Agent):
    """
    A human end user.

    This is the actor handed to every operation: an identifier plus the set
    of roles that the identity provider vouches for.
    """

    email: str = field(default_factory=str)
    name: str = field(default_factory=str)
    affiliation: str = field(default_factory=str)
    expertise: List[str] = field(default_factory=list)
    roles: List[Role] = field(default_factory=list)
    enabled: bool = field(default=True)
    """Disabled members are pending activation and cannot be assigned."""

    agent_type: str = field(default_factory=str)
    agent_identifier: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """Coerce roles, and set derivative fields."""
        super(User, self).__post_init__()
        self.native_id = str(self.native_id)
        self.roles = [Role(role) if not isinstance(role, Role) else role
                      for role in self.roles]

    def has_role(self, *roles: Role) -> bool:
        """Determine whether the user holds any of ``roles``."""
        return any(role in self.roles for role in roles)


@dataclass
class System(Agent):
    """The submission application (this application)."""

    agent_type: str = field(default_factory=str)
    agent_identifier: str = field(default_factory=str)
    username: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """Set derivative fields."""
        super(System, self).__post_init__()
        self.username = self.native_id


_agent_types = {
    User.get_agent_type(): User,
    System.get_agent_type(): System,
}


def agent_factory(**data: Any) -> Agent:
    """Instantiate a subclass of :class:`.Agent`."""
    agent_type = data.pop('agent_type', None)
    native_id = data.pop('native_id', None)
    if not agent_type or not native_id:
        raise ValueError('No such agent: %s, %s' % (agent_type, native_id))
    if agent_type not in _agent_types:
        raise ValueError(f'No such agent type: {agent_type}')
    klass = _agent_types[agent_type]
    data = {k: v for k, v in data.items() if k in klass.__dataclass_fields__}
    data.pop('agent_identifier', None)
    return klass(native_id, **data)


def coerce_roles(roles: Iterable[Union[str, Role]]) -> List[Role]:
    """Coerce role names to :class:`.Role` members, preserving order."""
    coerced: List[Role] = []
    for role in roles:
        role = role if isinstance(role, Role) else Role(role)
        if role not in coerced:
            coerced.append(role)
    return coerced
