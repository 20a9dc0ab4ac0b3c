"""
Events that change the roster of conference members.

These events apply to the :class:`.Roster` as a whole rather than to a
single manuscript, since the policies that they enforce (a unique email
address per member, at least one enabled chief editor) span all members.
"""

import uuid
from typing import List, Any

from dataclasses import field

from ...exceptions import ValidationError, StateError, PolicyError, \
    NoSuchUser
from ..agent import Role, User, STAFF_ROLES, coerce_roles
from ..roster import Roster
from . import validators
from .base import Event
from .util import dataclass

MANAGER_ROLES = (Role.CHIEF_EDITOR, Role.ADMIN)


@dataclass()
class MemberEvent(Event):
    """Base for events that concern a single member."""

    user_id: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """User identifiers are strings."""
        super(MemberEvent, self).__post_init__()
        self.user_id = str(self.user_id)

    def _member(self, roster: Roster) -> User:
        member = roster.get(self.user_id)
        if member is None:
            raise NoSuchUser(f'No user with id {self.user_id}')
        return member

    def _not_self(self, message: str) -> None:
        if self.creator is not None \
                and str(self.creator.native_id) == self.user_id:
            raise PolicyError(self, message)


def _roles_are_grantable(event: Event, roles: List[Role]) -> None:
    if not roles:
        raise ValidationError(event, 'At least one role is required')
    for role in roles:
        if role not in STAFF_ROLES and role is not Role.AUTHOR:
            raise ValidationError(event, f'Role {role.value} cannot be'
                                         f' granted here')


@dataclass()
class AddMember(MemberEvent):
    """Add a member of staff (chief editor, editor, or reviewer)."""

    NAME = "add member"
    NAMED = "member added"

    REQUIRED_ROLES = MANAGER_ROLES

    email: str = field(default_factory=str)
    name: str = field(default_factory=str)
    affiliation: str = field(default_factory=str)
    expertise: List[str] = field(default_factory=list)
    roles: List[Any] = field(default_factory=list)
    enabled: bool = field(default=True)

    def __post_init__(self) -> None:
        """Normalize data, and generate an identifier for the new member."""
        super(AddMember, self).__post_init__()
        self.email = self.email.strip().lower()
        if isinstance(self.expertise, str):
            self.expertise = self.expertise.split(',')
        self.expertise = [e.strip() for e in self.expertise if e.strip()]
        try:
            self.roles = coerce_roles(self.roles)
        except ValueError as e:
            raise ValidationError(self, str(e)) from e
        if not self.user_id:
            self.user_id = uuid.uuid4().hex

    def validate(self, roster: Roster) -> None:
        """All fields are required, and the email must be unused."""
        for key in ('name', 'affiliation'):
            if not getattr(self, key).strip():
                raise ValidationError(self, f'{key} is required')
        if not validators.EMAIL.match(self.email):
            raise ValidationError(self, 'A valid email is required')
        if not self.expertise:
            raise ValidationError(self, 'At least one area of expertise is'
                                        ' required')
        _roles_are_grantable(self, self.roles)
        if roster.find_by_email(self.email) is not None:
            raise PolicyError(self, f'Email {self.email} is already in use')

    def project(self, roster: Roster) -> Roster:
        """Add the member to the roster."""
        roster.members[self.user_id] = User(
            self.user_id,
            email=self.email,
            name=self.name.strip(),
            affiliation=self.affiliation.strip(),
            expertise=self.expertise,
            roles=self.roles,
            enabled=self.enabled
        )
        return roster


@dataclass()
class ChangeMemberRoles(MemberEvent):
    """Replace the roles held by a member."""

    NAME = "change member roles"
    NAMED = "member roles changed"

    REQUIRED_ROLES = MANAGER_ROLES

    roles: List[Any] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Coerce role names."""
        super(ChangeMemberRoles, self).__post_init__()
        try:
            self.roles = coerce_roles(self.roles)
        except ValueError as e:
            raise ValidationError(self, str(e)) from e

    def validate(self, roster: Roster) -> None:
        """The last chief editor cannot be demoted."""
        self._member(roster)
        _roles_are_grantable(self, self.roles)
        if Role.CHIEF_EDITOR not in self.roles \
                and roster.is_last_chief_editor(self.user_id):
            raise PolicyError(self, 'Cannot remove the last chief editor')

    def project(self, roster: Roster) -> Roster:
        """Replace the roles of the member; administrators stay so."""
        member = self._member(roster)
        roles = list(self.roles)
        if Role.ADMIN in member.roles and Role.ADMIN not in roles:
            roles.append(Role.ADMIN)
        member.roles = roles
        return roster


@dataclass()
class SetMemberStatus(MemberEvent):
    """Enable a member, or put them back to pending activation."""

    NAME = "set member status"
    NAMED = "member status set"

    REQUIRED_ROLES = (Role.EDITOR, Role.CHIEF_EDITOR, Role.ADMIN)

    enabled: bool = field(default=True)

    def validate(self, roster: Roster) -> None:
        """Members cannot change their own status."""
        self._member(roster)
        self._not_self('Cannot change your own status')
        if not self.enabled and roster.is_last_chief_editor(self.user_id):
            raise PolicyError(self, 'Cannot disable the last chief editor')

    def project(self, roster: Roster) -> Roster:
        """Set the status of the member."""
        self._member(roster).enabled = self.enabled
        return roster


@dataclass()
class DeleteMember(MemberEvent):
    """
    Remove a member from the roster.

    Members who still owe reviews (PENDING or ACCEPTED assignments) cannot be
    removed. Completed assignments, reviews and decisions are kept.
    """

    NAME = "delete member"
    NAMED = "member deleted"

    REQUIRED_ROLES = MANAGER_ROLES

    def validate(self, roster: Roster) -> None:
        """The last chief editor cannot be removed."""
        self._member(roster)
        self._not_self('Cannot delete yourself')
        if roster.is_last_chief_editor(self.user_id):
            raise PolicyError(self, 'Cannot remove the last chief editor')
        if roster.has_active_assignments(self.user_id):
            raise StateError(self, 'Member has outstanding review'
                                   ' assignments')

    def project(self, roster: Roster) -> Roster:
        """Drop the member from the roster."""
        roster.members.pop(self.user_id)
        roster.active_assignments.pop(self.user_id, None)
        return roster
