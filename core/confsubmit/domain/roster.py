"""The roster of conference members."""

from datetime import datetime
from typing import Dict, List, Optional

from dataclasses import dataclass, field

from .agent import Role, User


@dataclass
class Roster:
    """
    All known users, with enough context to enforce roster-wide policy.

    Policies like "there must always be an enabled chief editor" and "email
    addresses are unique" cannot be checked against a single user, so member
    changes are applied to the roster as a whole.
    """

    members: Dict[str, User] = field(default_factory=dict)
    active_assignments: Dict[str, int] = field(default_factory=dict)
    """Number of PENDING or ACCEPTED review assignments, by user ID."""

    updated: Optional[datetime] = field(default=None)

    def get(self, user_id: str) -> Optional[User]:
        return self.members.get(str(user_id))

    def find_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for member in self.members.values():
            if member.email == email:
                return member
        return None

    @property
    def chief_editors(self) -> List[User]:
        """Enabled members holding the CHIEF_EDITOR role."""
        return [member for member in self.members.values()
                if member.enabled and member.has_role(Role.CHIEF_EDITOR)]

    def is_last_chief_editor(self, user_id: str) -> bool:
        """Would losing ``user_id`` leave the roster without a chief editor?"""
        chiefs = self.chief_editors
        return len(chiefs) == 1 and chiefs[0].native_id == str(user_id)

    def has_active_assignments(self, user_id: str) -> bool:
        return self.active_assignments.get(str(user_id), 0) > 0
