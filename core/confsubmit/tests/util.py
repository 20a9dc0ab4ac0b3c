"""Fixtures shared by the test suites."""

from typing import List, Optional

from mimesis import Person

from ..domain import User, Role, Conference, Author, Agreements
from ..services import store
from ..services.store.tests.util import in_memory_db

__all__ = ('in_memory_db', 'make_user', 'make_authors', 'all_agreements',
           'add_conference', 'add_staff', 'CONFERENCE_ID')

CONFERENCE_ID = 'conf-2025'

_person = Person()


def make_user(native_id: str, *roles: Role, email: Optional[str] = None,
              enabled: bool = True) -> User:
    """Generate a user with a plausible name and the given roles."""
    return User(native_id,
                email=email or f'user{native_id}@example.org',
                name=_person.full_name(),
                affiliation='University of Examples',
                expertise=['databases'],
                roles=list(roles),
                enabled=enabled)


def make_authors(count: int = 2) -> List[Author]:
    """Generate authors; the first one is the corresponding author."""
    return [Author(name=_person.full_name(),
                   email=f'author{i}@example.org',
                   affiliation='University of Examples',
                   is_corresponding=(i == 0))
            for i in range(count)]


def all_agreements() -> Agreements:
    return Agreements(original_work=True, no_conflict_of_interest=True,
                      consent_to_publish=True)


def add_conference(conference_id: str = CONFERENCE_ID, year: int = 2025,
                   tracks: Optional[List[str]] = None,
                   is_active: bool = True) -> Conference:
    """Register a conference; must be called within an app context."""
    with store.transaction():
        return store.add_conference(Conference(
            conference_id=conference_id,
            year=year,
            title='Conference on Examples',
            tracks=tracks or ['research', 'industry'],
            is_active=is_active
        ))


def add_staff(*users: User) -> List[User]:
    """Register users directly; must be called within an app context."""
    with store.transaction():
        return [store.add_user(user) for user in users]
