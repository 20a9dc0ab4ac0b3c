"""Typed queries over submissions."""

from enum import Enum
from typing import Dict, Generic, List, Optional, TypeVar

from dataclasses import dataclass, field

T = TypeVar('T')

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 10


class Scope(Enum):
    """Whose manuscripts a listing is drawn from."""

    AUTHOR = 'author'
    """The actor's own drafts and submissions."""

    EDITOR = 'editor'
    """Every non-draft submission to the conference."""


@dataclass
class SubmissionQuery:
    """
    Filters for listing submissions.

    Parameters
    ----------
    scope : :class:`.Scope`
        Listings in the editor scope never include drafts.
    status : str or None
        Limit to submissions in this status. ``DRAFT`` in the author scope
        selects drafts as well as submissions that are still in DRAFT.
    conference_id : str or None
        Takes precedence over ``year``.
    year : int or None
        Select the conference held in this year.
    search : str or None
        Case-insensitive match against the title or the serial number.
    page : int
        One-based; values below 1 are clamped to 1.
    limit : int
        Page size; clamped to 1..50.

    """

    scope: Scope = field(default=Scope.AUTHOR)
    status: Optional[str] = field(default=None)
    conference_id: Optional[str] = field(default=None)
    year: Optional[int] = field(default=None)
    search: Optional[str] = field(default=None)
    page: int = field(default=1)
    limit: int = field(default=DEFAULT_PAGE_SIZE)

    def __post_init__(self) -> None:
        """Clamp paging parameters, and normalize filters."""
        if not isinstance(self.scope, Scope):
            self.scope = Scope(self.scope)
        self.page = max(1, int(self.page))
        self.limit = max(1, min(MAX_PAGE_SIZE, int(self.limit)))
        if self.status is not None:
            self.status = self.status.upper()
            if self.status == 'ALL':
                self.status = None
        if self.search is not None:
            self.search = self.search.strip() or None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class Page(Generic[T]):
    """A single page of query results."""

    items: List[T]
    total: int
    page: int
    limit: int
    stats: Dict[str, int] = field(default_factory=dict)
    """Number of matching manuscripts in each status, ignoring paging."""

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1
