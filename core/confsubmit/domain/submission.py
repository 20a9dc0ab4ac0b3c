"""Data structures for manuscripts: drafts and submissions."""

from typing import Optional, Dict, List, Union
from datetime import datetime
from enum import Enum

from dataclasses import dataclass, field

from .agent import Agent, agent_factory
from .meta import FileKind
from .util import get_tzaware_utc_now, list_coerce


@dataclass
class Author:
    """Represents an author of a manuscript."""

    name: str = field(default_factory=str)
    email: str = field(default_factory=str)
    affiliation: str = field(default_factory=str)
    is_corresponding: bool = field(default=False)
    order: int = field(default=0)

    def __post_init__(self) -> None:
        """Normalize the email address."""
        self.email = self.email.strip().lower()


@dataclass
class Agreements:
    """Declarations that the submitter must make before submission."""

    original_work: bool = field(default=False)
    no_conflict_of_interest: bool = field(default=False)
    consent_to_publish: bool = field(default=False)

    @property
    def all_given(self) -> bool:
        """All three declarations are required to submit."""
        return self.original_work and self.no_conflict_of_interest \
            and self.consent_to_publish


@dataclass
class FileAsset:
    """A single version of a file attached to a manuscript."""

    kind: FileKind
    version: int
    path: str
    checksum: str
    size: int = field(default=0)
    mime_type: str = field(default_factory=str)
    original_name: str = field(default_factory=str)
    created: datetime = field(default_factory=get_tzaware_utc_now)

    def __post_init__(self) -> None:
        """Make sure that :attr:`.kind` is a :class:`.FileKind`."""
        if not isinstance(self.kind, FileKind):
            self.kind = FileKind(self.kind)


class Recommendation(Enum):
    """Recommendations that a reviewer can make."""

    ACCEPT = 'ACCEPT'
    MINOR_REVISION = 'MINOR_REVISION'
    MAJOR_REVISION = 'MAJOR_REVISION'
    REJECT = 'REJECT'


@dataclass
class Review:
    """A reviewer's evaluation of a submission."""

    score: int
    recommendation: Recommendation
    comment_to_editor: str = field(default_factory=str)
    comment_to_author: str = field(default_factory=str)
    submitted: Optional[datetime] = field(default=None)
    """Once set, the review is final and can no longer be changed."""

    def __post_init__(self) -> None:
        """Make sure that :attr:`.recommendation` is an enum member."""
        if not isinstance(self.recommendation, Recommendation):
            self.recommendation = Recommendation(self.recommendation)

    @property
    def is_submitted(self) -> bool:
        return self.submitted is not None


@dataclass
class ReviewAssignment:
    """The pairing of a reviewer with a submission."""

    PENDING = 'PENDING'
    """The reviewer has not yet responded to the assignment."""

    ACCEPTED = 'ACCEPTED'
    """The reviewer has agreed to review the submission."""

    DECLINED = 'DECLINED'
    """The reviewer has declined the assignment."""

    SUBMITTED = 'SUBMITTED'
    """The reviewer has submitted their review."""

    CURRENT = (PENDING, ACCEPTED)
    """Assignments in these states count against a reviewer's capacity."""

    reviewer_id: str
    due_at: Optional[datetime] = field(default=None)
    status: str = field(default=PENDING)
    created: datetime = field(default_factory=get_tzaware_utc_now)
    review: Optional[Review] = field(default=None)
    assignment_id: Optional[int] = field(default=None)
    submission_id: Optional[int] = field(default=None)

    def __post_init__(self) -> None:
        """Coerce the review, if it was passed as a dict."""
        self.reviewer_id = str(self.reviewer_id)
        if isinstance(self.review, dict):
            self.review = Review(**self.review)

    @property
    def is_current(self) -> bool:
        """The reviewer still owes us something on this assignment."""
        return self.status in self.CURRENT

    @property
    def is_complete(self) -> bool:
        """A review has been submitted for this assignment."""
        return self.review is not None and self.review.is_submitted


class DecisionResult(Enum):
    """Editorial rulings."""

    ACCEPT = 'ACCEPT'
    REVISE = 'REVISE'
    REJECT = 'REJECT'


@dataclass
class Decision:
    """An editorial ruling recorded against a submission."""

    decided_by: str
    result: DecisionResult
    note: str = field(default_factory=str)
    decided: datetime = field(default_factory=get_tzaware_utc_now)
    anomalous: bool = field(default=False)
    """Set when a submission is accepted without any completed reviews."""

    decision_id: Optional[int] = field(default=None)

    def __post_init__(self) -> None:
        """Make sure that :attr:`.result` is an enum member."""
        self.decided_by = str(self.decided_by)
        if not isinstance(self.result, DecisionResult):
            self.result = DecisionResult(self.result)


class ManuscriptMixin:
    """Behavior shared by :class:`.Draft` and :class:`.Submission`."""

    authors: List[Author]
    files: List[FileAsset]
    creator: Agent

    @property
    def corresponding_authors(self) -> List[Author]:
        return [author for author in self.authors if author.is_corresponding]

    @property
    def corresponding_author(self) -> Optional[Author]:
        """The single author designated as the primary contact."""
        corresponding = self.corresponding_authors
        if len(corresponding) == 1:
            return corresponding[0]
        return None

    @property
    def current_files(self) -> Dict[FileKind, FileAsset]:
        """The highest version of each kind of file."""
        current: Dict[FileKind, FileAsset] = {}
        for asset in self.files:
            if asset.kind not in current \
                    or asset.version > current[asset.kind].version:
                current[asset.kind] = asset
        return current

    def next_file_version(self, kind: FileKind) -> int:
        """Versions for a kind of file start at 1 and only increase."""
        versions = [asset.version for asset in self.files
                    if asset.kind == kind]
        return max(versions, default=0) + 1

    def is_owned_by(self, agent: Agent) -> bool:
        return self.creator is not None and agent is not None \
            and str(self.creator.native_id) == str(agent.native_id)

    def _coerce_content(self) -> None:
        if self.creator and isinstance(self.creator, dict):
            self.creator = agent_factory(**self.creator)
        self.authors = list_coerce(Author, self.authors)
        self.files = list_coerce(FileAsset, self.files)
        if isinstance(self.agreements, dict):
            self.agreements = Agreements(**self.agreements)


@dataclass
class Draft(ManuscriptMixin):
    """
    A manuscript that has not yet been submitted.

    A draft is owned exclusively by its creator. It is replaced by a
    :class:`.Submission` when it is promoted.
    """

    DEFAULT_TITLE = 'Untitled draft'

    creator: Agent
    conference_id: str
    title: str = field(default=DEFAULT_TITLE)
    abstract: str = field(default_factory=str)
    track: Optional[str] = field(default=None)
    paper_type: Optional[str] = field(default=None)
    keywords: List[str] = field(default_factory=list)
    authors: List[Author] = field(default_factory=list)
    files: List[FileAsset] = field(default_factory=list)
    agreements: Agreements = field(default_factory=Agreements)
    draft_id: Optional[int] = field(default=None)
    created: Optional[datetime] = field(default=None)
    updated: Optional[datetime] = field(default=None)
    deleted: bool = field(default=False)

    def __post_init__(self) -> None:
        """Coerce nested data."""
        self._coerce_content()


@dataclass
class Submission(ManuscriptMixin):
    """Represents a manuscript that has entered the review workflow."""

    DRAFT = 'DRAFT'
    SUBMITTED = 'SUBMITTED'
    UNDER_REVIEW = 'UNDER_REVIEW'
    REVISION_REQUIRED = 'REVISION_REQUIRED'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    WITHDRAWN = 'WITHDRAWN'

    STATUSES = (DRAFT, SUBMITTED, UNDER_REVIEW, REVISION_REQUIRED, ACCEPTED,
                REJECTED, WITHDRAWN)

    TRANSITIONS = {
        DRAFT: (SUBMITTED,),
        SUBMITTED: (UNDER_REVIEW, WITHDRAWN),
        UNDER_REVIEW: (UNDER_REVIEW, REVISION_REQUIRED, ACCEPTED, REJECTED,
                       WITHDRAWN),
        REVISION_REQUIRED: (SUBMITTED, WITHDRAWN),
        ACCEPTED: (),
        REJECTED: (),
        WITHDRAWN: (),
    }
    """Permitted lifecycle edges, keyed by the current status."""

    EDITABLE = (DRAFT, REVISION_REQUIRED)
    DELETABLE = (DRAFT, WITHDRAWN)
    TERMINAL = (ACCEPTED, REJECTED, WITHDRAWN)

    creator: Agent
    conference_id: str
    title: str = field(default_factory=str)
    abstract: str = field(default_factory=str)
    track: Optional[str] = field(default=None)
    paper_type: Optional[str] = field(default=None)
    keywords: List[str] = field(default_factory=list)
    status: str = field(default=DRAFT)
    serial_number: Optional[str] = field(default=None)
    """Assigned at first submission; never regenerated."""

    submitted: Optional[datetime] = field(default=None)
    decision_note: Optional[str] = field(default=None)
    authors: List[Author] = field(default_factory=list)
    files: List[FileAsset] = field(default_factory=list)
    agreements: Agreements = field(default_factory=Agreements)
    review_assignments: List[ReviewAssignment] = field(default_factory=list)
    decisions: List[Decision] = field(default_factory=list)
    submission_id: Optional[int] = field(default=None)
    draft_id: Optional[int] = field(default=None)
    """The draft that this submission was promoted from, if any."""

    created: Optional[datetime] = field(default=None)
    updated: Optional[datetime] = field(default=None)
    deleted: bool = field(default=False)

    def __post_init__(self) -> None:
        """Coerce nested data."""
        self._coerce_content()
        self.review_assignments = list_coerce(ReviewAssignment,
                                              self.review_assignments)
        self.decisions = list_coerce(Decision, self.decisions)

    @property
    def is_editable(self) -> bool:
        return self.status in self.EDITABLE

    @property
    def is_deletable(self) -> bool:
        return self.status in self.DELETABLE

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL

    @property
    def latest_decision(self) -> Optional[Decision]:
        """The most recent decision determines the current status."""
        if not self.decisions:
            return None
        return max(self.decisions, key=lambda decision: decision.decided)

    @property
    def completed_reviews(self) -> List[Review]:
        return [assignment.review for assignment in self.review_assignments
                if assignment.is_complete and assignment.review is not None]

    def can_transition_to(self, status: str) -> bool:
        """Determine whether ``status`` is reachable from the current one."""
        return status in self.TRANSITIONS.get(self.status, ())

    def get_assignment(self, reviewer_id: str) -> Optional[ReviewAssignment]:
        """Get the assignment for a reviewer, if there is one."""
        for assignment in self.review_assignments:
            if assignment.reviewer_id == str(reviewer_id):
                return assignment
        return None


Manuscript = Union[Draft, Submission]
"""A manuscript is either a draft or a submission, never both."""
