"""SQLAlchemy ORM classes for the submission database."""

from typing import List

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, \
    UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from ... import domain
from .util import FriendlyJSON, UTCDateTime

Base = declarative_base()


class Conference(Base):    # type: ignore
    """A conference that accepts manuscripts."""

    __tablename__ = 'conferences'

    conference_id = Column(String(40), primary_key=True)
    year = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False, default='')
    tracks = Column(FriendlyJSON)
    is_active = Column(Boolean, nullable=False, default=True)

    def to_conference(self) -> domain.Conference:
        return domain.Conference(conference_id=self.conference_id,
                                 year=self.year,
                                 title=self.title,
                                 tracks=list(self.tracks or []),
                                 is_active=bool(self.is_active))


class UserRole(Base):    # type: ignore
    """A role held by a user."""

    __tablename__ = 'user_roles'

    user_id = Column(ForeignKey('users.user_id', ondelete='CASCADE'),
                     primary_key=True)
    role = Column(String(32), primary_key=True)


class User(Base):    # type: ignore
    """A registered user, who may hold several roles."""

    __tablename__ = 'users'

    user_id = Column(String(40), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, default='')
    affiliation = Column(String(255), nullable=False, default='')
    expertise = Column(FriendlyJSON)
    enabled = Column(Boolean, nullable=False, default=True)
    created = Column(UTCDateTime)
    updated = Column(UTCDateTime)

    roles = relationship('UserRole', cascade='all, delete-orphan',
                         passive_deletes=True, lazy='joined')

    def to_user(self) -> domain.User:
        return domain.User(
            self.user_id,
            email=self.email,
            name=self.name,
            affiliation=self.affiliation,
            expertise=list(self.expertise or []),
            roles=sorted([row.role for row in self.roles]),
            enabled=bool(self.enabled)
        )

    def update_from_user(self, user: domain.User) -> None:
        self.email = user.email
        self.name = user.name
        self.affiliation = user.affiliation
        self.expertise = list(user.expertise)
        self.enabled = user.enabled
        current = {row.role: row for row in self.roles}
        wanted = [role.value for role in user.roles]
        for role, row in current.items():
            if role not in wanted:
                self.roles.remove(row)
        for role in wanted:
            if role not in current:
                self.roles.append(UserRole(role=role))


class _ContentMixin:
    """Columns shared by drafts and submissions."""

    conference_id = Column(String(40), nullable=False, index=True)
    creator = Column(FriendlyJSON)
    creator_id = Column(String(40), nullable=False, index=True)
    title = Column(Text)
    abstract = Column(Text)
    track = Column(String(255))
    paper_type = Column(String(255))
    keywords = Column(FriendlyJSON)
    original_work = Column(Boolean, nullable=False, default=False)
    no_conflict_of_interest = Column(Boolean, nullable=False, default=False)
    consent_to_publish = Column(Boolean, nullable=False, default=False)
    created = Column(UTCDateTime)
    updated = Column(UTCDateTime)

    def _content(self) -> dict:
        return dict(
            creator=domain.agent_factory(**dict(self.creator))
            if isinstance(self.creator, dict) else self.creator,
            conference_id=self.conference_id,
            title=self.title or '',
            abstract=self.abstract or '',
            track=self.track,
            paper_type=self.paper_type,
            keywords=list(self.keywords or []),
            agreements=domain.Agreements(
                original_work=bool(self.original_work),
                no_conflict_of_interest=bool(self.no_conflict_of_interest),
                consent_to_publish=bool(self.consent_to_publish)
            ),
            created=self.created,
            updated=self.updated
        )

    def _update_content(self, manuscript: domain.Manuscript) -> None:
        self.conference_id = manuscript.conference_id
        self.creator = manuscript.creator
        self.creator_id = str(manuscript.creator.native_id)
        self.title = manuscript.title
        self.abstract = manuscript.abstract
        self.track = manuscript.track
        self.paper_type = manuscript.paper_type
        self.keywords = list(manuscript.keywords)
        self.original_work = manuscript.agreements.original_work
        self.no_conflict_of_interest = \
            manuscript.agreements.no_conflict_of_interest
        self.consent_to_publish = manuscript.agreements.consent_to_publish
        self.created = manuscript.created
        self.updated = manuscript.updated


class Author(Base):    # type: ignore
    """An author of a draft or a submission."""

    __tablename__ = 'authors'

    author_id = Column(Integer, primary_key=True, autoincrement=True)
    draft_id = Column(ForeignKey('drafts.draft_id', ondelete='CASCADE'),
                      index=True)
    submission_id = Column(
        ForeignKey('submissions.submission_id', ondelete='CASCADE'),
        index=True
    )
    order = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False, default='')
    email = Column(String(255), nullable=False)
    affiliation = Column(String(255), nullable=False, default='')
    is_corresponding = Column(Boolean, nullable=False, default=False)

    def to_author(self) -> domain.Author:
        return domain.Author(name=self.name, email=self.email,
                             affiliation=self.affiliation,
                             is_corresponding=bool(self.is_corresponding),
                             order=self.order)

    @classmethod
    def from_author(cls, author: domain.Author) -> 'Author':
        return cls(order=author.order, name=author.name, email=author.email,
                   affiliation=author.affiliation,
                   is_corresponding=author.is_corresponding)


class FileAsset(Base):    # type: ignore
    """A version of a file attached to a draft or a submission."""

    __tablename__ = 'file_assets'
    __table_args__ = (
        UniqueConstraint('draft_id', 'kind', 'version'),
        UniqueConstraint('submission_id', 'kind', 'version'),
    )

    file_id = Column(Integer, primary_key=True, autoincrement=True)
    draft_id = Column(ForeignKey('drafts.draft_id', ondelete='CASCADE'),
                      index=True)
    submission_id = Column(
        ForeignKey('submissions.submission_id', ondelete='CASCADE'),
        index=True
    )
    kind = Column(String(32), nullable=False)
    version = Column(Integer, nullable=False)
    path = Column(String(1024), nullable=False)
    checksum = Column(String(64), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String(255), nullable=False, default='')
    original_name = Column(String(255), nullable=False, default='')
    created = Column(UTCDateTime)

    def to_file(self) -> domain.FileAsset:
        return domain.FileAsset(kind=self.kind, version=self.version,
                                path=self.path, checksum=self.checksum,
                                size=self.size, mime_type=self.mime_type,
                                original_name=self.original_name,
                                created=self.created)

    @classmethod
    def from_file(cls, asset: domain.FileAsset) -> 'FileAsset':
        return cls(kind=asset.kind.value, version=asset.version,
                   path=asset.path, checksum=asset.checksum, size=asset.size,
                   mime_type=asset.mime_type,
                   original_name=asset.original_name, created=asset.created)


class Draft(_ContentMixin, Base):    # type: ignore
    """A manuscript that has not yet been submitted."""

    __tablename__ = 'drafts'

    draft_id = Column(Integer, primary_key=True, autoincrement=True)

    authors = relationship('Author', order_by='Author.order',
                           cascade='all, delete-orphan')
    files = relationship('FileAsset', order_by='FileAsset.version',
                         cascade='all, delete-orphan')

    def to_draft(self) -> domain.Draft:
        return domain.Draft(
            draft_id=self.draft_id,
            authors=[row.to_author() for row in self.authors],
            files=[row.to_file() for row in self.files],
            **self._content()
        )

    def update_from_draft(self, draft: domain.Draft) -> None:
        self._update_content(draft)


class Submission(_ContentMixin, Base):    # type: ignore
    """A manuscript in the review workflow."""

    __tablename__ = 'submissions'

    submission_id = Column(Integer, primary_key=True, autoincrement=True)
    draft_id = Column(Integer, unique=True)
    """The draft that this submission replaced; at most one per draft."""

    status = Column(String(32), nullable=False, index=True)
    serial_number = Column(String(32), unique=True)
    submitted = Column(UTCDateTime)
    decision_note = Column(Text)

    authors = relationship('Author', order_by='Author.order',
                           cascade='all, delete-orphan')
    files = relationship('FileAsset', order_by='FileAsset.version',
                         cascade='all, delete-orphan')
    assignments = relationship('ReviewAssignment',
                               order_by='ReviewAssignment.assignment_id',
                               cascade='all, delete-orphan')
    decisions = relationship('Decision', order_by='Decision.decision_id',
                             cascade='all, delete-orphan')

    def to_submission(self) -> domain.Submission:
        return domain.Submission(
            submission_id=self.submission_id,
            draft_id=self.draft_id,
            status=self.status,
            serial_number=self.serial_number,
            submitted=self.submitted,
            decision_note=self.decision_note,
            authors=[row.to_author() for row in self.authors],
            files=[row.to_file() for row in self.files],
            review_assignments=[row.to_assignment()
                                for row in self.assignments],
            decisions=[row.to_decision() for row in self.decisions],
            **self._content()
        )

    def update_from_submission(self, submission: domain.Submission) -> None:
        self._update_content(submission)
        self.draft_id = submission.draft_id
        self.status = submission.status
        self.serial_number = submission.serial_number
        self.submitted = submission.submitted
        self.decision_note = submission.decision_note


class Review(Base):    # type: ignore
    """A reviewer's evaluation; at most one per assignment."""

    __tablename__ = 'reviews'

    review_id = Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = Column(
        ForeignKey('review_assignments.assignment_id', ondelete='CASCADE'),
        unique=True, nullable=False
    )
    score = Column(Integer, nullable=False)
    recommendation = Column(String(32), nullable=False)
    comment_to_editor = Column(Text)
    comment_to_author = Column(Text)
    submitted = Column(UTCDateTime)

    def to_review(self) -> domain.Review:
        return domain.Review(score=self.score,
                             recommendation=self.recommendation,
                             comment_to_editor=self.comment_to_editor or '',
                             comment_to_author=self.comment_to_author or '',
                             submitted=self.submitted)


class ReviewAssignment(Base):    # type: ignore
    """The pairing of a reviewer with a submission."""

    __tablename__ = 'review_assignments'
    __table_args__ = (UniqueConstraint('submission_id', 'reviewer_id'),)

    assignment_id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        ForeignKey('submissions.submission_id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    reviewer_id = Column(String(40), nullable=False, index=True)
    status = Column(String(32), nullable=False)
    due_at = Column(UTCDateTime)
    created = Column(UTCDateTime)
    updated = Column(UTCDateTime)

    review = relationship('Review', uselist=False,
                          cascade='all, delete-orphan')
    submission = relationship('Submission', viewonly=True)

    def to_assignment(self) -> domain.ReviewAssignment:
        return domain.ReviewAssignment(
            reviewer_id=self.reviewer_id,
            due_at=self.due_at,
            status=self.status,
            created=self.created,
            review=self.review.to_review() if self.review else None,
            assignment_id=self.assignment_id,
            submission_id=self.submission_id
        )


class Decision(Base):    # type: ignore
    """An editorial decision. Rows are only ever added."""

    __tablename__ = 'decisions'

    decision_id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(
        ForeignKey('submissions.submission_id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    decided_by = Column(String(40), nullable=False, index=True)
    result = Column(String(16), nullable=False)
    note = Column(Text)
    anomalous = Column(Boolean, nullable=False, default=False)
    decided = Column(UTCDateTime)

    def to_decision(self) -> domain.Decision:
        return domain.Decision(decided_by=self.decided_by,
                               result=self.result,
                               note=self.note or '',
                               decided=self.decided,
                               anomalous=bool(self.anomalous),
                               decision_id=self.decision_id)

    @classmethod
    def from_decision(cls, decision: domain.Decision) -> 'Decision':
        return cls(decided_by=decision.decided_by,
                   result=decision.result.value,
                   note=decision.note,
                   anomalous=decision.anomalous,
                   decided=decision.decided)


def active_assignment_counts(rows: List[ReviewAssignment]) -> dict:
    """Count PENDING or ACCEPTED assignments per reviewer."""
    counts: dict = {}
    for row in rows:
        if row.status in domain.ReviewAssignment.CURRENT:
            counts[row.reviewer_id] = counts.get(row.reviewer_id, 0) + 1
    return counts
