"""
Persistence of manuscripts, members, and events in a relational database.

This service module does three main things:

1. Store and provide access to event data generated during the workflow.
2. Keep the projected state of drafts, submissions, and the member roster up
   to date, so that reads do not require replaying events.
3. Answer the queries needed to list manuscripts and review assignments.

Persisting an event and the resulting state must occur in the same
transaction. We must also verify that we are not storing events that are
stale with respect to the current state of a manuscript. To achieve this, the
caller should use the :func:`.util.transaction` context manager, and (when
committing new events) call :func:`.get_submission`, :func:`.get_draft`, or
:func:`.get_roster` with ``for_update=True``. This will lock the rows involved
(on backends that support it) until the transaction is committed or rolled
back. Beyond that, we rely on unique constraints (serial number, promoted
draft, reviewer assignment pair, member email) to reject duplicate writes.

ORM representations of the tables are located in :mod:`.store.models`. The
event log table, :class:`.DBEvent`, is defined in :mod:`.store.event`.
"""

import logging
from dataclasses import asdict
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, cast

from flask import Flask
from retry import retry
from sqlalchemy import func, or_
from sqlalchemy.exc import OperationalError

from ... import domain, serializer
from ...domain.event import Event
from ...domain.query import Scope, SubmissionQuery
from ...exceptions import ConflictError, NoSuchConference, NoSuchDraft, \
    NoSuchSubmission, NoSuchUser, SerialNumberCollision
from . import models
from .event import DBEvent
from .exceptions import StoreException, TransactionFailed, Unavailable, \
    ConsistencyError, Conflict
from .util import transaction, current_session, current_engine, db

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def handle_operational_errors(func: F) -> F:
    """Catch SQLAlchemy OperationalErrors and raise :class:`.Unavailable`."""
    @wraps(func)
    def inner(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except OperationalError as e:
            raise Unavailable('Submission database unavailable') from e
    return cast(F, inner)


# Conferences.

@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def get_conference(conference_id: Optional[str] = None,
                   year: Optional[int] = None) -> domain.Conference:
    """
    Resolve a conference by its identifier, or by the year it is held.

    Parameters
    ----------
    conference_id : str
        Takes precedence over ``year``, if provided.
    year : int

    Returns
    -------
    :class:`.domain.Conference`

    Raises
    ------
    :class:`.NoSuchConference`

    """
    session = current_session()
    row: Optional[models.Conference] = None
    if conference_id is not None:
        row = session.get(models.Conference, conference_id)
    elif year is not None:
        row = session.query(models.Conference) \
            .filter(models.Conference.year == year) \
            .order_by(models.Conference.conference_id) \
            .first()
    if row is None:
        raise NoSuchConference(f'No conference for id={conference_id},'
                               f' year={year}')
    return row.to_conference()


def add_conference(conference: domain.Conference) -> domain.Conference:
    """Register a conference."""
    session = current_session()
    session.add(models.Conference(conference_id=conference.conference_id,
                                  year=conference.year,
                                  title=conference.title,
                                  tracks=list(conference.tracks),
                                  is_active=conference.is_active))
    session.flush()
    return conference


# Users and the roster.

@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def get_user(user_id: str) -> domain.User:
    """
    Get a user by ID.

    Raises
    ------
    :class:`.NoSuchUser`

    """
    row = current_session().get(models.User, str(user_id))
    if row is None:
        raise NoSuchUser(f'No user with id {user_id}')
    return row.to_user()


def add_user(user: domain.User) -> domain.User:
    """
    Register a user directly, outside of member management.

    This is how authors who sign up through the identity provider, and the
    initial chief editor, get into the database.
    """
    session = current_session()
    row = models.User(user_id=user.native_id)
    row.update_from_user(user)
    session.add(row)
    session.flush()
    return row.to_user()


@handle_operational_errors
def get_roster(for_update: bool = False) -> domain.Roster:
    """
    Load all users, and the number of current assignments of each.

    Parameters
    ----------
    for_update : bool
        If ``True``, lock the user rows until the end of the transaction.

    Returns
    -------
    :class:`.domain.Roster`

    """
    session = current_session()
    query = session.query(models.User)
    if for_update:
        query = query.with_for_update()
    members = {row.user_id: row.to_user() for row in query}
    current = session.query(models.ReviewAssignment) \
        .filter(models.ReviewAssignment.status.in_(
            domain.ReviewAssignment.CURRENT
        ))
    return domain.Roster(members=members,
                         active_assignments=models.active_assignment_counts(
                             list(current)))


def store_roster_event(event: Event, before: domain.Roster,
                       after: domain.Roster) -> Tuple[Event, domain.Roster]:
    """
    Persist an event that changed the roster, along with the changed users.

    Must be called within a :func:`.transaction`.

    Returns
    -------
    :class:`.Event`
    :class:`.domain.Roster`

    """
    session = current_session()
    for user_id in set(before.members) - set(after.members):
        row = session.get(models.User, user_id)
        if row is None:
            raise ConsistencyError(f'User {user_id} is already gone')
        session.delete(row)

    for user_id, member in after.members.items():
        previous = before.members.get(user_id)
        if previous is not None and asdict(previous) == asdict(member):
            continue
        if previous is None:
            row = models.User(user_id=user_id, created=event.created)
            session.add(row)
        else:
            row = session.get(models.User, user_id)
            if row is None:
                raise ConsistencyError(f'User {user_id} is already gone')
        row.update_from_user(member)
        row.updated = event.created

    session.add(DBEvent.from_event(event))
    session.flush()
    return event, after


# Drafts and submissions.

@handle_operational_errors
def get_draft(draft_id: int, for_update: bool = False) -> domain.Draft:
    """
    Get the current state of a draft.

    Raises
    ------
    :class:`.NoSuchDraft`

    """
    query = current_session().query(models.Draft) \
        .filter(models.Draft.draft_id == draft_id)
    if for_update:
        query = query.with_for_update()
    row = query.first()
    if row is None:
        raise NoSuchDraft(f'No draft with id {draft_id}')
    return row.to_draft()


@handle_operational_errors
def get_submission(submission_id: int, for_update: bool = False) \
        -> domain.Submission:
    """
    Get the current state of a submission.

    Parameters
    ----------
    submission_id : int
    for_update : bool
        If ``True``, lock the submission row until the end of the
        transaction, so that concurrent writes are serialized.

    Raises
    ------
    :class:`.NoSuchSubmission`

    """
    query = current_session().query(models.Submission) \
        .filter(models.Submission.submission_id == submission_id)
    if for_update:
        query = query.with_for_update()
    row = query.first()
    if row is None:
        raise NoSuchSubmission(f'No submission with id {submission_id}')
    return row.to_submission()


@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def get_events(submission_id: Optional[int] = None,
               draft_id: Optional[int] = None) -> List[Event]:
    """Load the event history of a submission and/or a draft."""
    clauses = []
    if submission_id is not None:
        clauses.append(DBEvent.submission_id == submission_id)
    if draft_id is not None:
        clauses.append(DBEvent.draft_id == draft_id)
    if not clauses:
        return []
    rows = current_session().query(DBEvent).filter(or_(*clauses)) \
        .order_by(DBEvent.created)
    return [row.to_event() for row in rows]


@handle_operational_errors
def get_promoted_submission_id(draft_id: int) -> Optional[int]:
    """Get the ID of the submission that replaced a draft, if any."""
    row = current_session().query(models.Submission.submission_id) \
        .filter(models.Submission.draft_id == draft_id) \
        .first()
    return row[0] if row is not None else None


def serial_number_exists(serial_number: str) -> bool:
    """Determine whether a serial number is already taken."""
    return current_session().query(models.Submission.submission_id) \
        .filter(models.Submission.serial_number == serial_number) \
        .first() is not None


def store_event(event: Event, before: Optional[domain.Manuscript],
                after: domain.Manuscript) -> Tuple[Event, domain.Manuscript]:
    """
    Store an event, and update the projected state of the manuscript.

    This must be used within a :func:`.transaction`. The kind of write
    depends on the states before and after the event:

    - draft to draft: create, update, or delete the draft;
    - draft to submission: create the submission, move the authors and
      files, and delete the draft;
    - submission to submission: create, update, or delete the submission.

    Parameters
    ----------
    event : :class:`.Event`
    before : :class:`.Draft` or :class:`.Submission` or None
        The state of the manuscript before the event.
    after : :class:`.Draft` or :class:`.Submission`
        The state of the manuscript after the event.

    Returns
    -------
    :class:`.Event`
        The stored event, with its manuscript identifiers set.
    :class:`.Draft` or :class:`.Submission`
        The manuscript, with database identifiers set.

    Raises
    ------
    :class:`.SerialNumberCollision`
        Raised if the serial number of a new submission is already taken.
    :class:`.ConflictError`
        Raised if the manuscript changed underneath us, e.g. the draft was
        promoted by a concurrent request.

    """
    session = current_session()
    if isinstance(after, domain.Draft):
        after = _store_draft(before, after)
    elif isinstance(before, domain.Draft):
        after = _promote_draft(before, after)
    else:
        after = _store_submission(before, after)

    if isinstance(after, domain.Submission):
        event.submission_id = after.submission_id
    if after.draft_id is not None:
        event.draft_id = after.draft_id
    session.add(DBEvent.from_event(event))
    session.flush()
    logger.debug('Stored event %s (%s)', event.event_id, event.event_type)
    return event, after


def _store_draft(before: Optional[domain.Manuscript],
                 after: domain.Draft) -> domain.Draft:
    session = current_session()
    if before is None:
        row = models.Draft()
        row.update_from_draft(after)
        row.authors = [models.Author.from_author(a) for a in after.authors]
        row.files = [models.FileAsset.from_file(f) for f in after.files]
        session.add(row)
        session.flush()
        after.draft_id = row.draft_id
        return after

    row = session.get(models.Draft, after.draft_id)
    if row is None:
        raise ConflictError(f'Draft {after.draft_id} no longer exists')
    if after.deleted:
        session.delete(row)
        return after
    row.update_from_draft(after)
    _sync_authors_and_files(row, before, after)
    return after


def _promote_draft(draft: domain.Draft,
                   submission: domain.Submission) -> domain.Submission:
    session = current_session()
    if serial_number_exists(submission.serial_number):
        raise SerialNumberCollision(f'Serial number'
                                    f' {submission.serial_number} is taken')
    draft_row = session.get(models.Draft, draft.draft_id)
    if draft_row is None:
        raise ConflictError(f'Draft {draft.draft_id} was already promoted')

    row = models.Submission()
    row.update_from_submission(submission)
    row.authors = [models.Author.from_author(a) for a in submission.authors]
    row.files = [models.FileAsset.from_file(f) for f in submission.files]
    session.add(row)
    session.delete(draft_row)
    session.flush()
    submission.submission_id = row.submission_id
    return submission


def _store_submission(before: Optional[domain.Manuscript],
                      after: domain.Submission) -> domain.Submission:
    session = current_session()
    if after.serial_number is not None \
            and (before is None or before.serial_number is None) \
            and serial_number_exists(after.serial_number):
        raise SerialNumberCollision(f'Serial number {after.serial_number}'
                                    f' is taken')
    if before is None:
        row = models.Submission()
        row.update_from_submission(after)
        row.authors = [models.Author.from_author(a) for a in after.authors]
        row.files = [models.FileAsset.from_file(f) for f in after.files]
        session.add(row)
        session.flush()
        after.submission_id = row.submission_id
        return after

    row = session.get(models.Submission, after.submission_id)
    if row is None:
        raise ConflictError(f'Submission {after.submission_id} no longer'
                            f' exists')
    if after.deleted:
        session.delete(row)
        return after
    row.update_from_submission(after)
    _sync_authors_and_files(row, before, after)
    _sync_assignments(row, after)
    for decision in after.decisions:
        if decision.decision_id is None:
            decision_row = models.Decision.from_decision(decision)
            row.decisions.append(decision_row)
            session.flush()
            decision.decision_id = decision_row.decision_id
    return after


def _sync_authors_and_files(row: Any, before: domain.Manuscript,
                            after: domain.Manuscript) -> None:
    """Authors are replaced wholesale; file versions are only ever added."""
    if before.authors != after.authors:
        row.authors = [models.Author.from_author(a) for a in after.authors]
    stored = {(f.kind, f.version) for f in before.files}
    for asset in after.files:
        if (asset.kind, asset.version) not in stored:
            row.files.append(models.FileAsset.from_file(asset))


def _sync_assignments(row: models.Submission,
                      after: domain.Submission) -> None:
    """Upsert assignments on the (submission, reviewer) pair."""
    session = current_session()
    existing = {a.reviewer_id: a for a in row.assignments}
    for assignment in after.review_assignments:
        a_row = existing.get(assignment.reviewer_id)
        if a_row is None:
            a_row = models.ReviewAssignment(
                reviewer_id=assignment.reviewer_id,
                created=assignment.created
            )
            row.assignments.append(a_row)
            existing[assignment.reviewer_id] = a_row
        a_row.status = assignment.status
        a_row.due_at = assignment.due_at
        a_row.updated = after.updated
        review = assignment.review
        if review is not None and a_row.review is None:
            a_row.review = models.Review(
                score=review.score,
                recommendation=review.recommendation.value,
                comment_to_editor=review.comment_to_editor,
                comment_to_author=review.comment_to_author,
                submitted=review.submitted
            )
    session.flush()
    for assignment in after.review_assignments:
        assignment.assignment_id = existing[assignment.reviewer_id] \
            .assignment_id
        assignment.submission_id = row.submission_id


# Queries.

def _submission_filters(query: SubmissionQuery, conference_id: str,
                        creator_id: Optional[str]) -> list:
    filters = [models.Submission.conference_id == conference_id]
    if creator_id is not None:
        filters.append(models.Submission.creator_id == str(creator_id))
    if query.scope is Scope.EDITOR:
        filters.append(models.Submission.status != domain.Submission.DRAFT)
    if query.search:
        pattern = f'%{query.search}%'
        filters.append(or_(models.Submission.title.ilike(pattern),
                           models.Submission.serial_number.ilike(pattern)))
    return filters


@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def count_submissions_by_status(query: SubmissionQuery, conference_id: str,
                                creator_id: Optional[str] = None) \
        -> Dict[str, int]:
    """Count matching submissions in each status, ignoring paging."""
    rows = current_session() \
        .query(models.Submission.status, func.count()) \
        .filter(*_submission_filters(query, conference_id, creator_id)) \
        .group_by(models.Submission.status)
    return {status: count for status, count in rows}


@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def list_submissions(query: SubmissionQuery, conference_id: str,
                     creator_id: Optional[str] = None,
                     paginate: bool = True) \
        -> Tuple[List[domain.Submission], int]:
    """
    Get submissions to a conference that match a query.

    Parameters
    ----------
    query : :class:`.SubmissionQuery`
    conference_id : str
    creator_id : str or None
        If provided, only submissions created by this user are included.
    paginate : bool
        If ``False``, all matching submissions are returned.

    Returns
    -------
    list
        Items are :class:`.domain.Submission` instances, most recently
        created first.
    int
        The total number of matching submissions.

    """
    filters = _submission_filters(query, conference_id, creator_id)
    if query.status:
        filters.append(models.Submission.status == query.status)
    rows = current_session().query(models.Submission).filter(*filters)
    total = rows.count()
    rows = rows.order_by(models.Submission.created.desc(),
                         models.Submission.submission_id.desc())
    if paginate:
        rows = rows.offset(query.offset).limit(query.limit)
    return [row.to_submission() for row in rows], total


@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def list_drafts(creator_id: str, conference_id: str,
                search: Optional[str] = None) -> List[domain.Draft]:
    """Get the drafts that a user has started for a conference."""
    rows = current_session().query(models.Draft) \
        .filter(models.Draft.creator_id == str(creator_id)) \
        .filter(models.Draft.conference_id == conference_id)
    if search:
        rows = rows.filter(models.Draft.title.ilike(f'%{search}%'))
    rows = rows.order_by(models.Draft.created.desc())
    return [row.to_draft() for row in rows]


@retry(Unavailable, tries=3, delay=1)
@handle_operational_errors
def get_assignments(reviewer_id: Optional[str] = None,
                    status: Optional[str] = None) \
        -> List[Tuple[domain.ReviewAssignment, domain.Submission]]:
    """
    Get review assignments, along with the submissions they concern.

    Parameters
    ----------
    reviewer_id : str or None
        If provided, only assignments held by this reviewer are included.
    status : str or None
        If provided, only assignments in this status are included.

    Returns
    -------
    list
        Items are (:class:`.ReviewAssignment`, :class:`.Submission`) tuples,
        soonest due first.

    """
    rows = current_session().query(models.ReviewAssignment)
    if reviewer_id is not None:
        rows = rows.filter(
            models.ReviewAssignment.reviewer_id == str(reviewer_id)
        )
    if status is not None:
        rows = rows.filter(models.ReviewAssignment.status == status)
    rows = rows.order_by(models.ReviewAssignment.due_at,
                         models.ReviewAssignment.assignment_id)
    return [(row.to_assignment(), row.submission.to_submission())
            for row in rows]


def init_app(app: Flask) -> None:
    """Register the database with a Flask application."""
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {
        'json_serializer': serializer.dumps,
        'json_deserializer': serializer.loads
    })
    db.init_app(app)


def create_all() -> None:
    """Create all tables in the database."""
    models.Base.metadata.create_all(current_engine())


def drop_all() -> None:
    """Drop all tables in the database."""
    models.Base.metadata.drop_all(current_engine())
