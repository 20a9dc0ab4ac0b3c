"""Core persistence methods for manuscripts, members, and their events."""

import logging
from typing import List, Optional, Tuple, Dict

from flask import Flask, current_app, has_app_context
from retry.api import retry_call

from .domain import Draft, Submission, Manuscript, Roster, Page, \
    SubmissionQuery, Scope, ReviewAssignment, ReviewerWorkload, \
    reviewer_workload, review_priority, Role, User, Agent, Conference
from .domain.event import Event, CreateDraft, CreateSubmission, \
    SubmissionEvent, AssignReviewers
from .domain.util import get_tzaware_utc_now
from .exceptions import NoSuchSubmission, NoSuchDraft, NothingToDo, \
    SaveError, ConflictError, SerialNumberCollision, PermissionDenied
from .services import store

logger = logging.getLogger(__name__)

EDITOR_ROLES = (Role.EDITOR, Role.CHIEF_EDITOR)


def load(submission_id: int) -> Tuple[Submission, List[Event]]:
    """
    Load a submission and its history.

    Parameters
    ----------
    submission_id : int
        Submission identifier.

    Returns
    -------
    :class:`.domain.submission.Submission`
        The current state of the submission.
    list
        Items are :class:`.Event` instances, in order of their occurrence.
        This includes the events of the draft that was promoted to the
        submission, if any.

    Raises
    ------
    :class:`confsubmit.exceptions.NoSuchSubmission`
        Raised when a submission with the passed ID cannot be found.

    """
    submission = store.get_submission(submission_id)
    events = store.get_events(submission_id=submission_id,
                              draft_id=submission.draft_id)
    return submission, events


def load_fast(submission_id: int) -> Submission:
    """
    Load a :class:`.domain.submission.Submission` from its projected state.

    This does not load past events.
    """
    return store.get_submission(submission_id)


def load_draft(draft_id: int, actor: Agent) -> Draft:
    """
    Load a draft on behalf of ``actor``.

    Raises
    ------
    :class:`.NoSuchDraft`
        Raised if the draft does not exist, or if it belongs to someone
        else.

    """
    draft = store.get_draft(draft_id)
    if not draft.is_owned_by(actor):
        raise NoSuchDraft(f'No draft with id {draft_id}')
    return draft


def save(*events: Event, submission_id: Optional[int] = None,
         draft_id: Optional[int] = None) -> Tuple[Manuscript, List[Event]]:
    """
    Commit a set of new :class:`.Event` instances for a manuscript.

    This will persist the events to the database, along with the final
    state of the manuscript, and then run the callbacks (e.g. notifications)
    bound to the events.

    Parameters
    ----------
    events : :class:`.Event`
        Events to apply and persist.
    submission_id : int
        The unique ID for the submission, if the events apply to a
        submission.
    draft_id : int
        The unique ID for the draft, if the events apply to a draft. If
        neither ID is provided, it is expected that the first event is a
        :class:`.CreateDraft` or a :class:`.CreateSubmission`.

    Returns
    -------
    :class:`.Draft` or :class:`.Submission`
        The state of the manuscript after all events have been applied.
        Updated with its database identifier, if it was created.
    list
        The :class:`.Event` instances that were committed.

    Raises
    ------
    :class:`.PermissionDenied`
        Raised before anything is loaded if the creator of an event does not
        hold a role required by that event.
    :class:`.NoSuchSubmission`, :class:`.NoSuchDraft`
        Raised if the manuscript cannot be found.
    :class:`.InvalidEvent`
        If an invalid event is encountered, the entire operation is aborted
        and this exception (or one of its subclasses) is raised.
    :class:`.ConflictError`
        Raised if a concurrent write got there first, e.g. if the draft was
        already promoted.
    :class:`.SaveError`
        There was a problem persisting the events and/or manuscript state
        to the database.

    """
    if len(events) == 0:
        raise NothingToDo('Must pass at least one event')
    events_ = list(events)
    for event in events_:
        event.authorize()

    identifiers = [(e.submission_id, e.draft_id) for e in events_]

    def _attempt() -> Tuple[Manuscript, List[Event]]:
        for event, (s_id, d_id) in zip(events_, identifiers):
            event.submission_id, event.draft_id = s_id, d_id
            event.committed = False
        try:
            return _save(events_, submission_id, draft_id)
        except SerialNumberCollision:
            logger.info('Serial number collision; trying a new one')
            for event in events_:
                if isinstance(event, SubmissionEvent):
                    event.renew_serial_number()
            raise

    try:
        after, committed = retry_call(_attempt,
                                      exceptions=SerialNumberCollision,
                                      tries=_serial_number_attempts())
    except store.Conflict as e:
        raise ConflictError('The manuscript was changed by another'
                            ' request') from e
    except store.StoreException as e:
        raise SaveError('Failed to save events') from e

    for event in committed:
        event.notify()
    return after, committed


def _save(events: List[Event], submission_id: Optional[int],
          draft_id: Optional[int]) -> Tuple[Manuscript, List[Event]]:
    submission_id = submission_id or events[0].submission_id
    draft_id = draft_id or events[0].draft_id
    committed: List[Event] = []

    # Validation and persistence of new events must be atomic.
    with store.transaction():
        before = _load_for_update(events[0], submission_id, draft_id)
        for event in events:
            if event.submission_id is None and submission_id is not None:
                event.submission_id = submission_id
            if event.draft_id is None and draft_id is not None:
                event.draft_id = draft_id

            # The event ID is derived from the creation time, so this must be
            # set before the event is applied.
            event.created = get_tzaware_utc_now()
            _resolve_context(event)
            logger.debug('Apply event %s: %s', event.event_id, event.NAME)
            event.apply(before)
            after = event.commit(store.store_event)
            committed.append(event)

            before = after      # Prepare for the next event.
            if isinstance(after, Submission):
                submission_id = after.submission_id
            else:
                draft_id = after.draft_id
    return after, committed


def _load_for_update(first: Event, submission_id: Optional[int],
                     draft_id: Optional[int]) -> Optional[Manuscript]:
    """Load and lock the manuscript that the events apply to."""
    if submission_id is not None:
        return store.get_submission(submission_id, for_update=True)
    if draft_id is not None:
        try:
            return store.get_draft(draft_id, for_update=True)
        except NoSuchDraft:
            if store.get_promoted_submission_id(draft_id) is not None:
                raise ConflictError(f'Draft {draft_id} was already'
                                    f' promoted')
            raise
    if not isinstance(first, (CreateDraft, CreateSubmission)):
        raise NoSuchSubmission('Unable to determine the manuscript')
    return None


def _resolve_context(event: Event) -> None:
    """Load the context that some events need in order to validate."""
    if isinstance(event, (CreateDraft, CreateSubmission)) \
            and event.conference is None and event.conference_id:
        event.conference = store.get_conference(event.conference_id)
    elif isinstance(event, AssignReviewers) and event.roster is None:
        event.roster = store.get_roster()


def _serial_number_attempts() -> int:
    config = current_app.config if has_app_context() else {}
    return int(config.get('SERIAL_NUMBER_ATTEMPTS', 3))


def save_roster(*events: Event) -> Tuple[Roster, List[Event]]:
    """
    Commit a set of member management events.

    Parameters
    ----------
    events : :class:`.Event`
        Instances of :class:`.AddMember`, :class:`.ChangeMemberRoles`,
        :class:`.SetMemberStatus`, or :class:`.DeleteMember`.

    Returns
    -------
    :class:`.Roster`
        The roster after all events have been applied.
    list
        The :class:`.Event` instances that were committed.

    """
    if len(events) == 0:
        raise NothingToDo('Must pass at least one event')
    for event in events:
        event.authorize()

    committed: List[Event] = []
    try:
        with store.transaction():
            roster = store.get_roster(for_update=True)
            for event in events:
                event.created = get_tzaware_utc_now()
                logger.debug('Apply event %s: %s', event.event_id,
                             event.NAME)
                event.apply(roster)    # type: ignore
                roster = event.commit(store.store_roster_event)  # type: ignore
                committed.append(event)
    except store.Conflict as e:
        raise ConflictError('The roster was changed by another request') \
            from e
    except store.StoreException as e:
        raise SaveError('Failed to save events') from e

    for event in committed:
        event.notify()
    return roster, committed


def get_conference(conference_id: Optional[str] = None,
                   year: Optional[int] = None) -> Conference:
    """Get a conference by ID or by year; defaults to the current year."""
    if conference_id is None and year is None:
        year = get_tzaware_utc_now().year
    return store.get_conference(conference_id=conference_id, year=year)


def list_submissions_for_actor(actor: User, query: SubmissionQuery) \
        -> Page[Manuscript]:
    """
    Get a page of manuscripts that ``actor`` is allowed to see.

    In the author scope, the actor's drafts are listed along with their
    submissions. In the editor scope, all submissions to the conference
    except those in DRAFT are listed; this requires the EDITOR or
    CHIEF_EDITOR role.

    Raises
    ------
    :class:`.PermissionDenied`

    """
    conference = get_conference(query.conference_id, query.year)
    if query.scope is Scope.EDITOR:
        if not actor.has_role(*EDITOR_ROLES):
            raise PermissionDenied(None, 'Requires one of: EDITOR,'
                                         ' CHIEF_EDITOR')
        items, total = store.list_submissions(query, conference.conference_id)
        stats = store.count_submissions_by_status(query,
                                                  conference.conference_id)
        return Page(items=items, total=total, page=query.page,
                    limit=query.limit, stats=stats)

    user_id = actor.native_id
    submissions, _ = store.list_submissions(query, conference.conference_id,
                                            creator_id=user_id,
                                            paginate=False)
    stats = store.count_submissions_by_status(query,
                                              conference.conference_id,
                                              creator_id=user_id)
    drafts: List[Draft] = []
    if query.status in (None, Submission.DRAFT):
        drafts = store.list_drafts(user_id, conference.conference_id,
                                   query.search)
    if drafts:
        stats[Submission.DRAFT] = stats.get(Submission.DRAFT, 0) + len(drafts)

    manuscripts: List[Manuscript] = [*drafts, *submissions]
    manuscripts.sort(key=lambda m: m.created, reverse=True)
    return Page(items=manuscripts[query.offset:query.offset + query.limit],
                total=len(manuscripts), page=query.page, limit=query.limit,
                stats=stats)


def list_assignments_for_reviewer(actor: User, status: Optional[str] = None) \
        -> List[Dict]:
    """
    Get the review assignments held by ``actor``, soonest due first.

    Returns
    -------
    list
        Each item is a dict with the ``assignment``, the ``submission`` it
        concerns, and its queue ``priority``.

    Raises
    ------
    :class:`.PermissionDenied`
        Raised if ``actor`` does not hold the REVIEWER role.

    """
    if not actor.has_role(Role.REVIEWER):
        raise PermissionDenied(None, 'Requires one of: REVIEWER')
    now = get_tzaware_utc_now()
    return [{'assignment': assignment, 'submission': submission,
             'priority': review_priority(assignment.due_at, now)}
            for assignment, submission in store.get_assignments(
                reviewer_id=actor.native_id,
                status=status.upper() if status else None
            )]


def get_roster() -> Roster:
    """Get all members, with their number of current assignments."""
    return store.get_roster()


def get_member_review_history(user_id: str) -> List[ReviewAssignment]:
    """Get every assignment that a member has held, including declined."""
    store.get_user(user_id)
    return [assignment for assignment, _
            in store.get_assignments(reviewer_id=user_id)]


def get_reviewer_workloads() -> List[ReviewerWorkload]:
    """Summarize the workload of each enabled reviewer."""
    roster = store.get_roster()
    assignments = [a for a, _ in store.get_assignments()]
    return [reviewer_workload(member.native_id, assignments)
            for member in roster.members.values()
            if member.enabled and member.has_role(Role.REVIEWER)]


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    store.init_app(app)
    app.config.setdefault('ENABLE_CALLBACKS', 1)
    app.config.setdefault('SERIAL_NUMBER_ATTEMPTS', 3)
