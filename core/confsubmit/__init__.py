"""
Event-centric workflow for manuscripts submitted to an academic conference.

This package provides an event-based API for mutating drafts, submissions,
and the roster of conference members. Instead of changing manuscripts
directly in web controllers and other places, we represent every change as a
command (an event). This gives us a precise and complete record of
activities concerning manuscripts, and an explicit and consistent definition
of the operations that can be performed.

Overview
========

Event types are defined in :mod:`.domain.event`. The base class for all events
is :class:`.domain.event.base.Event`. Each event type defines additional
required data, the roles that may issue it, and ``validate`` and ``project``
methods that implement its logic. Events operate on
:class:`.domain.submission.Draft` and :class:`.domain.submission.Submission`
instances, or (for member management) on the :class:`.domain.roster.Roster`.

.. code-block:: python

   from confsubmit import CreateDraft, User, Role, save
   author = User('1345', email='foo@user.com', roles=[Role.AUTHOR])
   draft, events = save(CreateDraft(creator=author, conference_id='c2025',
                                    title='A new theory of foo'))


:mod:`.core` defines the persistence API. :func:`.core.save` is used to
commit new events for a manuscript, and :func:`.core.save_roster` for member
changes. :func:`.core.load` retrieves a submission with its event history,
whereas :func:`.core.load_fast` retrieves only its current state.

.. code-block:: python

   from confsubmit import save, PromoteDraft
   submission, events = save(PromoteDraft(creator=author),
                             draft_id=draft.draft_id)


Watch out for :class:`.exceptions.InvalidEvent` to catch validation-related
problems (e.g. bad data, submission in wrong state, missing role). Each
exception carries a stable ``kind``; see :mod:`.exceptions`. Watch for
:class:`.SaveError` to catch problems with persisting events.

Callbacks can be attached to event types in order to execute routines
automatically when specific events are committed, using
:func:`.domain.Event.bind`. Notifications to authors, reviewers and new
members are implemented this way, in :mod:`.rules.notifications`.

Finally, :mod:`.services.store` provides persistence in a relational
database, and :mod:`.web` exposes the workflow as a JSON API.
"""

from .domain import Agent, User, System, Role, Conference, FileKind, \
    Author, Agreements, Draft, Submission, Manuscript, Roster, \
    SubmissionQuery, Scope, Page
from .domain.event import *
from .core import save, save_roster, load, load_fast, load_draft, \
    list_submissions_for_actor, list_assignments_for_reviewer, \
    get_member_review_history, get_reviewer_workloads, get_conference, \
    get_roster, init_app
from .exceptions import InvalidEvent, ValidationError, StateError, \
    PermissionDenied, PolicyError, ConflictError, NotFound, \
    NoSuchSubmission, NoSuchDraft, NoSuchUser, NoSuchConference, \
    NoSuchAssignment, SaveError, NothingToDo
