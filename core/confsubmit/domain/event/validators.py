"""Reusable validators for events."""

import re
from typing import Any, List, Optional

import bleach

from .base import Event
from ..meta import ALLOWED_MIME_TYPES, MAX_FILE_SIZE, Conference
from ..submission import Author, Agreements, Draft, Submission
from ...exceptions import ValidationError, StateError, NoSuchDraft

EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def must_be_a_draft(event: Event, manuscript: Any) -> None:
    """Drafting events only apply to drafts."""
    if not isinstance(manuscript, Draft):
        raise StateError(event, 'Only applies to drafts')


def must_be_a_submission(event: Event, manuscript: Any) -> None:
    """Workflow events only apply to submissions."""
    if not isinstance(manuscript, Submission):
        raise StateError(event, 'Only applies to submissions')


def must_own_draft(event: Event, draft: Draft) -> None:
    """
    Drafts are visible only to their creators.

    Raises
    ------
    :class:`.NoSuchDraft`
        Raised if the creator of the event is not the owner of the draft, so
        that the existence of other users' drafts is not disclosed.

    """
    if not draft.is_owned_by(event.creator):
        raise NoSuchDraft(f'No draft with id {draft.draft_id}')


def must_own_submission(event: Event, submission: Submission) -> None:
    """Only the creator of a submission may change its content."""
    if not submission.is_owned_by(event.creator):
        raise StateError(event, 'Only the creator may change a submission')


def status_must_be(event: Event, submission: Submission,
                   *statuses: str) -> None:
    """Verify that the submission is in one of ``statuses``."""
    if submission.status not in statuses:
        raise StateError(event, f'Not allowed while {submission.status}')


def must_transition_to(event: Event, submission: Submission,
                       status: str) -> None:
    """Verify that ``status`` is reachable from the current status."""
    if not submission.can_transition_to(status):
        raise StateError(event, f'Cannot move from {submission.status} to'
                                f' {status}')


def authors_are_complete(event: Event, authors: List[Author]) -> None:
    """Each author needs a plausible email address, to be reachable."""
    for author in authors:
        if not EMAIL.match(author.email):
            raise ValidationError(event, f'Invalid author email:'
                                         f' {author.email!r}')


def at_most_one_corresponding_author(event: Event,
                                     authors: List[Author]) -> None:
    """Drafts may omit the corresponding author, but never have two."""
    if len([a for a in authors if a.is_corresponding]) > 1:
        raise ValidationError(event, 'Only one author may be the'
                                     ' corresponding author')


def exactly_one_corresponding_author(event: Event,
                                     authors: List[Author]) -> None:
    """A submission needs at least one author, and one primary contact."""
    if not authors:
        raise ValidationError(event, 'At least one author is required')
    authors_are_complete(event, authors)
    corresponding = [a for a in authors if a.is_corresponding]
    if len(corresponding) != 1:
        raise ValidationError(event, 'Exactly one corresponding author is'
                                     ' required')


def agreements_are_given(event: Event, agreements: Agreements) -> None:
    """All submission declarations must be confirmed."""
    if not agreements.all_given:
        raise ValidationError(event, 'All agreements must be accepted')


def title_is_present(event: Event, title: Optional[str]) -> None:
    if not title or not title.strip():
        raise ValidationError(event, 'A title is required')


def conference_is_open(event: Event, conference: Optional[Conference],
                       track: Optional[str]) -> None:
    """
    The conference must be accepting manuscripts on the selected track.

    If the conference descriptor could not be resolved, there is nothing to
    check against.
    """
    if conference is None:
        return
    if not conference.is_active:
        raise StateError(event, f'Conference {conference.conference_id} is'
                                f' not accepting manuscripts')
    if track and not conference.offers_track(track):
        raise ValidationError(event, f'No such track: {track}')


def file_is_acceptable(event: Event, mime_type: str, size: int) -> None:
    """Only PDF and Word documents under the size limit are accepted."""
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(event, f'Unsupported file type: {mime_type}')
    if size <= 0:
        raise ValidationError(event, 'File is empty')
    if size > MAX_FILE_SIZE:
        raise ValidationError(event, 'File exceeds the maximum size')


def no_markup(event: Event, value: Optional[str]) -> None:
    """Check for HTML tags in free text."""
    if not value:
        return
    if len(bleach.clean(value, tags=set(), strip=True)) < len(value):
        raise ValidationError(event, 'Markup is not allowed')
