"""Rules for sending notifications to authors, reviewers and new members."""

import logging
from typing import Any, Dict, Iterable, Optional

from ..domain.event import PromoteDraft, CreateSubmission, SubmitSubmission, \
    AssignReviewers, RecordDecision, AddMember, Event
from ..domain.submission import Submission, DecisionResult
from ..domain.roster import Roster
from ..services.notification import get_dispatcher, NotificationKind

logger = logging.getLogger(__name__)


def _submission_context(submission: Submission) -> Dict[str, Any]:
    return {
        'submission_id': submission.submission_id,
        'serial_number': submission.serial_number,
        'title': submission.title,
        'status': submission.status,
    }


def _send_all(kind: NotificationKind, recipients: Iterable[str],
              context: Dict[str, Any]) -> None:
    dispatcher = get_dispatcher()
    for recipient in recipients:
        dispatcher.send(kind, recipient, context)


@PromoteDraft.bind()
@SubmitSubmission.bind()
def confirm_submission(event: Event, before: Optional[Any],
                       after: Submission) -> None:
    """Let every author know that the manuscript was received."""
    _send_all(NotificationKind.SUBMISSION_RECEIVED,
              [author.email for author in after.authors],
              _submission_context(after))


@CreateSubmission.bind(lambda e, *a: e.submit)
def confirm_direct_submission(event: CreateSubmission, before: None,
                              after: Submission) -> None:
    """Same as :func:`confirm_submission`, for direct submissions."""
    confirm_submission(event, before, after)


@AssignReviewers.bind()
def invite_reviewers(event: AssignReviewers, before: Submission,
                     after: Submission) -> None:
    """Invite each reviewer named in the event to review the submission."""
    if event.roster is None:
        logger.warning('No roster on %s; cannot address reviewers',
                       event.event_id)
        return
    context = _submission_context(after)
    context['due_at'] = event.due_at
    recipients = []
    for reviewer_id in event.reviewer_ids:
        reviewer = event.roster.get(reviewer_id)
        if reviewer is not None:
            recipients.append(reviewer.email)
    _send_all(NotificationKind.ASSIGNMENT_INVITE, recipients, context)


@RecordDecision.bind()
def notify_corresponding_author(event: RecordDecision, before: Submission,
                                after: Submission) -> None:
    """Tell the corresponding author about the decision."""
    author = after.corresponding_author
    if author is None:
        logger.warning('Submission %s has no corresponding author',
                       after.submission_id)
        return
    kind = NotificationKind.DECISION_NOTICE
    if DecisionResult(event.result) is DecisionResult.REVISE:
        kind = NotificationKind.REVISION_REQUEST
    context = _submission_context(after)
    context.update({'result': event.result, 'note': event.note})
    get_dispatcher().send(kind, author.email, context)


@AddMember.bind()
def invite_member(event: AddMember, before: Roster, after: Roster) -> None:
    """Send an invitation to a new member."""
    get_dispatcher().send(NotificationKind.MEMBER_INVITATION, event.email, {
        'name': event.name,
        'roles': event.roles,
    })
