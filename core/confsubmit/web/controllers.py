"""
Controllers for the submission API.

Each controller accepts request data and the acting :class:`.User`, and
returns a tuple of (response body, HTTP status, headers). Validation of the
data is left to the events themselves; errors raised by the workflow are
rendered by the handlers registered in :mod:`.web.factory`.
"""

import logging
from http import HTTPStatus as status
from typing import Any, Dict, List, Optional, Tuple

from flask import url_for
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest, NotFound

from .. import core, serializer
from ..domain import Draft, Submission, Manuscript, User, Role, \
    SubmissionQuery, Scope, FileKind
from ..domain import workload
from ..domain.event import CreateDraft, UpdateDraft, DeleteDraft, AddFile, \
    PromoteDraft, CreateSubmission, SubmitSubmission, EditSubmission, \
    DeleteSubmission, WithdrawSubmission, AssignReviewers, \
    RespondToAssignment, SubmitReview, RecordDecision, AddMember, \
    ChangeMemberRoles, SetMemberStatus, DeleteMember
from ..exceptions import NoSuchSubmission
from ..services import filestore

logger = logging.getLogger(__name__)

Response = Tuple[dict, int, dict]

CONTENT_FIELDS = ('title', 'abstract', 'track', 'paper_type', 'keywords',
                  'authors', 'agreements')
"""Request fields that carry manuscript content."""


def _content(data: dict) -> Dict[str, Any]:
    return {key: data[key] for key in CONTENT_FIELDS if key in data}


def _require(data: Optional[dict]) -> dict:
    if data is None:
        raise BadRequest('No data in request')
    return data


def manuscript_to_dict(manuscript: Manuscript) -> dict:
    """Render a draft or a submission for the API."""
    data = serializer.to_native(manuscript)
    data['kind'] = 'draft' if isinstance(manuscript, Draft) else 'submission'
    return data


def _editor_view(submission: Submission) -> dict:
    data = manuscript_to_dict(submission)
    data.update({
        'priority': workload.submission_priority(submission),
        'review_status': workload.review_status(
            submission.review_assignments
        ),
        'review_recommendation': workload.review_recommendation(
            submission.review_assignments
        ),
    })
    return data


# Conferences.

def get_conference(params: dict) -> Response:
    """Get a conference by ID or year."""
    year = params.get('year')
    try:
        year = int(year) if year is not None else None
    except ValueError as e:
        raise BadRequest('year must be an integer') from e
    conference = core.get_conference(params.get('conference_id'), year)
    return serializer.to_native(conference), status.OK, {}


# Drafts.

def create_draft(data: dict, actor: User) -> Response:
    """Start a new draft."""
    data = _require(data)
    event = CreateDraft(creator=actor,
                        conference_id=data.get('conference_id', ''),
                        **_content(data))
    draft, _ = core.save(event)
    headers = {'Location': url_for('confsubmit.get_draft',
                                   draft_id=draft.draft_id)}
    return manuscript_to_dict(draft), status.CREATED, headers


def get_draft(draft_id: int, actor: User) -> Response:
    """Get a draft owned by the actor."""
    return manuscript_to_dict(core.load_draft(draft_id, actor)), \
        status.OK, {}


def update_draft(data: dict, draft_id: int, actor: User) -> Response:
    """Replace the content of a draft."""
    event = UpdateDraft(creator=actor, **_content(_require(data)))
    draft, _ = core.save(event, draft_id=draft_id)
    return manuscript_to_dict(draft), status.OK, {}


def delete_draft(draft_id: int, actor: User) -> Response:
    """Discard a draft."""
    core.save(DeleteDraft(creator=actor), draft_id=draft_id)
    return {}, status.NO_CONTENT, {}


def promote_draft(data: Optional[dict], draft_id: int,
                  actor: User) -> Response:
    """Submit a draft, replacing it with a submission."""
    event = PromoteDraft(creator=actor, **_content(data or {}))
    submission, _ = core.save(event, draft_id=draft_id)
    headers = {'Location': url_for('confsubmit.get_submission',
                                   submission_id=submission.submission_id)}
    return manuscript_to_dict(submission), status.CREATED, headers


# Submissions.

def list_submissions(params: dict, actor: User,
                     scope: Scope = Scope.AUTHOR) -> Response:
    """List manuscripts visible to the actor."""
    try:
        query = SubmissionQuery(
            scope=scope,
            status=params.get('status'),
            conference_id=params.get('conference_id'),
            year=int(params['year']) if params.get('year') else None,
            search=params.get('search'),
            page=int(params.get('page', 1)),
            limit=int(params.get('limit', 10))
        )
    except ValueError as e:
        raise BadRequest(f'Invalid query: {e}') from e
    page = core.list_submissions_for_actor(actor, query)
    render = _editor_view if scope is Scope.EDITOR else manuscript_to_dict
    body = {
        'items': [render(item) for item in page.items],
        'total': page.total,
        'page': page.page,
        'limit': page.limit,
        'total_pages': page.total_pages,
        'has_next_page': page.has_next_page,
        'has_prev_page': page.has_prev_page,
        'stats': page.stats,
    }
    return body, status.OK, {}


def create_submission(data: dict, actor: User) -> Response:
    """Create a submission directly, optionally submitting it."""
    data = _require(data)
    event = CreateSubmission(creator=actor,
                             conference_id=data.get('conference_id', ''),
                             submit=bool(data.get('submit', False)),
                             **_content(data))
    submission, _ = core.save(event)
    headers = {'Location': url_for('confsubmit.get_submission',
                                   submission_id=submission.submission_id)}
    return manuscript_to_dict(submission), status.CREATED, headers


def get_submission(submission_id: int, actor: User) -> Response:
    """
    Get a submission.

    Authors see their own submissions, editors see all of them, and
    reviewers see those that they are assigned to.
    """
    submission = _visible_submission(submission_id, actor)
    if not submission.is_owned_by(actor) \
            and actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR):
        return _editor_view(submission), status.OK, {}
    return manuscript_to_dict(submission), status.OK, {}


def _visible_submission(submission_id: int, actor: User) -> Submission:
    submission = core.load_fast(submission_id)
    if submission.is_owned_by(actor) \
            or actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR):
        return submission
    if actor.has_role(Role.REVIEWER) \
            and submission.get_assignment(actor.native_id) is not None:
        return submission
    raise NoSuchSubmission(f'No submission with id {submission_id}')


def get_submission_log(submission_id: int, actor: User) -> Response:
    """Get the event history of a submission; editors only."""
    if not actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR):
        raise NotFound('No such submission')
    _, events = core.load(submission_id)
    body = {'events': [{'event_id': e.event_id,
                        'event_type': e.event_type,
                        'created': e.created,
                        'creator': e.creator.native_id,
                        'data': e.get_data()} for e in events]}
    return serializer.to_native(body), status.OK, {}


def edit_submission(data: dict, submission_id: int, actor: User) -> Response:
    """Change the content of a submission."""
    event = EditSubmission(creator=actor, **_content(_require(data)))
    submission, _ = core.save(event, submission_id=submission_id)
    return manuscript_to_dict(submission), status.OK, {}


def submit_submission(data: Optional[dict], submission_id: int,
                      actor: User) -> Response:
    """Submit, or re-submit, a submission."""
    event = SubmitSubmission(creator=actor, **_content(data or {}))
    submission, _ = core.save(event, submission_id=submission_id)
    return manuscript_to_dict(submission), status.OK, {}


def withdraw_submission(submission_id: int, actor: User) -> Response:
    """Withdraw a submission."""
    submission, _ = core.save(WithdrawSubmission(creator=actor),
                              submission_id=submission_id)
    return manuscript_to_dict(submission), status.OK, {}


def delete_submission(submission_id: int, actor: User) -> Response:
    """Delete a submission that never entered review."""
    core.save(DeleteSubmission(creator=actor), submission_id=submission_id)
    return {}, status.NO_CONTENT, {}


def upload_file(form: dict, upload: Optional[FileStorage], actor: User,
                draft_id: Optional[int] = None,
                submission_id: Optional[int] = None) -> Response:
    """Store an uploaded file, and attach it to a draft or submission."""
    if upload is None:
        raise BadRequest('No file in request')
    try:
        kind = FileKind(form.get('kind') or FileKind.MANUSCRIPT_ANONYMOUS)
    except ValueError as e:
        raise BadRequest(f'Invalid file kind: {form.get("kind")}') from e
    metadata = filestore.FileMetadata(
        kind=kind,
        mime_type=upload.mimetype,
        original_name=upload.filename or '',
        draft_id=draft_id,
        submission_id=submission_id
    )
    event = AddFile(creator=actor, kind=metadata.kind,
                    mime_type=metadata.mime_type,
                    original_name=metadata.original_name)

    # Don't store files that could never be attached.
    event.authorize()
    if draft_id is not None:
        event.validate_target(core.load_draft(draft_id, actor))
    else:
        event.validate_target(core.load_fast(submission_id))

    store = filestore.get_filestore()
    try:
        descriptor = store.persist(upload.read(), metadata)
    except filestore.FileRejected as e:
        raise BadRequest(str(e)) from e
    event.path = descriptor.path
    event.checksum = descriptor.checksum
    event.size = descriptor.size
    try:
        manuscript, _ = core.save(event, draft_id=draft_id,
                                  submission_id=submission_id)
    except Exception:
        logger.info('Could not attach %s; removing it', descriptor.path)
        store.remove(descriptor.path)
        raise
    return manuscript_to_dict(manuscript), status.CREATED, {}


def get_file(submission_id: int, kind: str, version: int,
             actor: User) -> Tuple[bytes, str]:
    """
    Get the content of a file attached to a submission.

    The file is visible to whoever can see the submission itself.

    Returns
    -------
    bytes
        Content of the file.
    str
        Its MIME type.

    """
    submission = _visible_submission(submission_id, actor)
    try:
        file_kind = FileKind(kind)
    except ValueError as e:
        raise NotFound(f'No such file kind: {kind}') from e
    for asset in submission.files:
        if asset.kind is file_kind and asset.version == version:
            break
    else:
        raise NotFound(f'No version {version} of {kind}')
    try:
        content = filestore.get_filestore().open(asset.path)
    except FileNotFoundError as e:
        logger.error('File %s is recorded but missing', asset.path)
        raise NotFound('File is not available') from e
    return content, asset.mime_type


# Review allocation and decisions.

def assign_reviewers(data: dict, submission_id: int,
                     actor: User) -> Response:
    """Assign reviewers to a submission."""
    data = _require(data)
    reviewer_ids = data.get('reviewer_ids')
    if reviewer_ids is None and data.get('reviewer_id'):
        reviewer_ids = [data['reviewer_id']]
    event = AssignReviewers(creator=actor, reviewer_ids=reviewer_ids or [],
                            due_at=data.get('due_at'))
    submission, _ = core.save(event, submission_id=submission_id)
    return _editor_view(submission), status.OK, {}


def record_decision(data: dict, submission_id: int, actor: User) -> Response:
    """Record an editorial decision."""
    data = _require(data)
    event = RecordDecision(creator=actor, result=data.get('result'),
                           note=data.get('note', ''))
    submission, _ = core.save(event, submission_id=submission_id)
    body = _editor_view(submission)
    body['anomalous'] = submission.latest_decision.anomalous
    return body, status.OK, {}


def list_assignments(params: dict, actor: User) -> Response:
    """List the actor's review assignments, with their priority."""
    items = core.list_assignments_for_reviewer(actor, params.get('status'))
    return serializer.to_native({'items': [
        {'assignment': item['assignment'],
         'priority': item['priority'],
         'submission': {
             'submission_id': item['submission'].submission_id,
             'serial_number': item['submission'].serial_number,
             'title': item['submission'].title,
             'abstract': item['submission'].abstract,
             'status': item['submission'].status,
             'current_files': list(
                 item['submission'].current_files.values()
             ),
         }} for item in items
    ]}), status.OK, {}


def respond_to_assignment(data: dict, submission_id: int,
                          actor: User) -> Response:
    """Accept or decline a review assignment."""
    data = _require(data)
    if 'accept' not in data:
        raise BadRequest('accept is required')
    event = RespondToAssignment(creator=actor, accept=bool(data['accept']))
    submission, _ = core.save(event, submission_id=submission_id)
    assignment = submission.get_assignment(actor.native_id)
    return serializer.to_native(assignment), status.OK, {}


def submit_review(data: dict, submission_id: int, actor: User) -> Response:
    """Submit a review."""
    data = _require(data)
    event = SubmitReview(
        creator=actor,
        score=data.get('score'),
        recommendation=data.get('recommendation'),
        comment_to_editor=data.get('comment_to_editor', ''),
        comment_to_author=data.get('comment_to_author', '')
    )
    submission, _ = core.save(event, submission_id=submission_id)
    assignment = submission.get_assignment(actor.native_id)
    return serializer.to_native(assignment), status.OK, {}


# Members.

def _member_to_dict(member: User, active: int = 0) -> dict:
    data = serializer.to_native(member)
    data['active_assignments'] = active
    return data


def list_members(actor: User) -> Response:
    """List the roster; staff only."""
    if not actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR, Role.ADMIN):
        raise NotFound('No such resource')
    roster = core.get_roster()
    return {'items': [
        _member_to_dict(member, roster.active_assignments.get(user_id, 0))
        for user_id, member in sorted(roster.members.items())
    ]}, status.OK, {}


def list_reviewers(actor: User) -> Response:
    """List enabled reviewers with their workload."""
    if not actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR):
        raise NotFound('No such resource')
    roster = core.get_roster()
    items: List[dict] = []
    for load in core.get_reviewer_workloads():
        member = roster.get(load.reviewer_id)
        items.append({
            'reviewer_id': load.reviewer_id,
            'name': member.name if member else '',
            'email': member.email if member else '',
            'expertise': member.expertise if member else [],
            'current_assignments': load.current_assignments,
            'completed_reviews': load.completed_reviews,
            'is_available': load.is_available,
        })
    return {'items': items}, status.OK, {}


def add_member(data: dict, actor: User) -> Response:
    """Add a member of staff."""
    data = _require(data)
    roles = data.get('roles')
    if roles is None and data.get('role'):
        roles = [data['role']]
    event = AddMember(creator=actor,
                      email=data.get('email', ''),
                      name=data.get('name', ''),
                      affiliation=data.get('affiliation', ''),
                      expertise=data.get('expertise', []),
                      roles=roles or [],
                      enabled=bool(data.get('enabled', True)))
    roster, _ = core.save_roster(event)
    return _member_to_dict(roster.members[event.user_id]), \
        status.CREATED, {}


def change_member_roles(data: dict, user_id: str, actor: User) -> Response:
    """Replace the roles of a member."""
    data = _require(data)
    event = ChangeMemberRoles(creator=actor, user_id=user_id,
                              roles=data.get('roles', []))
    roster, _ = core.save_roster(event)
    return _member_to_dict(roster.members[event.user_id]), status.OK, {}


def set_member_status(data: dict, user_id: str, actor: User) -> Response:
    """Enable or disable a member."""
    data = _require(data)
    if 'enabled' not in data:
        raise BadRequest('enabled is required')
    event = SetMemberStatus(creator=actor, user_id=user_id,
                            enabled=bool(data['enabled']))
    roster, _ = core.save_roster(event)
    return _member_to_dict(roster.members[event.user_id]), status.OK, {}


def delete_member(user_id: str, actor: User) -> Response:
    """Remove a member from the roster."""
    core.save_roster(DeleteMember(creator=actor, user_id=user_id))
    return {}, status.NO_CONTENT, {}


def get_member_review_history(user_id: str, actor: User) -> Response:
    """Get every assignment a member has held; staff only."""
    if not actor.has_role(Role.EDITOR, Role.CHIEF_EDITOR, Role.ADMIN):
        raise NotFound('No such resource')
    history = core.get_member_review_history(user_id)
    return serializer.to_native({'items': history}), status.OK, {}
