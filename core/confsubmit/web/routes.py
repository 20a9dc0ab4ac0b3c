"""Provides the JSON API for authors, reviewers and editors."""

import io
import logging
from functools import wraps
from typing import Any, Callable

from flask import Blueprint, jsonify, request, send_file, Response
from werkzeug.exceptions import Unauthorized

from ..domain import Scope
from . import auth, controllers

logger = logging.getLogger(__name__)

blueprint = Blueprint('confsubmit', __name__, url_prefix='')


@blueprint.before_request
def get_actor() -> None:
    """Determine the acting user from the bearer token."""
    if request.endpoint == 'confsubmit.health':
        return
    try:
        request.actor = auth.from_header(request.headers.get('Authorization'))
    except auth.InvalidToken as e:
        logger.info('Rejected request: %s', e)
        raise Unauthorized(str(e)) from e
    logger.debug('Request by user %s', request.actor.native_id)


def json_response(func: Callable) -> Callable:
    """Generate a wrapper for routes that JSONifies the response body."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        r_body, r_status, r_headers = func(*args, **kwargs)
        response = jsonify(r_body)
        response.status_code = r_status
        response.headers.extend(r_headers)
        return response
    return wrapper


@blueprint.route('/health', methods=['GET'])
@json_response
def health() -> tuple:
    """Report that the service is up."""
    return {'status': 'ok'}, 200, {}


@blueprint.route('/conference', methods=['GET'])
@json_response
def get_conference() -> tuple:
    """Get the conference for a year (default: this year)."""
    return controllers.get_conference(request.args)


# Drafts.

@blueprint.route('/drafts/', methods=['POST'])
@json_response
def create_draft() -> tuple:
    """Start a new draft."""
    return controllers.create_draft(request.get_json(silent=True),
                                    request.actor)


@blueprint.route('/drafts/<int:draft_id>/', methods=['GET'])
@json_response
def get_draft(draft_id: int) -> tuple:
    """Get a draft."""
    return controllers.get_draft(draft_id, request.actor)


@blueprint.route('/drafts/<int:draft_id>/', methods=['POST'])
@json_response
def update_draft(draft_id: int) -> tuple:
    """Update a draft."""
    return controllers.update_draft(request.get_json(silent=True), draft_id,
                                    request.actor)


@blueprint.route('/drafts/<int:draft_id>/', methods=['DELETE'])
@json_response
def delete_draft(draft_id: int) -> tuple:
    """Delete a draft."""
    return controllers.delete_draft(draft_id, request.actor)


@blueprint.route('/drafts/<int:draft_id>/files/', methods=['POST'])
@json_response
def upload_draft_file(draft_id: int) -> tuple:
    """Attach a file to a draft."""
    return controllers.upload_file(request.form, request.files.get('file'),
                                   request.actor, draft_id=draft_id)


@blueprint.route('/drafts/<int:draft_id>/submit/', methods=['POST'])
@json_response
def promote_draft(draft_id: int) -> tuple:
    """Submit a draft."""
    return controllers.promote_draft(request.get_json(silent=True), draft_id,
                                     request.actor)


# Submissions.

@blueprint.route('/submissions/', methods=['GET'])
@json_response
def list_submissions() -> tuple:
    """List the actor's drafts and submissions."""
    return controllers.list_submissions(request.args, request.actor)


@blueprint.route('/submissions/', methods=['POST'])
@json_response
def create_submission() -> tuple:
    """Create a submission directly."""
    return controllers.create_submission(request.get_json(silent=True),
                                         request.actor)


@blueprint.route('/submissions/<int:submission_id>/', methods=['GET'])
@json_response
def get_submission(submission_id: int) -> tuple:
    """Get the current state of a submission."""
    return controllers.get_submission(submission_id, request.actor)


@blueprint.route('/submissions/<int:submission_id>/', methods=['POST'])
@json_response
def edit_submission(submission_id: int) -> tuple:
    """Change the content of a submission."""
    return controllers.edit_submission(request.get_json(silent=True),
                                       submission_id, request.actor)


@blueprint.route('/submissions/<int:submission_id>/', methods=['DELETE'])
@json_response
def delete_submission(submission_id: int) -> tuple:
    """Delete a submission."""
    return controllers.delete_submission(submission_id, request.actor)


@blueprint.route('/submissions/<int:submission_id>/submit/',
                 methods=['POST'])
@json_response
def submit_submission(submission_id: int) -> tuple:
    """Submit or re-submit a submission."""
    return controllers.submit_submission(request.get_json(silent=True),
                                         submission_id, request.actor)


@blueprint.route('/submissions/<int:submission_id>/withdraw/',
                 methods=['POST'])
@json_response
def withdraw_submission(submission_id: int) -> tuple:
    """Withdraw a submission."""
    return controllers.withdraw_submission(submission_id, request.actor)


@blueprint.route('/submissions/<int:submission_id>/files/',
                 methods=['POST'])
@json_response
def upload_submission_file(submission_id: int) -> tuple:
    """Attach a file to a submission."""
    return controllers.upload_file(request.form, request.files.get('file'),
                                   request.actor,
                                   submission_id=submission_id)


@blueprint.route('/submissions/<int:submission_id>/files/<kind>/'
                 '<int:version>/', methods=['GET'])
def get_submission_file(submission_id: int, kind: str,
                        version: int) -> Response:
    """Download a version of a file attached to a submission."""
    content, mime_type = controllers.get_file(submission_id, kind, version,
                                              request.actor)
    return send_file(io.BytesIO(content), mimetype=mime_type)


@blueprint.route('/submissions/<int:submission_id>/log/', methods=['GET'])
@json_response
def get_submission_log(submission_id: int) -> tuple:
    """Get the event log of a submission."""
    return controllers.get_submission_log(submission_id, request.actor)


# Reviewers.

@blueprint.route('/reviewer/assignments/', methods=['GET'])
@json_response
def list_assignments() -> tuple:
    """List the actor's review assignments."""
    return controllers.list_assignments(request.args, request.actor)


@blueprint.route('/reviewer/assignments/<int:submission_id>/respond/',
                 methods=['POST'])
@json_response
def respond_to_assignment(submission_id: int) -> tuple:
    """Accept or decline an assignment."""
    return controllers.respond_to_assignment(request.get_json(silent=True),
                                             submission_id, request.actor)


@blueprint.route('/reviewer/assignments/<int:submission_id>/review/',
                 methods=['POST'])
@json_response
def submit_review(submission_id: int) -> tuple:
    """Submit a review."""
    return controllers.submit_review(request.get_json(silent=True),
                                     submission_id, request.actor)


# Editors.

@blueprint.route('/editor/submissions/', methods=['GET'])
@json_response
def list_editor_submissions() -> tuple:
    """List all submissions to the conference."""
    return controllers.list_submissions(request.args, request.actor,
                                        scope=Scope.EDITOR)


@blueprint.route('/editor/submissions/<int:submission_id>/reviewers/',
                 methods=['POST'])
@json_response
def assign_reviewers(submission_id: int) -> tuple:
    """Assign reviewers to a submission."""
    return controllers.assign_reviewers(request.get_json(silent=True),
                                        submission_id, request.actor)


@blueprint.route('/editor/submissions/<int:submission_id>/decision/',
                 methods=['POST'])
@json_response
def record_decision(submission_id: int) -> tuple:
    """Record a decision on a submission."""
    return controllers.record_decision(request.get_json(silent=True),
                                       submission_id, request.actor)


@blueprint.route('/editor/reviewers/', methods=['GET'])
@json_response
def list_reviewers() -> tuple:
    """List reviewers and their workload."""
    return controllers.list_reviewers(request.actor)


@blueprint.route('/editor/members/', methods=['GET'])
@json_response
def list_members() -> tuple:
    """List the roster."""
    return controllers.list_members(request.actor)


@blueprint.route('/editor/members/', methods=['POST'])
@json_response
def add_member() -> tuple:
    """Add a member of staff."""
    return controllers.add_member(request.get_json(silent=True),
                                  request.actor)


@blueprint.route('/editor/members/<user_id>/roles/', methods=['POST'])
@json_response
def change_member_roles(user_id: str) -> tuple:
    """Change the roles of a member."""
    return controllers.change_member_roles(request.get_json(silent=True),
                                           user_id, request.actor)


@blueprint.route('/editor/members/<user_id>/status/', methods=['POST'])
@json_response
def set_member_status(user_id: str) -> tuple:
    """Enable or disable a member."""
    return controllers.set_member_status(request.get_json(silent=True),
                                         user_id, request.actor)


@blueprint.route('/editor/members/<user_id>/', methods=['DELETE'])
@json_response
def delete_member(user_id: str) -> tuple:
    """Remove a member."""
    return controllers.delete_member(user_id, request.actor)


@blueprint.route('/editor/members/<user_id>/review-history/',
                 methods=['GET'])
@json_response
def get_member_review_history(user_id: str) -> tuple:
    """Get the review history of a member."""
    return controllers.get_member_review_history(user_id, request.actor)
