"""Application factory for the submission API."""

import logging
from typing import Any, Optional

from flask import Flask, jsonify, Response
from werkzeug.exceptions import HTTPException

from .. import core, rules    # Importing rules binds the callbacks.
from ..exceptions import InvalidEvent, ConflictError, NotFound, SaveError, \
    NothingToDo, kind_of
from ..services import notification, filestore
from . import routes

logger = logging.getLogger(__name__)

STATUS_FOR_KIND = {
    'validation': 400,
    'invalid': 400,
    'nothing_to_do': 400,
    'permission': 403,
    'not_found': 404,
    'state': 409,
    'policy': 409,
    'conflict': 409,
    'save': 500,
}
"""HTTP status codes for each kind of workflow error."""


def jsonify_exception(error: HTTPException) -> Response:
    """Render a werkzeug HTTP exception as JSON."""
    exc_resp = error.get_response()
    response = jsonify(reason=error.description)
    response.status_code = exc_resp.status_code
    return response


def jsonify_workflow_error(error: Exception) -> Response:
    """Render an error raised by the workflow as JSON, by its kind."""
    kind = kind_of(error)
    code = STATUS_FOR_KIND.get(kind, 500)
    if code >= 500:
        logger.error('Workflow error (%s): %s', kind, error)
    response = jsonify(reason=str(error), kind=kind)
    response.status_code = code
    return response


def create_web_app(config: Optional[Any] = None) -> Flask:
    """
    Initialize an instance of the submission API.

    Parameters
    ----------
    config : object or dict
        Overrides applied after the defaults in :mod:`confsubmit.config`.

    """
    app = Flask('confsubmit')
    app.config.from_object('confsubmit.config')
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    logging.getLogger('confsubmit').setLevel(app.config['LOGLEVEL'])

    core.init_app(app)
    notification.init_app(app)
    filestore.init_app(app)

    app.register_blueprint(routes.blueprint)
    app.register_error_handler(HTTPException, jsonify_exception)
    for exc in (InvalidEvent, ConflictError, NotFound, SaveError,
                NothingToDo):
        app.register_error_handler(exc, jsonify_workflow_error)
    logger.debug('Loaded rules from %s', rules.__name__)
    return app
