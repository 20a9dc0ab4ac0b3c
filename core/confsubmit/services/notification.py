"""
Integration with the notification service.

Notifications (e-mail to authors, reviewers and new members) are delivered by
an external service; we POST a JSON request describing what should be sent,
and to whom. Delivery is fire-and-forget: the workflow never waits on, or
rolls back because of, a notification.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

import requests
from requests.packages.urllib3.util.retry import Retry
from flask import Flask, current_app, has_app_context

from .. import serializer

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = 'http://localhost:8025/notifications'


class NotificationKind(Enum):
    """Kinds of notification that the workflow produces."""

    SUBMISSION_RECEIVED = 'SUBMISSION_RECEIVED'
    ASSIGNMENT_INVITE = 'ASSIGNMENT_INVITE'
    DECISION_NOTICE = 'DECISION_NOTICE'
    REVISION_REQUEST = 'REVISION_REQUEST'
    MEMBER_INVITATION = 'MEMBER_INVITATION'


class NotificationFailed(IOError):
    """Raised when the notification service could not be reached."""


class NotificationDispatcher(object):
    """Sends notification requests to the notification service."""

    def __init__(self, endpoint: str, enabled: bool = True,
                 timeout: float = 5., verify: bool = True) -> None:
        """Create a new HTTP session."""
        self.endpoint = endpoint
        self.enabled = enabled
        self.timeout = timeout
        self.verify = verify
        self._session = requests.Session()
        self._retry = Retry(total=3, connect=3, read=2, backoff_factor=0.2)
        self._adapter = requests.adapters.HTTPAdapter(max_retries=self._retry)
        self._session.mount('http://', self._adapter)
        self._session.mount('https://', self._adapter)

    def send(self, kind: NotificationKind, recipient: str,
             template_data: Optional[Dict[str, Any]] = None) -> bool:
        """
        Request that a notification be sent.

        Parameters
        ----------
        kind : :class:`.NotificationKind`
        recipient : str
            E-mail address of the recipient.
        template_data : dict
            Values used to render the notification. Domain objects and
            timestamps are serialized.

        Returns
        -------
        bool
            ``False`` if notifications are disabled, or the service did not
            accept the request; ``True`` otherwise.

        Raises
        ------
        :class:`.NotificationFailed`
            Raised if the service could not be reached at all.

        """
        kind = NotificationKind(kind)
        if not self.enabled:
            logger.debug('Notifications disabled; not sending %s to %s',
                         kind.value, recipient)
            return False
        payload = serializer.to_native({
            'kind': kind.value,
            'recipient': recipient,
            'data': template_data or {}
        })
        try:
            response = self._session.post(self.endpoint, json=payload,
                                          timeout=self.timeout,
                                          verify=self.verify)
        except requests.exceptions.RequestException as e:
            raise NotificationFailed(f'Could not reach notification service:'
                                     f' {e}') from e
        if not response.ok:
            logger.error('Notification service rejected %s for %s: %i',
                         kind.value, recipient, response.status_code)
            return False
        logger.debug('Sent %s to %s', kind.value, recipient)
        return True


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('NOTIFICATIONS_ENABLED', True)
    app.config.setdefault('NOTIFICATION_ENDPOINT', DEFAULT_ENDPOINT)
    app.config.setdefault('NOTIFICATION_TIMEOUT', 5.)
    app.config.setdefault('NOTIFICATION_VERIFY', True)


def get_dispatcher() -> NotificationDispatcher:
    """
    Get the dispatcher for the current application.

    The dispatcher (and its HTTP session) is created once per application,
    and kept in ``app.extensions``. Outside of an application context,
    notifications are disabled.
    """
    if not has_app_context():
        return NotificationDispatcher(DEFAULT_ENDPOINT, enabled=False)
    app = current_app._get_current_object()
    dispatcher = app.extensions.get('notification_dispatcher')
    if dispatcher is None:
        config = app.config
        dispatcher = NotificationDispatcher(
            config.get('NOTIFICATION_ENDPOINT', DEFAULT_ENDPOINT),
            enabled=bool(config.get('NOTIFICATIONS_ENABLED', False)),
            timeout=float(config.get('NOTIFICATION_TIMEOUT', 5.)),
            verify=bool(config.get('NOTIFICATION_VERIFY', True))
        )
        app.extensions['notification_dispatcher'] = dispatcher
    return dispatcher
