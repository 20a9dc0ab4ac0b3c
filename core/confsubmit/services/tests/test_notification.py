"""Tests for :mod:`confsubmit.services.notification`."""

from datetime import datetime
from unittest import TestCase, mock

import requests
from flask import Flask
from pytz import UTC

from .. import notification
from ..notification import NotificationDispatcher, NotificationKind, \
    NotificationFailed


class TestSend(TestCase):
    """Notification requests are POSTed to the service."""

    def setUp(self):
        """Create a dispatcher with a mocked HTTP session."""
        self.dispatcher = NotificationDispatcher('http://notify/api')
        self.dispatcher._session = mock.MagicMock()

    def test_send(self):
        """The request is serialized, and sent to the endpoint."""
        self.dispatcher._session.post.return_value = \
            mock.MagicMock(ok=True, status_code=202)
        due = datetime(2025, 5, 1, 12, 0, tzinfo=UTC)
        sent = self.dispatcher.send('ASSIGNMENT_INVITE', 'rev@example.org',
                                    {'due_at': due, 'title': 'A paper'})
        self.assertTrue(sent)

        (endpoint,), kwargs = self.dispatcher._session.post.call_args
        self.assertEqual(endpoint, 'http://notify/api')
        payload = kwargs['json']
        self.assertEqual(payload['kind'], 'ASSIGNMENT_INVITE')
        self.assertEqual(payload['recipient'], 'rev@example.org')
        self.assertEqual(payload['data']['title'], 'A paper')
        self.assertIsInstance(payload['data']['due_at'], str)
        self.assertEqual(kwargs['timeout'], 5.)

    def test_rejected(self):
        """The service may refuse the request."""
        self.dispatcher._session.post.return_value = \
            mock.MagicMock(ok=False, status_code=400)
        with self.assertLogs(notification.__name__, 'ERROR'):
            sent = self.dispatcher.send(NotificationKind.DECISION_NOTICE,
                                        'a@example.org')
        self.assertFalse(sent)

    def test_unreachable(self):
        """A connection failure is raised."""
        self.dispatcher._session.post.side_effect = \
            requests.exceptions.ConnectionError('nope')
        with self.assertRaises(NotificationFailed):
            self.dispatcher.send(NotificationKind.DECISION_NOTICE,
                                 'a@example.org')

    def test_disabled(self):
        """Nothing is sent when notifications are turned off."""
        self.dispatcher.enabled = False
        self.assertFalse(self.dispatcher.send(
            NotificationKind.MEMBER_INVITATION, 'a@example.org'
        ))
        self.dispatcher._session.post.assert_not_called()

    def test_unknown_kind(self):
        """Only known kinds of notification can be sent."""
        with self.assertRaises(ValueError):
            self.dispatcher.send('BIRTHDAY_GREETING', 'a@example.org')


class TestGetDispatcher(TestCase):
    """The dispatcher is configured from the application."""

    def test_outside_app_context(self):
        """Without an application, notifications are disabled."""
        self.assertFalse(notification.get_dispatcher().enabled)

    def test_configured(self):
        """Defaults are set by ``init_app``, and can be overridden."""
        app = Flask('test')
        app.config['NOTIFICATION_ENDPOINT'] = 'https://notify/v1'
        notification.init_app(app)
        with app.app_context():
            dispatcher = notification.get_dispatcher()
        self.assertTrue(dispatcher.enabled)
        self.assertEqual(dispatcher.endpoint, 'https://notify/v1')
        self.assertEqual(dispatcher.timeout, 5.)

    def test_one_dispatcher_per_app(self):
        """The dispatcher and its session are reused within an app."""
        app = Flask('test')
        notification.init_app(app)
        with app.app_context():
            first = notification.get_dispatcher()
        with app.app_context():
            second = notification.get_dispatcher()
        self.assertIs(first, second)
        self.assertIs(first._session, second._session)

        other = Flask('other')
        notification.init_app(other)
        with other.app_context():
            self.assertIsNot(notification.get_dispatcher(), first)
