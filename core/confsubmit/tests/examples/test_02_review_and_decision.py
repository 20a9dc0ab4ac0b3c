"""Example 2: a submission is reviewed, revised, and accepted."""

from datetime import datetime, timedelta
from unittest import TestCase, mock

from flask import Flask
from pytz import UTC

from ... import save, save_roster, load_fast, domain, exceptions, core, \
    rules
from ...services.notification import NotificationKind
from ..util import in_memory_db, make_user, make_authors, all_agreements, \
    add_conference, add_staff, CONFERENCE_ID


class TestReviewCycle(TestCase):
    """
    Editors assign reviewers to a new submission, reviewers report, and the
    editors make a decision.

    Authors, reviewers and the corresponding author are notified along the
    way. Notifications never hold up the workflow.
    """

    def setUp(self):
        """Submit a paper, and register the editorial staff."""
        self.app = Flask('foo')
        self.app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
        self.app.config['NOTIFICATIONS_ENABLED'] = False
        core.init_app(self.app)
        self.db = in_memory_db(self.app)
        self.db.__enter__()
        add_conference()

        self.author = make_user('100', domain.Role.AUTHOR)
        self.editor = make_user('2', domain.Role.EDITOR)
        self.reviewers = [make_user(str(i), domain.Role.REVIEWER)
                          for i in (30, 31)]
        add_staff(self.editor, *self.reviewers)

        self.submission, _ = save(domain.event.CreateSubmission(
            creator=self.author, conference_id=CONFERENCE_ID,
            title='Reviewed paper', authors=make_authors(2),
            agreements=all_agreements(), submit=True
        ))
        self.submission_id = self.submission.submission_id
        self.due = datetime.now(UTC) + timedelta(days=14)

    def tearDown(self):
        """Clear the database after each test."""
        self.db.__exit__(None, None, None)

    def _assign(self, *reviewer_ids):
        return save(domain.event.AssignReviewers(
            creator=self.editor, reviewer_ids=list(reviewer_ids),
            due_at=self.due
        ), submission_id=self.submission_id)[0]

    def _review(self, reviewer, recommendation, score=15):
        return save(domain.event.SubmitReview(
            creator=reviewer, score=score, recommendation=recommendation,
            comment_to_author='Thoughtful comments'
        ), submission_id=self.submission_id)[0]

    @mock.patch(f'{rules.notifications.__name__}.get_dispatcher')
    def test_review_cycle(self, mock_get_dispatcher):
        """The submission goes around once, and is then accepted."""
        dispatcher = mock_get_dispatcher.return_value

        submission = self._assign('30', '31')
        self.assertEqual(submission.status, domain.Submission.UNDER_REVIEW)
        invited = {c[0][1] for c in dispatcher.send.call_args_list
                   if c[0][0] is NotificationKind.ASSIGNMENT_INVITE}
        self.assertEqual(invited, {'user30@example.org',
                                   'user31@example.org'})

        save(domain.event.RespondToAssignment(creator=self.reviewers[0],
                                              accept=True),
             submission_id=self.submission_id)
        save(domain.event.RespondToAssignment(creator=self.reviewers[1],
                                              accept=False),
             submission_id=self.submission_id)
        self._review(self.reviewers[0], 'MAJOR_REVISION', score=9)
        with self.assertRaises(exceptions.StateError):
            self._review(self.reviewers[1], 'ACCEPT')

        dispatcher.reset_mock()
        submission, _ = save(domain.event.RecordDecision(
            creator=self.editor, result='REVISE', note='Please fix it'
        ), submission_id=self.submission_id)
        self.assertEqual(submission.status,
                         domain.Submission.REVISION_REQUIRED)
        dispatcher.send.assert_called_once()
        kind, recipient, context = dispatcher.send.call_args[0]
        self.assertIs(kind, NotificationKind.REVISION_REQUEST)
        self.assertEqual(recipient, 'author0@example.org')
        self.assertEqual(context['note'], 'Please fix it')

        # The author revises and resubmits.
        save(domain.event.EditSubmission(creator=self.author,
                                         abstract='Now with proofs.'),
             submission_id=self.submission_id)
        submission, _ = save(
            domain.event.SubmitSubmission(creator=self.author),
            submission_id=self.submission_id
        )
        self.assertEqual(submission.status, domain.Submission.SUBMITTED)
        self.assertEqual(submission.serial_number,
                         self.submission.serial_number,
                         'The serial number is never regenerated')

        # The same reviewer is assigned again; the completed review stays.
        submission = self._assign('30')
        self.assertEqual(len(submission.review_assignments), 2)
        self.assertTrue(submission.get_assignment('30').is_complete)
        with self.assertRaises(exceptions.ConflictError):
            self._review(self.reviewers[0], 'ACCEPT')

        dispatcher.reset_mock()
        submission, _ = save(domain.event.RecordDecision(
            creator=self.editor, result='ACCEPT'
        ), submission_id=self.submission_id)
        self.assertEqual(submission.status, domain.Submission.ACCEPTED)
        self.assertIs(dispatcher.send.call_args[0][0],
                      NotificationKind.DECISION_NOTICE)

        loaded = load_fast(self.submission_id)
        self.assertEqual([d.result for d in loaded.decisions],
                         [domain.DecisionResult.REVISE,
                          domain.DecisionResult.ACCEPT])
        self.assertFalse(loaded.latest_decision.anomalous)
        with self.assertRaises(exceptions.StateError):
            save(domain.event.WithdrawSubmission(creator=self.author),
                 submission_id=self.submission_id)

    def test_anomalous_acceptance(self):
        """Accepting without reviews is allowed, but flagged."""
        self._assign('30')
        submission, _ = save(domain.event.RecordDecision(
            creator=self.editor, result='ACCEPT'
        ), submission_id=self.submission_id)
        self.assertTrue(submission.latest_decision.anomalous)
        self.assertTrue(load_fast(self.submission_id)
                        .latest_decision.anomalous)

    def test_notification_failure(self):
        """A notification that cannot be sent does not undo the decision."""
        self._assign('30')
        with mock.patch(f'{rules.notifications.__name__}.get_dispatcher') \
                as mock_get_dispatcher:
            mock_get_dispatcher.return_value.send.side_effect = \
                IOError('down')
            submission, _ = save(domain.event.RecordDecision(
                creator=self.editor, result='REJECT'
            ), submission_id=self.submission_id)
        self.assertEqual(submission.status, domain.Submission.REJECTED)
        self.assertEqual(load_fast(self.submission_id).status,
                         domain.Submission.REJECTED)

    def test_reviewer_cannot_decide(self):
        """Reviewers may not record decisions."""
        self._assign('30')
        with self.assertRaises(exceptions.PermissionDenied):
            save(domain.event.RecordDecision(creator=self.reviewers[0],
                                             result='ACCEPT'),
                 submission_id=self.submission_id)

    def test_assign_disabled_reviewer(self):
        """Reviewers pending activation cannot be assigned."""
        chief = make_user('1', domain.Role.CHIEF_EDITOR)
        add_staff(chief)
        save_roster(domain.event.SetMemberStatus(creator=chief,
                                                 user_id='31',
                                                 enabled=False))
        with self.assertRaises(exceptions.ValidationError):
            self._assign('31')
