"""Tests for review and decision events."""

from unittest import TestCase
from datetime import datetime, timedelta
from pytz import UTC

from .. import event
from ..agent import User, Role
from ..roster import Roster
from ..submission import Author, Submission, ReviewAssignment, Review, \
    Recommendation, DecisionResult
from ...exceptions import ValidationError, StateError, ConflictError, \
    NoSuchAssignment, PermissionDenied


def _roster(*users):
    return Roster(members={user.native_id: user for user in users})


class ReviewTestCase(TestCase):
    """Common fixtures."""

    def setUp(self):
        """Create a submission, an editor, and a couple of reviewers."""
        self.author = User('1', email='author@example.org',
                           roles=[Role.AUTHOR])
        self.editor = User('2', email='editor@example.org',
                           roles=[Role.EDITOR])
        self.reviewer = User('3', email='rev@example.org',
                             roles=[Role.REVIEWER])
        self.other_reviewer = User('4', email='rev2@example.org',
                                   roles=[Role.REVIEWER])
        self.roster = _roster(self.author, self.editor, self.reviewer,
                              self.other_reviewer)
        self.submission = Submission(
            creator=self.author, conference_id='conf-2025', title='Paper',
            submission_id=9, status=Submission.SUBMITTED,
            serial_number='SUB20250101000000ABCDEF',
            authors=[Author(name='A', email='author@example.org',
                            is_corresponding=True)],
            created=datetime.now(UTC)
        )

    def _assign(self, submission, *reviewer_ids, due_at=None):
        return event.AssignReviewers(
            creator=self.editor, reviewer_ids=list(reviewer_ids),
            due_at=due_at, roster=self.roster, created=datetime.now(UTC)
        ).apply(submission)

    def _review(self, submission, reviewer=None, score=15,
                recommendation=Recommendation.ACCEPT):
        return event.SubmitReview(
            creator=reviewer or self.reviewer, score=score,
            recommendation=recommendation, comment_to_author='Nice',
            created=datetime.now(UTC)
        ).apply(submission)


class TestAssignReviewers(ReviewTestCase):
    """Test :class:`event.AssignReviewers`."""

    def test_assign(self):
        """Assigning puts the submission under review."""
        due = datetime.now(UTC) + timedelta(days=14)
        after = self._assign(self.submission, '3', '4', due_at=due)
        self.assertEqual(after.status, Submission.UNDER_REVIEW)
        self.assertEqual(len(after.review_assignments), 2)
        for assignment in after.review_assignments:
            self.assertEqual(assignment.status, ReviewAssignment.PENDING)
            self.assertEqual(assignment.due_at, due)

    def test_due_date_as_string(self):
        """Due dates may be passed in ISO-8601 format."""
        e = event.AssignReviewers(creator=self.editor, reviewer_ids=['3'],
                                  due_at='2025-03-01T12:00:00Z')
        self.assertEqual(e.due_at, datetime(2025, 3, 1, 12, tzinfo=UTC))

    def test_duplicate_ids_collapse(self):
        """The same reviewer named twice is assigned once."""
        after = self._assign(self.submission, '3', 3)
        self.assertEqual(len(after.review_assignments), 1)

    def test_reassign_is_an_upsert(self):
        """Assigning again updates the due date, and resets the status."""
        after = self._assign(self.submission, '3')
        after.review_assignments[0].status = ReviewAssignment.DECLINED
        due = datetime.now(UTC) + timedelta(days=3)
        after = self._assign(after, '3', due_at=due)
        self.assertEqual(len(after.review_assignments), 1)
        self.assertEqual(after.review_assignments[0].status,
                         ReviewAssignment.PENDING)
        self.assertEqual(after.review_assignments[0].due_at, due)

    def test_reassign_without_due_date(self):
        """Re-assigning without a due date keeps the one already set."""
        due = datetime.now(UTC) + timedelta(days=7)
        after = self._assign(self.submission, '3', due_at=due)
        after = self._assign(after, '3')
        self.assertEqual(after.review_assignments[0].due_at, due)

    def test_reassign_after_review(self):
        """A submitted review is not reopened by re-assignment."""
        after = self._review(self._assign(self.submission, '3'))
        after = self._assign(after, '3')
        self.assertEqual(after.review_assignments[0].status,
                         ReviewAssignment.SUBMITTED)
        self.assertTrue(after.review_assignments[0].is_complete)

    def test_not_a_reviewer(self):
        """Only members with the REVIEWER role can be assigned."""
        with self.assertRaises(ValidationError):
            self._assign(self.submission, '2')

    def test_unknown_reviewer(self):
        """Reviewers must be on the roster."""
        with self.assertRaises(ValidationError):
            self._assign(self.submission, '404')

    def test_disabled_reviewer(self):
        """Reviewers pending activation cannot be assigned."""
        self.other_reviewer.enabled = False
        with self.assertRaises(ValidationError):
            self._assign(self.submission, '4')

    def test_no_reviewers(self):
        """At least one reviewer is required."""
        with self.assertRaises(ValidationError):
            self._assign(self.submission)

    def test_wrong_state(self):
        """Reviewers cannot be assigned once a decision is final."""
        self.submission.status = Submission.ACCEPTED
        with self.assertRaises(StateError):
            self._assign(self.submission, '3')

    def test_authors_cannot_assign(self):
        """Assignment requires an editor."""
        e = event.AssignReviewers(creator=self.author, reviewer_ids=['3'])
        with self.assertRaises(PermissionDenied):
            e.authorize()


class TestRespondToAssignment(ReviewTestCase):
    """Test :class:`event.RespondToAssignment`."""

    def setUp(self):
        """Assign a reviewer."""
        super(TestRespondToAssignment, self).setUp()
        self.submission = self._assign(self.submission, '3')

    def test_accept(self):
        """The assignment is accepted."""
        after = event.RespondToAssignment(creator=self.reviewer,
                                          accept=True).apply(self.submission)
        self.assertEqual(after.get_assignment('3').status,
                         ReviewAssignment.ACCEPTED)

    def test_decline(self):
        """The assignment is declined."""
        after = event.RespondToAssignment(creator=self.reviewer,
                                          accept=False).apply(self.submission)
        self.assertEqual(after.get_assignment('3').status,
                         ReviewAssignment.DECLINED)

    def test_respond_twice(self):
        """Only PENDING assignments can be answered."""
        after = event.RespondToAssignment(creator=self.reviewer,
                                          accept=True).apply(self.submission)
        with self.assertRaises(StateError):
            event.RespondToAssignment(creator=self.reviewer,
                                      accept=False).apply(after)

    def test_not_assigned(self):
        """Reviewers can only answer their own assignments."""
        with self.assertRaises(NoSuchAssignment):
            event.RespondToAssignment(creator=self.other_reviewer,
                                      accept=True).apply(self.submission)


class TestSubmitReview(ReviewTestCase):
    """Test :class:`event.SubmitReview`."""

    def setUp(self):
        """Assign a reviewer."""
        super(TestSubmitReview, self).setUp()
        self.submission = self._assign(self.submission, '3')

    def test_submit_review(self):
        """The review is recorded, and the assignment marked SUBMITTED."""
        after = self._review(self.submission, score=17,
                             recommendation='MINOR_REVISION')
        assignment = after.get_assignment('3')
        self.assertEqual(assignment.status, ReviewAssignment.SUBMITTED)
        self.assertIsInstance(assignment.review, Review)
        self.assertEqual(assignment.review.score, 17)
        self.assertIs(assignment.review.recommendation,
                      Recommendation.MINOR_REVISION)
        self.assertTrue(assignment.review.is_submitted)

    def test_score_bounds(self):
        """Scores must be integers between 4 and 20."""
        for score in (3, 21, 12.5, '12', None, True):
            with self.assertRaises(ValidationError, msg=repr(score)):
                self._review(self.submission, score=score)
        self._review(self.submission, score=4)
        self._review(self.submission, score=20)

    def test_bad_recommendation(self):
        """The recommendation must be a known value."""
        with self.assertRaises(ValidationError):
            self._review(self.submission, recommendation='SHRUG')

    def test_review_twice(self):
        """A review is final once submitted."""
        after = self._review(self.submission)
        with self.assertRaises(ConflictError):
            self._review(after, score=5)
        self.assertEqual(after.get_assignment('3').review.score, 15)

    def test_declined(self):
        """A declined assignment cannot be reviewed."""
        after = event.RespondToAssignment(creator=self.reviewer,
                                          accept=False).apply(self.submission)
        with self.assertRaises(StateError):
            self._review(after)

    def test_not_assigned(self):
        """Reviewers can only review submissions assigned to them."""
        with self.assertRaises(NoSuchAssignment):
            self._review(self.submission, reviewer=self.other_reviewer)


class TestRecordDecision(ReviewTestCase):
    """Test :class:`event.RecordDecision`."""

    def setUp(self):
        """Put the submission under review."""
        super(TestRecordDecision, self).setUp()
        self.submission = self._assign(self.submission, '3')

    def _decide(self, submission, result, note=''):
        return event.RecordDecision(creator=self.editor, result=result,
                                    note=note, created=datetime.now(UTC)) \
            .apply(submission)

    def test_accept_after_review(self):
        """Acceptance with a completed review is not anomalous."""
        after = self._decide(self._review(self.submission),
                             DecisionResult.ACCEPT, 'Well done')
        self.assertEqual(after.status, Submission.ACCEPTED)
        self.assertEqual(after.decision_note, 'Well done')
        self.assertFalse(after.latest_decision.anomalous)
        self.assertEqual(after.latest_decision.decided_by, '2')

    def test_accept_without_review(self):
        """Acceptance without a completed review is flagged."""
        with self.assertLogs('confsubmit.domain.event.decision', 'WARNING'):
            after = self._decide(self.submission, 'ACCEPT')
        self.assertEqual(after.status, Submission.ACCEPTED)
        self.assertTrue(after.latest_decision.anomalous)

    def test_reject_without_review(self):
        """Only acceptance is considered anomalous."""
        after = self._decide(self.submission, 'REJECT')
        self.assertEqual(after.status, Submission.REJECTED)
        self.assertFalse(after.latest_decision.anomalous)

    def test_revise(self):
        """A revision decision sends the submission back to the author."""
        after = self._decide(self.submission, 'REVISE')
        self.assertEqual(after.status, Submission.REVISION_REQUIRED)
        self.assertTrue(after.is_editable)

    def test_decisions_are_appended(self):
        """Earlier decisions are kept."""
        after = self._decide(self.submission, 'REVISE')
        after.status = Submission.UNDER_REVIEW    # As if resubmitted.
        after = self._decide(after, 'REJECT')
        self.assertEqual([d.result for d in after.decisions],
                         [DecisionResult.REVISE, DecisionResult.REJECT])
        self.assertIs(after.latest_decision.result, DecisionResult.REJECT)

    def test_not_under_review(self):
        """Decisions can only be made on submissions under review."""
        self.submission.status = Submission.SUBMITTED
        with self.assertRaises(StateError):
            self._decide(self.submission, 'ACCEPT')

    def test_bad_result(self):
        """The result must be a known value."""
        with self.assertRaises(ValidationError):
            self._decide(self.submission, 'MAYBE')

    def test_reviewers_cannot_decide(self):
        """Decisions require an editor."""
        e = event.RecordDecision(creator=self.reviewer, result='ACCEPT')
        with self.assertRaises(PermissionDenied):
            e.authorize()
