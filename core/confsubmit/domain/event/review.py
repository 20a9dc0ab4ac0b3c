"""Events related to reviewer assignment and reviews."""

from datetime import datetime
from typing import List, Optional, Any

from dataclasses import field
from dateutil.parser import parse as parse_date

from ...exceptions import ValidationError, StateError, ConflictError, \
    NoSuchAssignment
from ..agent import Role
from ..roster import Roster
from ..submission import Submission, ReviewAssignment, Review, \
    Recommendation
from ..util import as_utc
from . import validators
from .base import Event
from .util import dataclass

EDITOR_ROLES = (Role.EDITOR, Role.CHIEF_EDITOR)
REVIEWER_ROLES = (Role.REVIEWER,)


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, str):
        value = parse_date(value)
    return as_utc(value)


@dataclass()
class AssignReviewers(Event):
    """
    Assign reviewers to a :class:`.Submission`.

    Assignments are keyed on the (submission, reviewer) pair. Assigning a
    reviewer who is already assigned updates the due date of the existing
    assignment and puts it back to PENDING, unless the review has already
    been submitted; no duplicate assignment is created.

    Capacity is not enforced here. See :mod:`.domain.workload`.
    """

    NAME = "assign reviewers"
    NAMED = "reviewers assigned"

    REQUIRED_ROLES = EDITOR_ROLES
    SERIALIZE_EXCLUDE = Event.SERIALIZE_EXCLUDE + ('roster',)

    reviewer_ids: List[str] = field(default_factory=list)
    due_at: Optional[datetime] = field(default=None)
    roster: Optional[Roster] = field(default=None)
    """Resolved by the caller, so that the reviewers can be checked."""

    def __post_init__(self) -> None:
        """Coerce identifiers and dates, and drop duplicate reviewers."""
        super(AssignReviewers, self).__post_init__()
        unique: List[str] = []
        for reviewer_id in self.reviewer_ids:
            if str(reviewer_id) not in unique:
                unique.append(str(reviewer_id))
        self.reviewer_ids = unique
        self.due_at = _coerce_datetime(self.due_at)

    def validate(self, submission: Submission) -> None:
        """Reviewers must exist and hold the REVIEWER role."""
        validators.must_be_a_submission(self, submission)
        validators.status_must_be(self, submission, Submission.SUBMITTED,
                                  Submission.UNDER_REVIEW)
        if not self.reviewer_ids:
            raise ValidationError(self, 'At least one reviewer is required')
        self._reviewers_are_eligible()

    def project(self, submission: Submission) -> Submission:
        """Upsert an assignment for each reviewer."""
        for reviewer_id in self.reviewer_ids:
            assignment = submission.get_assignment(reviewer_id)
            if assignment is None:
                submission.review_assignments.append(ReviewAssignment(
                    reviewer_id=reviewer_id,
                    due_at=self.due_at,
                    created=self.created,
                    submission_id=submission.submission_id
                ))
                continue
            if self.due_at is not None:
                assignment.due_at = self.due_at
            if not assignment.is_complete:
                assignment.status = ReviewAssignment.PENDING
        submission.status = Submission.UNDER_REVIEW
        return submission

    def _reviewers_are_eligible(self) -> None:
        if self.roster is None:
            raise ValidationError(self, 'Unable to verify reviewers')
        for reviewer_id in self.reviewer_ids:
            reviewer = self.roster.get(reviewer_id)
            if reviewer is None:
                raise ValidationError(self, f'No such reviewer: {reviewer_id}')
            if not reviewer.has_role(Role.REVIEWER):
                raise ValidationError(self, f'User {reviewer_id} is not a'
                                            f' reviewer')
            if not reviewer.enabled:
                raise ValidationError(self, f'Reviewer {reviewer_id} is not'
                                            f' active')


def _assignment_for(event: Event, submission: Submission) -> ReviewAssignment:
    """Get the assignment held by the creator of the event."""
    assignment = submission.get_assignment(event.creator.native_id)
    if assignment is None:
        raise NoSuchAssignment(f'No assignment on submission'
                               f' {submission.submission_id}')
    return assignment


@dataclass()
class RespondToAssignment(Event):
    """A reviewer accepts or declines an assignment."""

    NAME = "respond to assignment"
    NAMED = "assignment answered"

    REQUIRED_ROLES = REVIEWER_ROLES

    accept: bool = field(default=True)

    def validate(self, submission: Submission) -> None:
        """Only PENDING assignments may be answered."""
        validators.must_be_a_submission(self, submission)
        validators.status_must_be(self, submission, Submission.UNDER_REVIEW)
        assignment = _assignment_for(self, submission)
        if assignment.status != ReviewAssignment.PENDING:
            raise StateError(self, f'Assignment is {assignment.status}')

    def project(self, submission: Submission) -> Submission:
        """Set the status of the assignment."""
        assignment = _assignment_for(self, submission)
        if self.accept:
            assignment.status = ReviewAssignment.ACCEPTED
        else:
            assignment.status = ReviewAssignment.DECLINED
        return submission


@dataclass()
class SubmitReview(Event):
    """
    A reviewer submits their review.

    A review is final once submitted: a second submission for the same
    assignment is rejected with :class:`.ConflictError`, and the original
    review is left untouched.
    """

    NAME = "submit review"
    NAMED = "review submitted"

    REQUIRED_ROLES = REVIEWER_ROLES

    MIN_SCORE = 4
    MAX_SCORE = 20

    score: Any = field(default=None)
    recommendation: Any = field(default=None)
    comment_to_editor: str = field(default_factory=str)
    comment_to_author: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """Accept recommendations passed as enum members."""
        super(SubmitReview, self).__post_init__()
        if isinstance(self.recommendation, Recommendation):
            self.recommendation = self.recommendation.value

    def validate(self, submission: Submission) -> None:
        """The review must be complete, and not already submitted."""
        validators.must_be_a_submission(self, submission)
        assignment = _assignment_for(self, submission)
        if assignment.is_complete:
            raise ConflictError(f'Review for submission'
                                f' {submission.submission_id} has already'
                                f' been submitted')
        if assignment.status == ReviewAssignment.DECLINED:
            raise StateError(self, 'Assignment was declined')
        validators.status_must_be(self, submission, Submission.UNDER_REVIEW)
        self._recommendation_is_valid()
        self._score_is_in_range()

    def project(self, submission: Submission) -> Submission:
        """Finalize the review, and mark the assignment SUBMITTED."""
        assignment = _assignment_for(self, submission)
        assignment.review = Review(
            score=int(self.score),
            recommendation=Recommendation(self.recommendation),
            comment_to_editor=self.comment_to_editor,
            comment_to_author=self.comment_to_author,
            submitted=self.created
        )
        assignment.status = ReviewAssignment.SUBMITTED
        return submission

    def _recommendation_is_valid(self) -> None:
        valid = [r.value for r in Recommendation]
        if self.recommendation not in valid:
            raise ValidationError(self, f'Recommendation must be one of'
                                        f' {", ".join(valid)}')

    def _score_is_in_range(self) -> None:
        if isinstance(self.score, bool) or not isinstance(self.score, int):
            raise ValidationError(self, 'Score must be an integer')
        if not self.MIN_SCORE <= self.score <= self.MAX_SCORE:
            raise ValidationError(self, f'Score must be between'
                                        f' {self.MIN_SCORE} and'
                                        f' {self.MAX_SCORE}')
