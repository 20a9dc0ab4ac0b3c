"""
Heuristics for reviewer workload and queue priority.

These are pure functions of assignments and the current time, so that the
thresholds can be tested without a database.

- A reviewer is *available* while they have fewer than
  :const:`REVIEWER_CAPACITY` assignments that are PENDING or ACCEPTED. This
  is advisory only: assigning a reviewer who is over capacity is allowed.
- In a reviewer's queue, an assignment that is overdue or due within
  :const:`HIGH_PRIORITY_DAYS` days is high priority, one due within
  :const:`MEDIUM_PRIORITY_DAYS` days is medium priority, and anything else is
  low priority. An assignment without a due date is medium priority.
"""

import math
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from dataclasses import dataclass, field

from .submission import ReviewAssignment, Submission, Recommendation
from .util import as_utc, get_tzaware_utc_now

HIGH = 'high'
MEDIUM = 'medium'
LOW = 'low'

REVIEWER_CAPACITY = 3
HIGH_PRIORITY_DAYS = 3
MEDIUM_PRIORITY_DAYS = 7

STALE_SUBMISSION = timedelta(days=7)
"""A submission waiting this long for reviewers is high priority."""

STALE_REVIEW = timedelta(days=30)
"""A submission under review this long is high priority."""

AGING = timedelta(days=14)
"""Anything else older than this is medium priority."""


@dataclass
class ReviewerWorkload:
    """A snapshot of how busy a reviewer is."""

    reviewer_id: str
    current_assignments: int = field(default=0)
    completed_reviews: int = field(default=0)

    @property
    def is_available(self) -> bool:
        return self.current_assignments < REVIEWER_CAPACITY


def days_until(due_at: datetime, now: Optional[datetime] = None) -> int:
    """Whole days remaining until ``due_at``, rounded up."""
    if now is None:
        now = get_tzaware_utc_now()
    delta = as_utc(due_at) - as_utc(now)
    return math.ceil(delta.total_seconds() / 86400)


def review_priority(due_at: Optional[datetime],
                    now: Optional[datetime] = None) -> str:
    """
    Priority of an assignment in a reviewer's queue.

    Parameters
    ----------
    due_at : datetime or None
        When the review is due.
    now : datetime
        Defaults to the current time in UTC.

    Returns
    -------
    str
        One of :const:`HIGH`, :const:`MEDIUM`, or :const:`LOW`.

    """
    if due_at is None:
        return MEDIUM
    remaining = days_until(due_at, now)
    if remaining <= HIGH_PRIORITY_DAYS:     # Includes overdue.
        return HIGH
    if remaining <= MEDIUM_PRIORITY_DAYS:
        return MEDIUM
    return LOW


def reviewer_workload(reviewer_id: str,
                      assignments: Iterable[ReviewAssignment]) \
        -> ReviewerWorkload:
    """Summarize the assignments held by a single reviewer."""
    workload = ReviewerWorkload(reviewer_id=str(reviewer_id))
    for assignment in assignments:
        if assignment.reviewer_id != workload.reviewer_id:
            continue
        if assignment.is_current:
            workload.current_assignments += 1
        if assignment.is_complete:
            workload.completed_reviews += 1
    return workload


def submission_priority(submission: Submission,
                        now: Optional[datetime] = None) -> str:
    """Priority of a submission in the editors' listing."""
    if now is None:
        now = get_tzaware_utc_now()
    since = as_utc(submission.submitted or submission.created or now)
    age = as_utc(now) - since
    if submission.status == Submission.SUBMITTED and age > STALE_SUBMISSION:
        return HIGH
    if submission.status == Submission.UNDER_REVIEW and age > STALE_REVIEW:
        return HIGH
    if submission.status == Submission.REVISION_REQUIRED:
        return HIGH
    if age > AGING:
        return MEDIUM
    return LOW


def review_status(assignments: List[ReviewAssignment]) -> str:
    """Human-readable progress of reviews on a submission."""
    if not assignments:
        return 'unassigned'
    complete = len([a for a in assignments if a.is_complete])
    if complete == len(assignments):
        return 'completed'
    return f'in progress ({complete}/{len(assignments)})'


def review_recommendation(assignments: List[ReviewAssignment]) -> str:
    """Consensus of the submitted reviews, for the editors' listing."""
    reviews = [a.review for a in assignments
               if a.is_complete and a.review is not None]
    if not reviews:
        return 'reviewing'
    accepts = len([r for r in reviews
                   if r.recommendation is Recommendation.ACCEPT])
    rejects = len([r for r in reviews
                   if r.recommendation is Recommendation.REJECT])
    revisions = len(reviews) - accepts - rejects
    if accepts > rejects:
        return 'accept'
    if rejects > accepts:
        return 'reject'
    if revisions > 0:
        return 'revise'
    return 'reviewing'
