"""Events related to editorial decisions."""

import logging
from typing import Any

from dataclasses import field

from ...exceptions import ValidationError
from ..agent import Role
from ..submission import Submission, Decision, DecisionResult
from . import validators
from .base import Event
from .util import dataclass

logger = logging.getLogger(__name__)

RESULT_STATUS = {
    DecisionResult.ACCEPT: Submission.ACCEPTED,
    DecisionResult.REVISE: Submission.REVISION_REQUIRED,
    DecisionResult.REJECT: Submission.REJECTED,
}
"""The status that follows from each kind of decision."""


def status_for(result: DecisionResult) -> str:
    """Get the submission status that follows from ``result``."""
    return RESULT_STATUS[DecisionResult(result)]


@dataclass()
class RecordDecision(Event):
    """
    Record an editorial decision on a :class:`.Submission`.

    Decisions are append-only: each one is added to
    :attr:`.Submission.decisions`, and the latest determines the status.
    Accepting a submission that has no completed reviews is allowed (editors
    may override), but the decision is flagged as anomalous and a warning is
    logged.
    """

    NAME = "record decision"
    NAMED = "decision recorded"

    REQUIRED_ROLES = (Role.EDITOR, Role.CHIEF_EDITOR)

    result: Any = field(default=None)
    note: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """Accept results passed as enum members."""
        super(RecordDecision, self).__post_init__()
        if isinstance(self.result, DecisionResult):
            self.result = self.result.value

    def validate(self, submission: Submission) -> None:
        """The result must be valid, and the submission under review."""
        validators.must_be_a_submission(self, submission)
        self._result_is_valid()
        validators.status_must_be(self, submission, Submission.UNDER_REVIEW)
        validators.must_transition_to(self, submission,
                                      status_for(self.result))
        if self.is_anomalous(submission):
            logger.warning('Submission %s accepted by %s without any'
                           ' completed reviews', submission.submission_id,
                           self.creator.native_id)

    def project(self, submission: Submission) -> Submission:
        """Append the decision, and update the status."""
        submission.decisions.append(Decision(
            decided_by=self.creator.native_id,
            result=DecisionResult(self.result),
            note=self.note,
            decided=self.created,
            anomalous=self.is_anomalous(submission)
        ))
        submission.status = status_for(self.result)
        submission.decision_note = self.note
        return submission

    def is_anomalous(self, submission: Submission) -> bool:
        """Acceptance without any completed review is out of the ordinary."""
        return self.result == DecisionResult.ACCEPT.value \
            and not submission.completed_reviews

    def _result_is_valid(self) -> None:
        valid = [r.value for r in DecisionResult]
        if self.result not in valid:
            raise ValidationError(self, f'Result must be one of'
                                        f' {", ".join(valid)}')
