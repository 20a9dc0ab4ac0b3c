"""Core data structures for the conference submission workflow."""

from .agent import Agent, User, System, Role, agent_factory
from .meta import Conference, FileKind
from .submission import Author, Agreements, FileAsset, Review, \
    Recommendation, ReviewAssignment, Decision, DecisionResult, Draft, \
    Submission, Manuscript
from .roster import Roster
from .query import SubmissionQuery, Scope, Page
from .workload import ReviewerWorkload, reviewer_workload, review_priority
from .event import event_factory, Event
