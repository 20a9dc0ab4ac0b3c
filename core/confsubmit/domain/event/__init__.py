"""
Data structures for manuscript events.

- Events have unique identifiers generated from their data (creation, agent,
  event type).
- Events declare the roles required to issue them.
- Events provide methods to update a manuscript based on the event data.
- Events provide validation methods for event data.

Writing new events/commands
===========================

Events/commands are implemented as classes that inherit from :class:`.Event`.
It should:

- Be a dataclass (i.e. be decorated with :func:`.util.dataclass`).
- Define (using :func:`dataclasses.field`) associated data.
- Declare :attr:`.Event.REQUIRED_ROLES`, if only some users may issue it.
- Implement a validation method with the signature
  ``validate(self, manuscript) -> None`` (see below).
- Implement a projection method with the signature
  ``project(self, manuscript) -> Manuscript`` that mutates the passed
  :class:`.Draft` or :class:`.Submission` and returns it, or returns a
  different manuscript altogether (see :class:`.PromoteDraft`). The
  projection *must not* generate side-effects. If you need to generate a
  side-effect, see :ref:`callbacks`.
- Have a corresponding :class:`unittest.TestCase` in
  :mod:`confsubmit.domain.tests`.

Adding validation to events
===========================

Each command/event class should implement an instance method
``validate(self, manuscript) -> None`` that raises one of the subclasses of
:class:`.InvalidEvent` if the event cannot be applied:

- :class:`.ValidationError` if the event data are missing or malformed;
- :class:`.StateError` if the manuscript is not in a state that allows the
  event;
- :class:`.PolicyError` if applying the event would break a standing policy.

Validation steps that are shared by several event types live in
:mod:`.validators`. Steps that are specific to one event type should be
private instance methods, called from the public ``validate`` method.

.. _callbacks:

Registering event callbacks
===========================

The base :class:`Event` provides support for callbacks that are executed
after an event instance is committed. To attach a callback to an event type,
use the :func:`Event.bind` decorator. For example:

.. code-block:: python

   @RecordDecision.bind()
   def tell_the_author(event, before, after):
       ...

Callbacks are run by :func:`.core.save` once the transaction has been
committed. They cannot modify the manuscript, and failures are logged and
swallowed. Setting ``ENABLE_CALLBACKS=0`` disables callbacks entirely.

"""

import re
from typing import Optional, List, Any, ClassVar, Tuple

from dataclasses import field

from ...exceptions import InvalidEvent, ValidationError
from ..agent import Role
from ..meta import Conference, FileKind
from ..submission import Author, Agreements, Draft, FileAsset, Submission, \
    Manuscript
from ..util import generate_serial_number
from . import validators
from .base import Event, event_factory
from .util import dataclass
from .review import AssignReviewers, RespondToAssignment, SubmitReview
from .decision import RecordDecision
from .member import AddMember, ChangeMemberRoles, SetMemberStatus, \
    DeleteMember

AUTHOR_ROLES = (Role.AUTHOR,)


def _clean_text(value: Optional[str]) -> Optional[str]:
    """Perform some light tidying on free text."""
    if value is None:
        return None
    return re.sub(r"\s+", " ", value).strip()


def _clean_keywords(keywords: Any) -> List[str]:
    """Keywords may arrive as a comma-separated string."""
    if isinstance(keywords, str):
        keywords = keywords.split(',')
    return [kw.strip() for kw in keywords or [] if kw and kw.strip()]


def _coerce_authors(authors: Optional[List[Any]]) -> Optional[List[Author]]:
    if authors is None:
        return None
    coerced = [Author(**a) if isinstance(a, dict) else a for a in authors]
    for order, author in enumerate(coerced):
        author.order = order
    return coerced


def _coerce_agreements(agreements: Any) -> Optional[Agreements]:
    if isinstance(agreements, dict):
        return Agreements(**agreements)
    return agreements


@dataclass()
class ContentEvent(Event):
    """Base for events that carry manuscript content."""

    title: Optional[str] = field(default=None)
    abstract: Optional[str] = field(default=None)
    track: Optional[str] = field(default=None)
    paper_type: Optional[str] = field(default=None)
    keywords: Optional[List[str]] = field(default=None)
    authors: Optional[List[Author]] = field(default=None)
    """If provided, replaces the authors wholesale."""

    agreements: Optional[Agreements] = field(default=None)

    def __post_init__(self) -> None:
        """Tidy up the provided content."""
        super(ContentEvent, self).__post_init__()
        self.title = _clean_text(self.title)
        self.abstract = _clean_text(self.abstract)
        if self.keywords is not None:
            self.keywords = _clean_keywords(self.keywords)
        self.authors = _coerce_authors(self.authors)
        self.agreements = _coerce_agreements(self.agreements)

    def _check_for_html(self) -> None:
        """Titles and abstracts are plain text."""
        validators.no_markup(self, self.title)
        validators.no_markup(self, self.abstract)

    def _update_content(self, manuscript: Manuscript) -> Manuscript:
        for key in ('title', 'abstract', 'track', 'paper_type', 'keywords',
                    'authors', 'agreements'):
            value = getattr(self, key)
            if value is not None:
                setattr(manuscript, key, value)
        return manuscript


# Events related to drafting.
#
# A draft belongs to its creator, and is invisible to everyone else.


@dataclass()
class CreateDraft(ContentEvent):
    """Start a new :class:`.Draft` for a conference."""

    NAME = "create draft"
    NAMED = "draft created"

    REQUIRED_ROLES = AUTHOR_ROLES
    SERIALIZE_EXCLUDE = Event.SERIALIZE_EXCLUDE + ('conference',)

    conference_id: str = field(default_factory=str)
    conference: Optional[Conference] = field(default=None)
    """Resolved by the caller, so that we can check that it is open."""

    def validate(self, manuscript: None = None) -> None:
        """The conference must be open, and authors must make sense."""
        self._check_for_html()
        if not self.conference_id:
            raise ValidationError(self, 'A conference is required')
        validators.conference_is_open(self, self.conference, self.track)
        if self.authors:
            validators.at_most_one_corresponding_author(self, self.authors)

    def project(self, manuscript: None = None) -> Draft:
        """Create a new :class:`.Draft`."""
        draft = Draft(creator=self.creator, conference_id=self.conference_id,
                      created=self.created)
        self._update_content(draft)
        if not draft.title:
            draft.title = Draft.DEFAULT_TITLE
        return draft


@dataclass()
class UpdateDraft(ContentEvent):
    """Change the content of a :class:`.Draft`."""

    NAME = "update draft"
    NAMED = "draft updated"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, draft: Draft) -> None:
        """Only the owner may update a draft."""
        self._check_for_html()
        validators.must_be_a_draft(self, draft)
        validators.must_own_draft(self, draft)
        if self.authors:
            validators.at_most_one_corresponding_author(self, self.authors)

    def project(self, draft: Draft) -> Draft:
        """Replace the content of the draft."""
        return self._update_content(draft)


@dataclass()
class DeleteDraft(Event):
    """Discard a :class:`.Draft`, along with its authors and files."""

    NAME = "delete draft"
    NAMED = "draft deleted"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, draft: Draft) -> None:
        """Only the owner may delete a draft."""
        validators.must_be_a_draft(self, draft)
        validators.must_own_draft(self, draft)

    def project(self, draft: Draft) -> Draft:
        """Mark the draft as deleted."""
        draft.deleted = True
        return draft


@dataclass()
class AddFile(Event):
    """
    Attach a new version of a file to a manuscript.

    The file itself must already have been persisted by the file store; this
    event records the descriptor that it returned. Versions of each kind of
    file start at 1, and the highest version is the current one.
    """

    NAME = "add file"
    NAMED = "file added"

    REQUIRED_ROLES = AUTHOR_ROLES

    kind: FileKind = field(default=FileKind.MANUSCRIPT_ANONYMOUS)
    path: str = field(default_factory=str)
    checksum: str = field(default_factory=str)
    size: int = field(default=0)
    mime_type: str = field(default_factory=str)
    original_name: str = field(default_factory=str)

    def __post_init__(self) -> None:
        """Make sure that :attr:`.kind` is a :class:`.FileKind`."""
        super(AddFile, self).__post_init__()
        if not isinstance(self.kind, FileKind):
            self.kind = FileKind(self.kind)

    def validate_target(self, manuscript: Manuscript) -> None:
        """Files can be added to own drafts, or own editable submissions."""
        if isinstance(manuscript, Draft):
            validators.must_own_draft(self, manuscript)
        else:
            validators.must_be_a_submission(self, manuscript)
            validators.must_own_submission(self, manuscript)
            validators.status_must_be(self, manuscript, *Submission.EDITABLE)

    def validate(self, manuscript: Manuscript) -> None:
        """The file must be stored, and the manuscript must accept it."""
        self.validate_target(manuscript)
        if not self.path or not self.checksum:
            raise ValidationError(self, 'File has not been stored')
        validators.file_is_acceptable(self, self.mime_type, self.size)

    def project(self, manuscript: Manuscript) -> Manuscript:
        """Append a new version of the file."""
        manuscript.files.append(FileAsset(
            kind=self.kind,
            version=manuscript.next_file_version(self.kind),
            path=self.path,
            checksum=self.checksum,
            size=self.size,
            mime_type=self.mime_type,
            original_name=self.original_name,
            created=self.created
        ))
        return manuscript


# Events that move a manuscript into the workflow.


@dataclass()
class SubmissionEvent(ContentEvent):
    """Base for events that put a manuscript in front of the editors."""

    serial_number: Optional[str] = field(default=None)
    """A candidate serial number, used only if none was assigned before."""

    def __post_init__(self) -> None:
        """Generate a serial number candidate, if none was provided."""
        super(SubmissionEvent, self).__post_init__()
        if not self.serial_number:
            self.serial_number = generate_serial_number()

    def renew_serial_number(self) -> None:
        """Replace the serial number candidate, e.g. after a collision."""
        self.serial_number = generate_serial_number()

    def _is_ready(self, title: Optional[str], authors: List[Author],
                  agreements: Agreements) -> None:
        validators.title_is_present(self, title)
        validators.exactly_one_corresponding_author(self, authors)
        validators.agreements_are_given(self, agreements)


@dataclass()
class PromoteDraft(SubmissionEvent):
    """
    Submit a :class:`.Draft`, replacing it with a :class:`.Submission`.

    Authors and agreements may be provided with the event; otherwise those on
    the draft are used. The authors and files of the draft are moved to the
    new submission, and the draft is deleted, in the same transaction.
    """

    NAME = "promote draft"
    NAMED = "draft promoted"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, draft: Draft) -> None:
        """The draft must be complete."""
        self._check_for_html()
        validators.must_be_a_draft(self, draft)
        validators.must_own_draft(self, draft)
        self._is_ready(self.title or draft.title,
                       self.authors if self.authors is not None
                       else draft.authors,
                       self.agreements or draft.agreements)

    def project(self, draft: Draft) -> Submission:
        """Create the :class:`.Submission` that replaces the draft."""
        self._update_content(draft)
        return Submission(
            creator=draft.creator,
            conference_id=draft.conference_id,
            title=draft.title,
            abstract=draft.abstract,
            track=draft.track,
            paper_type=draft.paper_type,
            keywords=draft.keywords,
            status=Submission.SUBMITTED,
            serial_number=self.serial_number,
            submitted=self.created,
            authors=draft.authors,
            files=draft.files,
            agreements=draft.agreements,
            draft_id=draft.draft_id,
            created=self.created
        )


@dataclass()
class CreateSubmission(SubmissionEvent):
    """
    Create a :class:`.Submission` directly, without a draft.

    If ``submit`` is set, the new submission goes straight to SUBMITTED and
    is held to the same requirements as :class:`.PromoteDraft`. Otherwise it
    starts out in DRAFT.
    """

    NAME = "create submission"
    NAMED = "submission created"

    REQUIRED_ROLES = AUTHOR_ROLES
    SERIALIZE_EXCLUDE = Event.SERIALIZE_EXCLUDE + ('conference',)

    conference_id: str = field(default_factory=str)
    submit: bool = field(default=False)
    conference: Optional[Conference] = field(default=None)

    def validate(self, manuscript: None = None) -> None:
        """Authors are always required; the rest only if submitting."""
        self._check_for_html()
        if not self.conference_id:
            raise ValidationError(self, 'A conference is required')
        validators.conference_is_open(self, self.conference, self.track)
        validators.exactly_one_corresponding_author(self, self.authors or [])
        if self.submit:
            self._is_ready(self.title, self.authors or [],
                           self.agreements or Agreements())

    def project(self, manuscript: None = None) -> Submission:
        """Create a new :class:`.Submission`."""
        submission = Submission(creator=self.creator,
                                conference_id=self.conference_id,
                                created=self.created)
        self._update_content(submission)
        if self.submit:
            submission.status = Submission.SUBMITTED
            submission.serial_number = self.serial_number
            submission.submitted = self.created
        return submission


@dataclass()
class SubmitSubmission(SubmissionEvent):
    """
    Send a :class:`.Submission` to the editors.

    This is either the first submission of a submission that was created in
    DRAFT, or the re-submission of a submission that requires revision. The
    serial number is assigned on first submission and never regenerated.
    """

    NAME = "submit submission"
    NAMED = "submission submitted"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, submission: Submission) -> None:
        """Only the creator may submit, and the submission must be ready."""
        self._check_for_html()
        validators.must_be_a_submission(self, submission)
        validators.must_own_submission(self, submission)
        validators.must_transition_to(self, submission, Submission.SUBMITTED)
        self._is_ready(self.title or submission.title,
                       self.authors if self.authors is not None
                       else submission.authors,
                       self.agreements or submission.agreements)

    def project(self, submission: Submission) -> Submission:
        """Set the status, and the serial number if not yet assigned."""
        self._update_content(submission)
        if submission.serial_number is None:
            submission.serial_number = self.serial_number
        submission.status = Submission.SUBMITTED
        submission.submitted = self.created
        return submission


@dataclass()
class EditSubmission(ContentEvent):
    """Change the content of a :class:`.Submission`."""

    NAME = "edit submission"
    NAMED = "submission edited"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, submission: Submission) -> None:
        """Only the creator may edit, and only while it is editable."""
        self._check_for_html()
        validators.must_be_a_submission(self, submission)
        validators.must_own_submission(self, submission)
        validators.status_must_be(self, submission, *Submission.EDITABLE)
        if self.title is not None:
            validators.title_is_present(self, self.title)
        if self.authors is not None:
            validators.exactly_one_corresponding_author(self, self.authors)

    def project(self, submission: Submission) -> Submission:
        """Replace the content of the submission."""
        return self._update_content(submission)


@dataclass()
class DeleteSubmission(Event):
    """Delete a :class:`.Submission` that never entered review."""

    NAME = "delete submission"
    NAMED = "submission deleted"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, submission: Submission) -> None:
        """Only the creator may delete, and only DRAFT or WITHDRAWN."""
        validators.must_be_a_submission(self, submission)
        validators.must_own_submission(self, submission)
        validators.status_must_be(self, submission, *Submission.DELETABLE)

    def project(self, submission: Submission) -> Submission:
        """Mark the submission as deleted."""
        submission.deleted = True
        return submission


@dataclass()
class WithdrawSubmission(Event):
    """Withdraw a :class:`.Submission` before a final decision."""

    NAME = "withdraw submission"
    NAMED = "submission withdrawn"

    REQUIRED_ROLES = AUTHOR_ROLES

    def validate(self, submission: Submission) -> None:
        """Only the creator may withdraw."""
        validators.must_be_a_submission(self, submission)
        validators.must_own_submission(self, submission)
        validators.must_transition_to(self, submission, Submission.WITHDRAWN)

    def project(self, submission: Submission) -> Submission:
        """Set the status to WITHDRAWN."""
        submission.status = Submission.WITHDRAWN
        return submission


__all__ = (
    'Event', 'event_factory', 'InvalidEvent', 'CreateDraft', 'UpdateDraft',
    'DeleteDraft', 'AddFile', 'PromoteDraft', 'CreateSubmission',
    'SubmitSubmission', 'EditSubmission', 'DeleteSubmission',
    'WithdrawSubmission', 'AssignReviewers', 'RespondToAssignment',
    'SubmitReview', 'RecordDecision', 'AddMember', 'ChangeMemberRoles',
    'SetMemberStatus', 'DeleteMember',
)
