"""Tests for :mod:`confsubmit.core`."""

from unittest import TestCase, mock
from datetime import datetime, timedelta

from flask import Flask
from pytz import UTC

from .. import core, save, save_roster, load, load_fast, load_draft
from ..domain import Role, Submission, Draft, SubmissionQuery, Scope, \
    Roster
from ..domain.event import CreateDraft, UpdateDraft, PromoteDraft, \
    CreateSubmission, AssignReviewers, SubmitReview, RespondToAssignment, \
    AddMember
from ..exceptions import PermissionDenied, NoSuchDraft, NoSuchSubmission, \
    NothingToDo, ConflictError, SaveError, ValidationError, NoSuchConference
from ..services import store
from .util import in_memory_db, make_user, make_authors, all_agreements, \
    add_conference, add_staff, CONFERENCE_ID


class CoreTestCase(TestCase):
    """Provides an app with an empty database, and a few users."""

    def setUp(self):
        """Create an app, and register a conference."""
        self.app = Flask('test')
        self.app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite://'
        self.app.config['NOTIFICATIONS_ENABLED'] = False
        self.app.config['ENABLE_CALLBACKS'] = 1
        core.init_app(self.app)
        self.author = make_user('10', Role.AUTHOR)
        self.stranger = make_user('11', Role.AUTHOR)
        self.chief = make_user('1', Role.CHIEF_EDITOR, Role.EDITOR)
        self.reviewer = make_user('3', Role.REVIEWER)

    def _draft(self, **content):
        data = dict(title='A paper', authors=make_authors(),
                    agreements=all_agreements())
        data.update(content)
        draft, _ = save(CreateDraft(creator=self.author,
                                    conference_id=CONFERENCE_ID, **data))
        return draft


class TestSave(CoreTestCase):
    """Persisting events with :func:`core.save`."""

    def test_nothing_to_save(self):
        """At least one event is required."""
        with self.assertRaises(NothingToDo):
            save()

    def test_permission_checked_before_load(self):
        """Role checks happen before anything is loaded."""
        with mock.patch(f'{core.__name__}.store') as mock_store:
            with self.assertRaises(PermissionDenied):
                save(AssignReviewers(creator=self.author,
                                     reviewer_ids=['3']),
                     submission_id=1)
            self.assertEqual(mock_store.get_submission.call_count, 0)

    def test_save_several_events(self):
        """Several events are applied in order and committed together."""
        with in_memory_db(self.app):
            add_conference()
            draft, events = save(
                CreateDraft(creator=self.author, conference_id=CONFERENCE_ID),
                UpdateDraft(creator=self.author, title='Second thoughts')
            )
            self.assertIsInstance(draft, Draft)
            self.assertEqual(draft.title, 'Second thoughts')
            self.assertEqual(len(events), 2)
            self.assertTrue(all(e.committed for e in events))
            self.assertTrue(all(e.draft_id == draft.draft_id
                                for e in events))

    def test_invalid_event_rolls_back(self):
        """If one event is invalid, none of them are stored."""
        with in_memory_db(self.app):
            add_conference()
            with self.assertRaises(ValidationError):
                save(CreateDraft(creator=self.author,
                                 conference_id=CONFERENCE_ID),
                     UpdateDraft(creator=self.author, title='<i>no</i>'))
            self.assertEqual(store.list_drafts(self.author.native_id,
                                               CONFERENCE_ID), [])

    def test_unknown_conference(self):
        """Drafts cannot be started for a conference that does not exist."""
        with in_memory_db(self.app):
            with self.assertRaises(NoSuchConference):
                save(CreateDraft(creator=self.author,
                                 conference_id='nope'))

    def test_no_manuscript(self):
        """Events other than creation need a manuscript."""
        with in_memory_db(self.app):
            with self.assertRaises(NoSuchSubmission):
                save(UpdateDraft(creator=self.author, title='x'))

    def test_load_draft_of_someone_else(self):
        """Other users' drafts appear not to exist."""
        with in_memory_db(self.app):
            add_conference()
            draft = self._draft()
            self.assertEqual(load_draft(draft.draft_id, self.author).title,
                             'A paper')
            with self.assertRaises(NoSuchDraft):
                load_draft(draft.draft_id, self.stranger)

    def test_promote_and_load(self):
        """A promoted draft is loaded with the history of the draft."""
        with in_memory_db(self.app):
            add_conference()
            draft = self._draft()
            submission, _ = save(PromoteDraft(creator=self.author),
                                 draft_id=draft.draft_id)
            loaded, events = load(submission.submission_id)
            self.assertEqual(loaded.status, Submission.SUBMITTED)
            self.assertEqual([e.event_type for e in events],
                             ['CreateDraft', 'PromoteDraft'])
            self.assertEqual(load_fast(submission.submission_id),
                             loaded)

    def test_promote_twice(self):
        """Promoting a draft that is already promoted is a conflict."""
        with in_memory_db(self.app):
            add_conference()
            draft = self._draft()
            save(PromoteDraft(creator=self.author), draft_id=draft.draft_id)
            with self.assertRaises(ConflictError):
                save(PromoteDraft(creator=self.author),
                     draft_id=draft.draft_id)

    def test_serial_number_retry(self):
        """A colliding serial number is replaced, and the save retried."""
        with in_memory_db(self.app):
            add_conference()
            first, _ = save(PromoteDraft(creator=self.author),
                            draft_id=self._draft().draft_id)
            draft = self._draft()
            event = PromoteDraft(creator=self.author,
                                 serial_number=first.serial_number)
            second, _ = save(event, draft_id=draft.draft_id)
            self.assertNotEqual(second.serial_number, first.serial_number)
            self.assertEqual(second.serial_number, event.serial_number)

    def test_serial_number_gives_up(self):
        """After too many collisions, the save fails."""
        self.app.config['SERIAL_NUMBER_ATTEMPTS'] = 2
        with in_memory_db(self.app):
            add_conference()
            first, _ = save(PromoteDraft(creator=self.author),
                            draft_id=self._draft().draft_id)
            draft = self._draft()
            event = PromoteDraft(creator=self.author,
                                 serial_number=first.serial_number)
            with mock.patch.object(PromoteDraft, 'renew_serial_number'):
                with self.assertRaises(ConflictError):
                    save(event, draft_id=draft.draft_id)

    def test_store_failure(self):
        """Failures of the database are raised as :class:`.SaveError`."""
        with in_memory_db(self.app):
            add_conference()
            with mock.patch(f'{store.__name__}.store_event',
                            side_effect=store.TransactionFailed('nope')):
                with self.assertRaises(SaveError):
                    save(CreateDraft(creator=self.author,
                                     conference_id=CONFERENCE_ID))

    def test_callbacks_run_after_commit(self):
        """Bound callbacks are run once the events are committed."""
        with in_memory_db(self.app):
            add_conference()
            with mock.patch.object(CreateDraft, 'notify') as mock_notify:
                save(CreateDraft(creator=self.author,
                                 conference_id=CONFERENCE_ID))
            self.assertEqual(mock_notify.call_count, 1)


class TestRoster(CoreTestCase):
    """Member management with :func:`core.save_roster`."""

    def test_add_member(self):
        """A member is added and can be loaded."""
        with in_memory_db(self.app):
            add_staff(self.chief)
            roster, events = save_roster(AddMember(
                creator=self.chief, email='new@example.org', name='New',
                affiliation='Somewhere', expertise=['x'], roles=['REVIEWER']
            ))
            self.assertEqual(len(roster.members), 2)
            self.assertEqual(len(core.get_roster().members), 2)

    def test_duplicate_email_race(self):
        """A uniqueness violation in the database is a conflict."""
        with in_memory_db(self.app):
            add_staff(self.chief)
            with mock.patch(f'{store.__name__}.get_roster',
                            return_value=Roster()):
                with self.assertRaises(ConflictError):
                    save_roster(AddMember(
                        creator=self.chief, email=self.chief.email,
                        name='Dupe', affiliation='Somewhere',
                        expertise=['x'], roles=['REVIEWER']
                    ))


class TestListings(CoreTestCase):
    """Listings of submissions and assignments."""

    def setUp(self):
        """Create some drafts and submissions."""
        super(TestListings, self).setUp()
        self.db = in_memory_db(self.app)
        self.db.__enter__()
        add_conference()
        add_staff(self.chief, self.reviewer)
        self.drafts = [self._draft(title=f'Draft {i}') for i in range(2)]
        self.submitted = [
            save(PromoteDraft(creator=self.author),
                 draft_id=self._draft(title=f'Paper {i}').draft_id)[0]
            for i in range(3)
        ]
        save(CreateSubmission(creator=self.stranger,
                              conference_id=CONFERENCE_ID,
                              title='Not yours', authors=make_authors(),
                              agreements=all_agreements(), submit=True))

    def tearDown(self):
        """Drop the database."""
        self.db.__exit__(None, None, None)

    def test_author_scope(self):
        """Authors see their own drafts and submissions, newest first."""
        page = core.list_submissions_for_actor(
            self.author, SubmissionQuery(limit=4)
        )
        self.assertEqual(page.total, 5)
        self.assertEqual(len(page.items), 4)
        self.assertTrue(page.has_next_page)
        self.assertEqual(page.items[0].title, 'Paper 2')
        self.assertEqual(page.stats, {Submission.DRAFT: 2,
                                      Submission.SUBMITTED: 3})

    def test_author_scope_drafts_only(self):
        """Filtering on DRAFT selects the drafts."""
        page = core.list_submissions_for_actor(
            self.author, SubmissionQuery(status='draft')
        )
        self.assertEqual(page.total, 2)
        self.assertTrue(all(isinstance(i, Draft) for i in page.items))

    def test_author_scope_search(self):
        """Search matches titles, case-insensitively."""
        page = core.list_submissions_for_actor(
            self.author, SubmissionQuery(search='paper 1')
        )
        self.assertEqual([i.title for i in page.items], ['Paper 1'])

    def test_editor_scope(self):
        """Editors see every submission, but no drafts."""
        page = core.list_submissions_for_actor(
            self.chief, SubmissionQuery(scope=Scope.EDITOR, limit=2, page=2)
        )
        self.assertEqual(page.total, 4)
        self.assertEqual(len(page.items), 2)
        self.assertFalse(page.has_next_page)
        self.assertEqual(page.stats, {Submission.SUBMITTED: 4})

    def test_editor_scope_serial_search(self):
        """Editors can search by serial number."""
        serial = self.submitted[0].serial_number
        page = core.list_submissions_for_actor(
            self.chief, SubmissionQuery(scope=Scope.EDITOR, search=serial)
        )
        self.assertEqual([i.serial_number for i in page.items], [serial])

    def test_editor_scope_requires_editor(self):
        """Authors cannot list all submissions."""
        with self.assertRaises(PermissionDenied):
            core.list_submissions_for_actor(
                self.author, SubmissionQuery(scope=Scope.EDITOR)
            )

    def test_assignments(self):
        """Reviewers see their assignments, soonest due first."""
        now = datetime.now(UTC)
        for days, submission in zip((20, 2), self.submitted):
            save(AssignReviewers(creator=self.chief, reviewer_ids=['3'],
                                 due_at=now + timedelta(days=days)),
                 submission_id=submission.submission_id)
        items = core.list_assignments_for_reviewer(self.reviewer)
        self.assertEqual([i['priority'] for i in items], ['high', 'low'])
        self.assertEqual(items[0]['submission'].submission_id,
                         self.submitted[1].submission_id)

        save(RespondToAssignment(creator=self.reviewer, accept=True),
             submission_id=self.submitted[1].submission_id)
        save(SubmitReview(creator=self.reviewer, score=12,
                          recommendation='REJECT'),
             submission_id=self.submitted[1].submission_id)
        self.assertEqual(
            len(core.list_assignments_for_reviewer(self.reviewer,
                                                   'pending')), 1
        )
        history = core.get_member_review_history('3')
        self.assertEqual(len(history), 2)
        workloads = core.get_reviewer_workloads()
        self.assertEqual(len(workloads), 1)
        self.assertEqual(workloads[0].current_assignments, 1)
        self.assertEqual(workloads[0].completed_reviews, 1)

    def test_assignments_require_reviewer(self):
        """Only reviewers have assignments."""
        with self.assertRaises(PermissionDenied):
            core.list_assignments_for_reviewer(self.author)

    def test_conference_by_year(self):
        """Conferences can be looked up by year."""
        self.assertEqual(core.get_conference(year=2025).conference_id,
                         CONFERENCE_ID)
