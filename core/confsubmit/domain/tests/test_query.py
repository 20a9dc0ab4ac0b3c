"""Tests for :mod:`.domain.query`."""

from unittest import TestCase

from ..query import SubmissionQuery, Scope, Page


class TestSubmissionQuery(TestCase):
    """Normalization of query parameters."""

    def test_defaults(self):
        """By default, the first page of the actor's own manuscripts."""
        query = SubmissionQuery()
        self.assertIs(query.scope, Scope.AUTHOR)
        self.assertEqual(query.page, 1)
        self.assertEqual(query.limit, 10)
        self.assertEqual(query.offset, 0)

    def test_clamping(self):
        """Page and limit are clamped to sensible values."""
        query = SubmissionQuery(page=-3, limit=500)
        self.assertEqual(query.page, 1)
        self.assertEqual(query.limit, 50)
        self.assertEqual(SubmissionQuery(limit=0).limit, 1)

    def test_offset(self):
        """The offset follows from the page and the limit."""
        self.assertEqual(SubmissionQuery(page=3, limit=20).offset, 40)

    def test_status(self):
        """Status is upper-cased, and ``all`` means no filter."""
        self.assertEqual(SubmissionQuery(status='under_review').status,
                         'UNDER_REVIEW')
        self.assertIsNone(SubmissionQuery(status='all').status)

    def test_scope_and_search(self):
        """Scope may be passed by name; blank searches are dropped."""
        query = SubmissionQuery(scope='editor', search='   ')
        self.assertIs(query.scope, Scope.EDITOR)
        self.assertIsNone(query.search)


class TestPage(TestCase):
    """Paging arithmetic."""

    def test_pages(self):
        """Total pages, and whether there are more."""
        page = Page(items=[], total=21, page=2, limit=10)
        self.assertEqual(page.total_pages, 3)
        self.assertTrue(page.has_next_page)
        self.assertTrue(page.has_prev_page)
        last = Page(items=[], total=20, page=2, limit=10)
        self.assertFalse(last.has_next_page)
        self.assertEqual(Page(items=[], total=0, page=1, limit=10)
                         .total_pages, 0)
