"""
Integration tests for the submission database service.

Instead of a live database, these tests use an in-memory SQLite database.
SQLite has no JSON type, so we extend it with one in
:mod:`confsubmit.services.store.util`, and it ignores ``SELECT ... FOR
UPDATE``; row locking is therefore not exercised here.
"""
