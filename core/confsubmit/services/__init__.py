"""Integrations with the database and other external services."""
