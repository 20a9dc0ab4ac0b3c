"""Tests for :mod:`confsubmit.domain`."""
