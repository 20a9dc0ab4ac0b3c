"""Tests for :mod:`confsubmit.web`."""
