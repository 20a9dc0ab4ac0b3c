"""Tests for :mod:`confsubmit.rules`."""
