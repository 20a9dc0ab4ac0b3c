"""Tests for :mod:`confsubmit.services`."""
