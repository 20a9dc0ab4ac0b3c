"""Tests for :mod:`confsubmit.domain.event`."""
