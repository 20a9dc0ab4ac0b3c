"""Tests for :mod:`confsubmit`."""
