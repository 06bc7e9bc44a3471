"""Tests for :mod:`strictsession`."""
