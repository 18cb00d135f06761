"""Backport tracking for release branches."""

__version__ = "0.1.0"
