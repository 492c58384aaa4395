"""Recurring session scheduling and conflict-resolution engine."""

__version__ = "0.1.0"
