"""Recurring task engine: recurrence rules, series advancement and iteration previews."""

__version__ = "1.0.0"
