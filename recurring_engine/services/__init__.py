"""Recurrence engine services."""
