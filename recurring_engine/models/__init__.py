"""SQLModel tables and domain value types."""
