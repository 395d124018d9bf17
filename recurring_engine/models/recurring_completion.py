"""Recurring completion history model for SQLModel."""
from sqlmodel import SQLModel, Field
from datetime import date, datetime
from typing import Optional


class RecurringCompletion(SQLModel, table=True):
    """One advanced occurrence of a series: completed, skipped or rolled over."""

    __tablename__ = "recurring_completion"

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(index=True)  # template id
    instance_id: Optional[int] = Field(default=None)  # None when the template itself was the occurrence
    original_due_date: Optional[date] = Field(default=None)
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    skipped: bool = Field(default=False)
