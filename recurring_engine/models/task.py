"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, String
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
import uuid

from recurring_engine.models.recurrence_rule import RecurrenceRule, RecurrenceType
from recurring_engine.models.status import TaskStatus, normalize_status

# Copied from template to instance when the instance is materialized
INHERITABLE_FIELDS = ("name", "note", "priority", "project_id", "tags")


class SeriesState(str, Enum):
    """Lifecycle of a recurring series, tracked on its template."""

    ACTIVE = "active"
    ADVANCING = "advancing"  # transient, never persisted
    EXHAUSTED = "exhausted"


class Task(SQLModel, table=True):
    """
    Task entity: a plain task, a recurring template, or an instance.

    Templates hold the authoritative recurrence rule; instances point at their
    template through recurring_parent_id and keep a display copy of the rule.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    uid: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        max_length=36,
        unique=True,
        index=True
    )
    name: str = Field(max_length=200, min_length=1)
    note: Optional[str] = Field(default=None, max_length=5000)
    priority: str = Field(default="medium", max_length=20)  # high, medium, low
    project_id: Optional[int] = Field(default=None, index=True)
    tags: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))

    due_date: Optional[date] = Field(default=None, index=True)
    status: str = Field(
        default=TaskStatus.NOT_STARTED.value,
        sa_column=Column(String(20), nullable=False, index=True)
    )
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Instance -> template. No FK constraint; a dangling id resolves as an ambiguous parent.
    recurring_parent_id: Optional[int] = Field(default=None, index=True)

    # Recurrence rule (authoritative on templates, display copy on instances)
    recurrence_type: str = Field(default=RecurrenceType.NONE.value, max_length=30)
    recurrence_interval: int = Field(default=1)
    recurrence_weekdays: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))  # 0-6, Sunday first
    recurrence_weekday: Optional[int] = Field(default=None)
    recurrence_month_day: Optional[int] = Field(default=None)
    recurrence_week_of_month: Optional[int] = Field(default=None)  # 1-5, 5 = last
    recurrence_end_date: Optional[date] = Field(default=None)
    completion_based: bool = Field(default=False)

    series_state: str = Field(default=SeriesState.ACTIVE.value, max_length=20)
    recurrence_refresh_pending: bool = Field(default=False)

    @property
    def task_status(self) -> TaskStatus:
        """Status as the enum, whatever representation was stored."""
        return normalize_status(self.status)

    @property
    def recurrence_rule(self) -> RecurrenceRule:
        """Frozen snapshot of the rule stored on this row."""
        return RecurrenceRule.from_task(self)

    @property
    def is_exhausted(self) -> bool:
        return self.series_state == SeriesState.EXHAUSTED.value

    def apply_rule(self, rule: RecurrenceRule) -> None:
        """Write every recurrence column from a rule."""
        for column, value in rule.to_fields().items():
            setattr(self, column, value)
