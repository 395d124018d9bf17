"""Recurrence rule value object attached to template tasks."""
from datetime import date
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RecurrenceType(str, Enum):
    """Supported repeat patterns."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    MONTHLY_WEEKDAY = "monthly_weekday"
    MONTHLY_LAST_DAY = "monthly_last_day"


# week_of_month value meaning "last such weekday of the month"
LAST_WEEK_OF_MONTH = 5

# Rule attribute -> task column holding it
RULE_COLUMNS = {
    "type": "recurrence_type",
    "interval": "recurrence_interval",
    "weekdays": "recurrence_weekdays",
    "weekday": "recurrence_weekday",
    "month_day": "recurrence_month_day",
    "week_of_month": "recurrence_week_of_month",
    "end_date": "recurrence_end_date",
    "completion_based": "completion_based",
}

RECURRENCE_FIELDS = frozenset(RULE_COLUMNS.values())


class RecurrenceRule(BaseModel):
    """
    Declarative description of a repeat pattern.

    Weekday numbers use 0=Sunday..6=Saturday. The model is frozen so readers
    always work on a consistent snapshot of a template's rule.
    """

    model_config = ConfigDict(frozen=True)

    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1
    weekdays: FrozenSet[int] = frozenset()
    weekday: Optional[int] = None
    month_day: Optional[int] = None
    week_of_month: Optional[int] = None
    end_date: Optional[date] = None
    completion_based: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, value):
        return value or RecurrenceType.NONE

    @field_validator("interval", mode="before")
    @classmethod
    def _minimum_interval(cls, value):
        # A stored 0 or NULL interval behaves as "every 1"
        try:
            return max(int(value or 1), 1)
        except (TypeError, ValueError):
            return 1

    @field_validator("weekdays", mode="before")
    @classmethod
    def _weekdays_set(cls, value):
        return frozenset(value or ())

    @field_validator("completion_based", mode="before")
    @classmethod
    def _completion_flag(cls, value):
        return bool(value)

    @property
    def is_recurring(self) -> bool:
        return self.type != RecurrenceType.NONE

    def is_exhausted(self, today: date) -> bool:
        """True when the series can produce nothing on or after today."""
        if not self.is_recurring:
            return True
        return self.end_date is not None and self.end_date < today

    def pinned_to(self, due_date: Optional[date]) -> "RecurrenceRule":
        """Copy with an unset monthly day fixed to the due date's day of month."""
        if self.type == RecurrenceType.MONTHLY and self.month_day is None and due_date is not None:
            return self.model_copy(update={"month_day": due_date.day})
        return self

    @classmethod
    def from_fields(cls, fields: Dict[str, Any]) -> "RecurrenceRule":
        """Build a rule from task-column named fields (recurrence_type, ...)."""
        return cls(**{
            attr: fields.get(column)
            for attr, column in RULE_COLUMNS.items()
            if fields.get(column) is not None
        })

    @classmethod
    def from_task(cls, task) -> "RecurrenceRule":
        """Snapshot the rule stored on a task row."""
        return cls.from_fields({column: getattr(task, column, None) for column in RECURRENCE_FIELDS})

    def to_fields(self) -> Dict[str, Any]:
        """Task-column named representation, suitable for writing onto a task."""
        data = {column: getattr(self, attr) for attr, column in RULE_COLUMNS.items()}
        data["recurrence_type"] = self.type.value
        data["recurrence_weekdays"] = sorted(self.weekdays) if self.weekdays else None
        return data
