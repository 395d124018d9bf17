"""Task status enum and the boundary normalizer for legacy representations."""
from enum import Enum
from typing import Union

from recurring_engine.services.errors import InvalidStatus


class TaskStatus(str, Enum):
    """Lifecycle status of a task, template or instance."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ARCHIVED = "archived"
    WAITING = "waiting"
    CANCELLED = "cancelled"
    PLANNED = "planned"

    @property
    def legacy_code(self) -> int:
        """Integer code used by older clients."""
        return LEGACY_STATUS_CODES.index(self)

    @property
    def is_closed(self) -> bool:
        """True for the statuses that count as completing an occurrence."""
        return self in (TaskStatus.DONE, TaskStatus.ARCHIVED)


# Position is the legacy integer code
LEGACY_STATUS_CODES = [
    TaskStatus.NOT_STARTED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.DONE,
    TaskStatus.ARCHIVED,
    TaskStatus.WAITING,
    TaskStatus.CANCELLED,
    TaskStatus.PLANNED,
]


def normalize_status(value: Union[TaskStatus, str, int]) -> TaskStatus:
    """
    Convert any accepted status representation into a TaskStatus.

    Accepts the enum itself, its string name ("done"), a legacy integer code
    (2) or that code as a string ("2").

    Raises:
        InvalidStatus: If the value matches no known status
    """
    if isinstance(value, TaskStatus):
        return value

    # bool is an int subclass; True/False are never valid statuses
    if isinstance(value, int) and not isinstance(value, bool):
        if 0 <= value < len(LEGACY_STATUS_CODES):
            return LEGACY_STATUS_CODES[value]
        raise InvalidStatus(f"Unknown legacy status code: {value}", {"status": value})

    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned.isdigit():
            return normalize_status(int(cleaned))
        try:
            return TaskStatus(cleaned)
        except ValueError:
            pass

    raise InvalidStatus(
        f"Status must be one of: {', '.join(s.value for s in TaskStatus)}",
        {"status": value}
    )
