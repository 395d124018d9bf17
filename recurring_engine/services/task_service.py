"""Task service: CRUD and status changes routed through the recurring engine."""
from typing import Any, Dict, List, Optional, Union
from datetime import datetime

from sqlmodel import Session

from recurring_engine.models.recurrence_rule import RECURRENCE_FIELDS
from recurring_engine.models.status import TaskStatus, normalize_status
from recurring_engine.models.task import Task
from recurring_engine.services.advancement_orchestrator import AdvancementResult
from recurring_engine.services.clock import Clock
from recurring_engine.services.errors import ValidationFailed
from recurring_engine.services.recurrence_validator import RecurrenceValidator
from recurring_engine.services.recurring_task_service import RecurringTaskService
from recurring_engine.services.series_linkage import is_instance
from recurring_engine.utils.logger import get_logger

logger = get_logger("recurring-engine.tasks")

DISPLAY_FIELDS = ("name", "note", "priority", "project_id", "tags", "due_date")


class TaskService:
    """Service class for task CRUD with recurrence-aware writes."""

    def __init__(self, session: Session, clock: Optional[Clock] = None):
        self.session = session
        self.recurring = RecurringTaskService(session, clock)
        self.repository = self.recurring.repository

    def create(self, data: Dict[str, Any]) -> Task:
        """
        Create a plain task or a recurring template.

        Raises:
            InvalidRule: If the recurrence fields are malformed
            ValidationFailed: If priority or tags are invalid
        """
        self._check_display_fields(data)

        recurrence = {key: data.get(key) for key in RECURRENCE_FIELDS if data.get(key) is not None}
        rule = RecurrenceValidator.ensure_valid(recurrence)
        validation = RecurrenceValidator.validate_task_with_recurrence({**recurrence, "due_date": data.get("due_date")})
        for warning in validation["warnings"]:
            logger.warning(warning, name=data.get("name"))

        due_date = data.get("due_date")
        # Pin the day so clamped months (Jan 31 -> Feb 28) do not drift the series
        rule = rule.pinned_to(due_date)

        task = Task(
            name=data["name"],
            note=data.get("note"),
            priority=data.get("priority") or "medium",
            project_id=data.get("project_id"),
            tags=data.get("tags") or [],
            due_date=due_date,
            status=normalize_status(data.get("status") or TaskStatus.NOT_STARTED).value,
        )
        task.apply_rule(rule)

        self.repository.create_task(task)
        self.repository.commit()
        logger.info("Task created", task_id=task.id, recurrence_type=rule.type.value)
        return self.repository.refresh(task)

    def get(self, task_id: int) -> Task:
        task = self.repository.load_task(task_id)
        if is_instance(task) and task.recurrence_refresh_pending:
            task = self.recurring.linkage.refresh_display_copy(task)
            self.repository.commit()
        return task

    def update(self, task_id: int, changes: Dict[str, Any]) -> Task:
        """
        Update display fields on the task and recurrence fields on its template.

        Instances keep their own display edits; recurrence edits made through an
        instance are redirected to the template.
        """
        task = self.repository.load_task(task_id)
        self._check_display_fields(changes)

        recurrence = {key: value for key, value in changes.items() if key in RECURRENCE_FIELDS}
        display = {key: value for key, value in changes.items() if key in DISPLAY_FIELDS}

        try:
            for field, value in display.items():
                setattr(task, field, value)
            self.repository.save_task(task)

            if recurrence:
                self.recurring.linkage.redirect_recurrence_edit(task, recurrence)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise

        return self.repository.refresh(task)

    def delete(self, task_id: int) -> None:
        """Delete a task. Instances of a deleted template are left in place."""
        task = self.repository.load_task(task_id)
        self.repository.delete_task(task)
        self.repository.commit()
        logger.info("Task deleted", task_id=task_id)

    def set_status(self, task_id: int, status: Union[TaskStatus, str, int],
                   completed_at: Optional[datetime] = None) -> AdvancementResult:
        """
        Change a task's status; closing an occurrence advances its series.

        Args:
            status: TaskStatus, status name or legacy integer code
        """
        new_status = normalize_status(status)
        task = self.repository.load_task(task_id)

        if new_status.is_closed and not task.task_status.is_closed:
            return self.recurring.advance_on_completion(task, completed_at, new_status)

        task.status = new_status.value
        if not new_status.is_closed:
            task.completed_at = None
        self.repository.save_task(task)
        self.repository.commit()
        return AdvancementResult(updated_task=self.repository.refresh(task))

    def complete_task(self, task_id: int, completed_at: Optional[datetime] = None) -> AdvancementResult:
        return self.set_status(task_id, TaskStatus.DONE, completed_at)

    def toggle_completion(self, task_id: int) -> AdvancementResult:
        """Done tasks reopen (in progress when they carry a note), others complete."""
        task = self.repository.load_task(task_id)
        if task.task_status == TaskStatus.DONE:
            reopened = TaskStatus.IN_PROGRESS if task.note else TaskStatus.NOT_STARTED
            return self.set_status(task_id, reopened)
        return self.set_status(task_id, TaskStatus.DONE)

    def get_recurring_templates(self) -> List[Task]:
        return self.repository.list_templates()

    def _check_display_fields(self, data: Dict[str, Any]) -> None:
        for validation in (
            RecurrenceValidator.validate_priority(data.get("priority")),
            RecurrenceValidator.validate_tag_limits(data.get("tags")),
        ):
            if not validation["valid"]:
                raise ValidationFailed("; ".join(validation["errors"]), {"errors": validation["errors"]})
