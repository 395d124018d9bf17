"""
Series Linkage

Template/instance relationship between recurring tasks: which task owns the
rule, which instances exist, what an instance inherits, and where recurrence
edits are applied.
"""

from datetime import date
from typing import Any, Dict, List

from recurring_engine.models.recurrence_rule import RECURRENCE_FIELDS, RecurrenceType
from recurring_engine.models.status import TaskStatus
from recurring_engine.models.task import INHERITABLE_FIELDS, SeriesState, Task
from recurring_engine.services.errors import AmbiguousParent, InvalidRule
from recurring_engine.services.recurrence_validator import RecurrenceValidator
from recurring_engine.services.task_repository import TaskRepository
from recurring_engine.utils.logger import get_logger

logger = get_logger("recurring-engine.linkage")


def is_template(task: Task) -> bool:
    return task.recurring_parent_id is None and task.recurrence_type not in (None, RecurrenceType.NONE.value)


def is_instance(task: Task) -> bool:
    return task.recurring_parent_id is not None


class SeriesLinkage:
    """Resolves and maintains the template -> instance relationship."""

    def __init__(self, repository: TaskRepository):
        self.repository = repository

    is_template = staticmethod(is_template)
    is_instance = staticmethod(is_instance)

    def resolve_template(self, task: Task) -> Task:
        """
        Return the template governing a task.

        Raises:
            AmbiguousParent: If an instance's parent is missing or is not a template
        """
        if not is_instance(task):
            return task

        parent = self.repository.find_task(task.recurring_parent_id)
        if parent is None or not is_template(parent):
            logger.warning(
                "Instance parent does not resolve to a template",
                task_id=task.id,
                recurring_parent_id=task.recurring_parent_id,
                parent_found=parent is not None,
            )
            raise AmbiguousParent(
                f"Task {task.id} references recurring parent {task.recurring_parent_id}, "
                "which is not an existing recurring template",
                {"task_id": task.id, "recurring_parent_id": task.recurring_parent_id}
            )
        return parent

    def list_instances(self, template_id: int) -> List[Task]:
        return self.repository.list_instances(template_id)

    def build_instance(self, template: Task, due_date: date) -> Task:
        """New, unsaved instance of a template due on the given date."""
        instance = Task(
            due_date=due_date,
            status=TaskStatus.NOT_STARTED.value,
            recurring_parent_id=template.id,
            **{field: _copy(getattr(template, field)) for field in INHERITABLE_FIELDS}
        )
        # Display copy only; the template stays authoritative
        instance.apply_rule(template.recurrence_rule)
        return instance

    def redirect_recurrence_edit(self, task: Task, fields: Dict[str, Any]) -> Task:
        """
        Apply recurrence field edits to the task's template.

        Edits made through an instance land on its template. Materialized
        instances keep their due dates and are flagged for a display refresh.
        The caller owns the transaction.

        Raises:
            InvalidRule: If fields are not recurrence fields or the merged rule is malformed
            AmbiguousParent: If the instance's template cannot be resolved
        """
        unknown = sorted(set(fields) - RECURRENCE_FIELDS)
        if unknown:
            raise InvalidRule(
                f"Not recurrence fields: {', '.join(unknown)}",
                {"fields": unknown}
            )

        template = self.resolve_template(task)
        merged = {column: getattr(template, column) for column in RECURRENCE_FIELDS}
        merged.update(fields)
        rule = RecurrenceValidator.ensure_valid(merged).pinned_to(template.due_date)

        template.apply_rule(rule)
        if rule.is_recurring and template.is_exhausted and not rule.is_exhausted(template.due_date or date.min):
            # A moved or cleared end date can reopen a finished series
            template.series_state = SeriesState.ACTIVE.value
        self.repository.save_task(template)

        instances = self.list_instances(template.id)
        for instance in instances:
            instance.recurrence_refresh_pending = True
            self.repository.save_task(instance)

        logger.info(
            "Recurrence edit applied to template",
            template_id=template.id,
            via_task_id=task.id,
            fields=sorted(fields),
            flagged_instances=[i.id for i in instances],
        )
        return template

    def refresh_display_copy(self, instance: Task) -> Task:
        """Re-copy the template's rule onto a flagged instance."""
        if not is_instance(instance) or not instance.recurrence_refresh_pending:
            return instance

        template = self.resolve_template(instance)
        instance.apply_rule(template.recurrence_rule)
        instance.recurrence_refresh_pending = False
        return self.repository.save_task(instance)


def _copy(value):
    return list(value) if isinstance(value, list) else value
