"""
Recurring Task Service

Entry point other services use for recurrence: next-date computation,
iteration previews, advancement on completion and recurrence edits.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from recurring_engine.config import PREVIEW_DEFAULT_COUNT
from recurring_engine.models.recurrence_rule import RecurrenceRule
from recurring_engine.models.recurring_completion import RecurringCompletion
from recurring_engine.models.status import TaskStatus
from recurring_engine.models.task import Task
from recurring_engine.services.advancement_orchestrator import AdvancementOrchestrator, AdvancementResult
from recurring_engine.services.clock import Clock, get_clock
from recurring_engine.services.iteration_preview import IterationPreviewService
from recurring_engine.services.occurrence_calculator import next_occurrence
from recurring_engine.services.series_linkage import SeriesLinkage
from recurring_engine.services.task_repository import TaskRepository
from recurring_engine.utils.logger import get_logger

logger = get_logger("recurring-engine.service")


def compute_next_occurrence(rule: RecurrenceRule, anchor_date: date) -> Optional[date]:
    """Next occurrence strictly after anchor_date, or None when the series is exhausted."""
    return next_occurrence(rule, anchor_date)


class RecurringTaskService:
    """Service to handle recurring task logic within one session."""

    def __init__(self, session: Session, clock: Optional[Clock] = None):
        self.clock = clock or get_clock()
        self.repository = TaskRepository(session)
        self.linkage = SeriesLinkage(self.repository)
        self.orchestrator = AdvancementOrchestrator(self.repository, self.linkage, self.clock)
        self.preview = IterationPreviewService(self.linkage, self.clock)

    compute_next_occurrence = staticmethod(compute_next_occurrence)

    def preview_iterations(self, task: Task, count: int = PREVIEW_DEFAULT_COUNT,
                           start_from: Optional[date] = None, align_to_anchor: bool = False) -> List[date]:
        return self.preview.preview_next(task, count, start_from, align_to_anchor)

    def advance_on_completion(self, task: Task, completed_at: Optional[datetime] = None,
                              status: TaskStatus = TaskStatus.DONE) -> AdvancementResult:
        return self.orchestrator.advance_on_completion(task, completed_at, status)

    def skip_occurrence(self, task: Task) -> AdvancementResult:
        return self.orchestrator.skip_occurrence(task)

    def rollover_overdue(self, today: Optional[date] = None, force: bool = False) -> List[AdvancementResult]:
        return self.orchestrator.rollover_overdue(today, force)

    def redirect_recurrence_edit(self, instance: Task, fields: Dict[str, Any]) -> Task:
        """Apply recurrence edits to the governing template and commit them."""
        try:
            template = self.linkage.redirect_recurrence_edit(instance, fields)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        return self.repository.refresh(template)

    def list_instances(self, task: Task) -> List[Task]:
        template = self.linkage.resolve_template(task)
        return self.linkage.list_instances(template.id)

    def list_completions(self, task: Task) -> List[RecurringCompletion]:
        template = self.linkage.resolve_template(task)
        return self.repository.list_completions(template.id)
