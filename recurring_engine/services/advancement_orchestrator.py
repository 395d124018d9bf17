"""
Advancement Orchestrator

State machine run when an occurrence of a recurring series is completed,
skipped or rolled over. Each advance happens inside one transaction that
serializes on the template, so the completion, its history row and the
successor instance are committed together or not at all.

    ACTIVE --complete/skip/rollover--> ADVANCING --next date--> ACTIVE
                                           |
                                           +--no next date--> EXHAUSTED
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from recurring_engine.models.recurring_completion import RecurringCompletion
from recurring_engine.models.recurrence_rule import RecurrenceRule
from recurring_engine.models.status import TaskStatus
from recurring_engine.models.task import SeriesState, Task
from recurring_engine.services.clock import Clock, get_clock
from recurring_engine.services.errors import AmbiguousParent, InvalidRule, InvalidStatus
from recurring_engine.services.occurrence_calculator import first_occurrence_on_or_after, next_occurrence
from recurring_engine.services.series_linkage import SeriesLinkage, is_instance, is_template
from recurring_engine.services.task_repository import TaskRepository
from recurring_engine.utils.logger import get_logger
from recurring_engine.utils.metrics import metrics_collector

logger = get_logger("recurring-engine.orchestrator")


@dataclass
class AdvancementResult:
    """Outcome handed back to callers, who merge it into their own views."""

    updated_task: Task
    new_instance: Optional[Task] = None
    exhausted: bool = False
    parent_child_logic_executed: bool = False


class AdvancementOrchestrator:
    """Materializes successors, moves due dates and terminates series."""

    def __init__(self, repository: TaskRepository, linkage: Optional[SeriesLinkage] = None,
                 clock: Optional[Clock] = None):
        self.repository = repository
        self.linkage = linkage or SeriesLinkage(repository)
        self.clock = clock or get_clock()

    @metrics_collector.time_operation("recurring_advance_on_completion_seconds")
    def advance_on_completion(
        self,
        task: Task,
        completed_at: Optional[datetime] = None,
        status: TaskStatus = TaskStatus.DONE,
    ) -> AdvancementResult:
        """
        Close an occurrence and materialize its successor.

        Args:
            task: Template (as its own active occurrence), instance or plain task
            completed_at: Completion timestamp, defaults to now
            status: Closing status, done or archived

        Returns:
            AdvancementResult with the closed task, the new instance (if any)
            and whether the series is now exhausted

        Raises:
            AmbiguousParent: If an instance's template cannot be resolved
            PersistenceFailure: If any write fails; nothing is committed
        """
        if not status.is_closed:
            raise InvalidStatus(f"Status {status.value} does not complete an occurrence", {"status": status.value})
        completed_at = completed_at or self.clock.now()

        template = self.linkage.resolve_template(task)
        if not is_template(template):
            return self._complete_plain_task(task, completed_at, status)

        try:
            with self.repository.lock_template(template.id) as template:
                occurrence = self._reload_occurrence(task, template)

                if occurrence.task_status.is_closed:
                    # Lost the race to a concurrent completion of the same occurrence
                    logger.info("Occurrence already closed, nothing to advance", task_id=occurrence.id)
                    self.repository.rollback()
                    return AdvancementResult(updated_task=occurrence, exhausted=template.is_exhausted)

                rule = template.recurrence_rule
                anchor = self._anchor_date(rule, occurrence, completed_at)
                logger.info(
                    "Advancing series",
                    template_id=template.id,
                    task_id=occurrence.id,
                    state=SeriesState.ADVANCING.value,
                    anchor=anchor,
                    completion_based=rule.completion_based,
                )

                occurrence.status = status.value
                occurrence.completed_at = completed_at
                self.repository.save_task(occurrence)

                if self._already_advanced(template, occurrence):
                    # Reopened and completed again: the successor for this anchor already exists
                    logger.info("Occurrence was advanced before, no new instance", task_id=occurrence.id,
                                due_date=occurrence.due_date)
                    self.repository.commit()
                    return AdvancementResult(updated_task=occurrence, exhausted=template.is_exhausted)

                self._record(template, occurrence, completed_at, skipped=False)

                next_date = self._next_date(template, rule, anchor)
                new_instance = None
                if next_date is None:
                    self._exhaust(template)
                else:
                    new_instance = self._materialize(template, next_date)

                self.repository.commit()
        except Exception:
            metrics_collector.advancement_error()
            logger.exception("Advancement rolled back", task_id=task.id)
            raise

        if new_instance is not None:
            metrics_collector.instance_created()
        return AdvancementResult(
            updated_task=occurrence,
            new_instance=new_instance,
            exhausted=next_date is None,
            parent_child_logic_executed=new_instance is not None,
        )

    def skip_occurrence(self, task: Task) -> AdvancementResult:
        """
        Skip the active occurrence without completing it.

        The occurrence's due date moves forward in place to the next date of
        the series. Skipping the final occurrence cancels it and exhausts the
        series.
        """
        template = self.linkage.resolve_template(task)
        if not is_template(template):
            raise InvalidRule(f"Task {task.id} is not part of a recurring series", {"task_id": task.id})

        try:
            with self.repository.lock_template(template.id) as template:
                occurrence = self._reload_occurrence(task, template)
                if occurrence.task_status.is_closed:
                    raise InvalidStatus(
                        f"Task {occurrence.id} is already {occurrence.status} and cannot be skipped",
                        {"task_id": occurrence.id, "status": occurrence.status}
                    )

                now = self.clock.now()
                rule = template.recurrence_rule
                next_date = self._next_date(template, rule, self._anchor_date(rule, occurrence, now))
                self._record(template, occurrence, now, skipped=True)

                if next_date is None:
                    occurrence.status = TaskStatus.CANCELLED.value
                    self._exhaust(template)
                else:
                    logger.info("Skipping occurrence", task_id=occurrence.id,
                                from_date=occurrence.due_date, to_date=next_date)
                    occurrence.due_date = next_date
                self.repository.save_task(occurrence)
                self.repository.commit()
        except Exception:
            metrics_collector.advancement_error()
            raise

        metrics_collector.occurrence_skipped()
        return AdvancementResult(updated_task=occurrence, exhausted=next_date is None)

    def rollover_overdue(self, today: Optional[date] = None, force: bool = False) -> List[AdvancementResult]:
        """
        Move overdue, still-open occurrences forward to today or later.

        Only completion-based series roll over on lateness; due-date based
        series wait for completion or an explicit skip unless force is set.
        Occurrences with an unresolvable template are logged and left alone.
        """
        today = today or self.clock.today()
        results = []

        for candidate in self.repository.list_open_occurrences(due_before=today):
            try:
                template = self.linkage.resolve_template(candidate)
            except AmbiguousParent as e:
                logger.warning("Rollover left occurrence untouched", task_id=candidate.id, reason=e.code)
                continue

            if not is_template(template):
                continue
            if not (template.completion_based or force):
                continue

            result = self._rollover_one(candidate, template, today)
            if result is not None:
                results.append(result)

        logger.info("Rollover finished", today=today, force=force, advanced=len(results))
        return results

    def _rollover_one(self, candidate: Task, template: Task, today: date) -> Optional[AdvancementResult]:
        try:
            with self.repository.lock_template(template.id) as template:
                occurrence = self._reload_occurrence(candidate, template)
                if occurrence.task_status.is_closed or occurrence.due_date is None or occurrence.due_date >= today:
                    self.repository.rollback()
                    return None
                if template.is_exhausted:
                    self.repository.rollback()
                    return None

                rule = template.recurrence_rule
                new_due = None
                if not rule.is_exhausted(today):
                    new_due = first_occurrence_on_or_after(rule, occurrence.due_date, today)

                self._record(template, occurrence, self.clock.now(), skipped=True)
                if new_due is None:
                    self._exhaust(template)
                else:
                    occurrence.due_date = new_due
                    self.repository.save_task(occurrence)
                self.repository.commit()
        except Exception:
            metrics_collector.advancement_error()
            raise

        metrics_collector.occurrence_skipped()
        return AdvancementResult(updated_task=occurrence, exhausted=new_due is None)

    def _complete_plain_task(self, task: Task, completed_at: datetime, status: TaskStatus) -> AdvancementResult:
        task = self.repository.load_task(task.id)
        task.status = status.value
        task.completed_at = completed_at
        try:
            self.repository.save_task(task)
            self.repository.commit()
        except Exception:
            self.repository.rollback()
            raise
        return AdvancementResult(updated_task=task)

    def _reload_occurrence(self, task: Task, template: Optional[Task]) -> Task:
        if template is None or not is_template(template):
            raise AmbiguousParent(
                f"Recurring template of task {task.id} disappeared during advancement",
                {"task_id": task.id}
            )
        if task.id == template.id:
            return template
        occurrence = self.repository.load_task(task.id)
        return self.repository.refresh(occurrence)

    def _anchor_date(self, rule: RecurrenceRule, occurrence: Task, completed_at: datetime) -> date:
        if rule.completion_based or occurrence.due_date is None:
            return completed_at.date()
        return occurrence.due_date

    def _next_date(self, template: Task, rule: RecurrenceRule, anchor: date) -> Optional[date]:
        if template.is_exhausted or rule.is_exhausted(self.clock.today()):
            return None
        return next_occurrence(rule, anchor)

    def _already_advanced(self, template: Task, occurrence: Task) -> bool:
        instance_id = occurrence.id if is_instance(occurrence) else None
        return self.repository.find_completion(template.id, occurrence.due_date, instance_id) is not None

    def _record(self, template: Task, occurrence: Task, at: datetime, skipped: bool) -> None:
        self.repository.record_completion(RecurringCompletion(
            task_id=template.id,
            instance_id=occurrence.id if is_instance(occurrence) else None,
            original_due_date=occurrence.due_date,
            completed_at=at,
            skipped=skipped,
        ))

    def _exhaust(self, template: Task) -> None:
        if not template.is_exhausted:
            template.series_state = SeriesState.EXHAUSTED.value
            self.repository.save_task(template)
            metrics_collector.series_exhausted()
        logger.info("Series exhausted", template_id=template.id, end_date=template.recurrence_end_date)

    def _materialize(self, template: Task, due_date: date) -> Optional[Task]:
        existing = self.repository.find_instance_due_on(template.id, due_date)
        if existing is not None:
            logger.info("Successor already exists", template_id=template.id,
                        instance_id=existing.id, due_date=due_date)
            return None

        instance = self.repository.create_task(self.linkage.build_instance(template, due_date))
        logger.info("Created next occurrence", template_id=template.id,
                    instance_id=instance.id, due_date=due_date)
        return instance
