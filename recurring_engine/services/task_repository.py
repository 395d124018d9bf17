"""Task persistence used by the recurring engine."""
from sqlmodel import Session, select
from sqlalchemy.exc import SQLAlchemyError
from typing import List, Optional
from datetime import date, datetime
from contextlib import contextmanager
import threading

from recurring_engine.models.task import Task
from recurring_engine.models.recurring_completion import RecurringCompletion
from recurring_engine.models.recurrence_rule import RecurrenceType
from recurring_engine.models.status import TaskStatus
from recurring_engine.services.errors import PersistenceFailure, TaskNotFound

# Per-template locks; SQLite ignores SELECT ... FOR UPDATE, so writers in the
# same process also serialize here
_template_locks = {}
_template_locks_guard = threading.Lock()


def _lock_for(template_id: int) -> threading.RLock:
    with _template_locks_guard:
        lock = _template_locks.get(template_id)
        if lock is None:
            lock = _template_locks[template_id] = threading.RLock()
        return lock


class TaskRepository:
    """Session-bound task storage. Writes are staged until commit()."""

    def __init__(self, session: Session):
        self.session = session

    def load_task(self, task_id: int) -> Task:
        """Get a task by ID."""
        task = self.find_task(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found", {"task_id": task_id})
        return task

    def find_task(self, task_id: Optional[int]) -> Optional[Task]:
        if task_id is None:
            return None
        try:
            return self.session.get(Task, task_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to load task {task_id}: {str(e)}", {"task_id": task_id}) from e

    def save_task(self, task: Task) -> Task:
        """Stage changes to an existing task."""
        task.updated_at = datetime.utcnow()
        self.session.add(task)
        self._flush()
        return task

    def create_task(self, task: Task) -> Task:
        """Stage a new task and assign its primary key."""
        task.created_at = task.updated_at = datetime.utcnow()
        self.session.add(task)
        self._flush()
        return task

    def delete_task(self, task: Task) -> None:
        self.session.delete(task)
        self._flush()

    def list_instances(self, template_id: int) -> List[Task]:
        """Derived template -> instances index."""
        statement = (
            select(Task)
            .where(Task.recurring_parent_id == template_id)
            .order_by(Task.due_date.asc(), Task.id.asc())
        )
        return list(self._exec(statement))

    def find_instance_due_on(self, template_id: int, due_date: date) -> Optional[Task]:
        statement = (
            select(Task)
            .where(Task.recurring_parent_id == template_id)
            .where(Task.due_date == due_date)
        )
        return self._exec(statement).first()

    def list_open_occurrences(self, due_before: date) -> List[Task]:
        """Templates and instances with a due date before the given day that are still open."""
        closed = [TaskStatus.DONE.value, TaskStatus.ARCHIVED.value, TaskStatus.CANCELLED.value]
        statement = (
            select(Task)
            .where(Task.due_date < due_before)
            .where(Task.status.not_in(closed))
            .where(
                (Task.recurring_parent_id.is_not(None))
                | (Task.recurrence_type != RecurrenceType.NONE.value)
            )
            .order_by(Task.due_date.asc(), Task.id.asc())
        )
        return list(self._exec(statement))

    def list_templates(self) -> List[Task]:
        statement = (
            select(Task)
            .where(Task.recurring_parent_id.is_(None))
            .where(Task.recurrence_type != RecurrenceType.NONE.value)
            .order_by(Task.created_at.desc())
        )
        return list(self._exec(statement))

    def list_completions(self, template_id: int) -> List[RecurringCompletion]:
        statement = (
            select(RecurringCompletion)
            .where(RecurringCompletion.task_id == template_id)
            .order_by(RecurringCompletion.completed_at.asc(), RecurringCompletion.id.asc())
        )
        return list(self._exec(statement))

    def find_completion(self, template_id: int, original_due_date: Optional[date],
                        instance_id: Optional[int]) -> Optional[RecurringCompletion]:
        statement = (
            select(RecurringCompletion)
            .where(RecurringCompletion.task_id == template_id)
            .where(RecurringCompletion.original_due_date == original_due_date)
            .where(RecurringCompletion.instance_id == instance_id)
            .where(RecurringCompletion.skipped.is_(False))
        )
        return self._exec(statement).first()

    def record_completion(self, completion: RecurringCompletion) -> RecurringCompletion:
        self.session.add(completion)
        self._flush()
        return completion

    @contextmanager
    def lock_template(self, template_id: int):
        """
        Hold the single-writer guarantee for one template.

        Yields the template row re-read under SELECT ... FOR UPDATE. Work
        that raises inside the block is rolled back before the lock is
        released.
        """
        with _lock_for(template_id):
            # populate_existing drops stale identity-map state from before the lock
            statement = (
                select(Task)
                .where(Task.id == template_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            try:
                template = self._exec(statement).first()
                yield template
            except Exception:
                self.rollback()
                raise

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceFailure(f"Failed to commit: {str(e)}") from e

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self, task: Task) -> Task:
        self.session.refresh(task)
        return task

    def _flush(self) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to write task: {str(e)}") from e

    def _exec(self, statement):
        try:
            return self.session.exec(statement)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Query failed: {str(e)}") from e
