"""Task router for recurring task management."""
from fastapi import APIRouter, Depends, status, Query
from typing import List, Optional
from datetime import date

from recurring_engine.config import PREVIEW_DEFAULT_COUNT, PREVIEW_MAX_COUNT
from recurring_engine.schemas.task import (
    AdvancementResponse,
    CompletionResponse,
    IterationResponse,
    RecurrenceEdit,
    StatusChange,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from recurring_engine.services.task_service import TaskService
from recurring_engine.db.config import get_session
from sqlmodel import Session

router = APIRouter(tags=["Tasks"])  # No prefix since main.py adds /api prefix


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    """Create a task; a recurrence type other than none makes it a recurring template."""
    task = service.create(task_data.model_dump(exclude_unset=True))
    return TaskResponse.from_task(task)


@router.get("/recurring-tasks", response_model=List[TaskResponse])
async def get_recurring_tasks(service: TaskService = Depends(get_task_service)):
    """Get all recurring templates."""
    return [TaskResponse.from_task(task) for task in service.get_recurring_templates()]


@router.post("/tasks/rollover", response_model=List[AdvancementResponse])
async def rollover_overdue(
    service: TaskService = Depends(get_task_service),
    force: bool = Query(False, description="Also roll over due-date based series"),
):
    """Move overdue recurring occurrences forward to today or later."""
    results = service.recurring.rollover_overdue(force=force)
    return [AdvancementResponse.from_result(result) for result in results]


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    """Get a specific task by ID."""
    return TaskResponse.from_task(service.get(task_id))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Update a task. Recurrence fields sent for an instance are applied to its template."""
    task = service.update(task_id, task_data.model_dump(exclude_unset=True))
    return TaskResponse.from_task(task)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, service: TaskService = Depends(get_task_service)):
    """Delete a task."""
    service.delete(task_id)


@router.patch("/tasks/{task_id}/status", response_model=AdvancementResponse)
async def change_status(
    task_id: int,
    change: StatusChange,
    service: TaskService = Depends(get_task_service),
):
    """Set a task's status (name or legacy integer). Completing an occurrence advances the series."""
    result = service.set_status(task_id, change.status, change.completed_at)
    return AdvancementResponse.from_result(result)


@router.patch("/tasks/{task_id}/toggle_completion", response_model=AdvancementResponse)
async def toggle_completion(task_id: int, service: TaskService = Depends(get_task_service)):
    """Toggle task completion status."""
    return AdvancementResponse.from_result(service.toggle_completion(task_id))


@router.post("/tasks/{task_id}/skip", response_model=AdvancementResponse)
async def skip_occurrence(task_id: int, service: TaskService = Depends(get_task_service)):
    """Skip the current occurrence, moving its due date to the next one."""
    task = service.get(task_id)
    return AdvancementResponse.from_result(service.recurring.skip_occurrence(task))


@router.put("/tasks/{task_id}/recurrence", response_model=TaskResponse)
async def edit_recurrence(
    task_id: int,
    edit: RecurrenceEdit,
    service: TaskService = Depends(get_task_service),
):
    """Edit the recurrence rule of the series this task belongs to. Returns the template."""
    task = service.get(task_id)
    template = service.recurring.redirect_recurrence_edit(task, edit.model_dump(exclude_unset=True))
    return TaskResponse.from_task(template)


@router.get("/tasks/{task_id}/next-iterations", response_model=IterationResponse)
async def get_next_iterations(
    task_id: int,
    service: TaskService = Depends(get_task_service),
    count: int = Query(PREVIEW_DEFAULT_COUNT, ge=1, le=PREVIEW_MAX_COUNT, description="Number of dates"),
    start_from: Optional[date] = Query(None, description="Only dates after this day (defaults to today)"),
    align_to_due_date: bool = Query(False, description="Keep dates on the due date's own schedule"),
):
    """Preview upcoming iteration dates without changing anything."""
    task = service.repository.load_task(task_id)
    iterations = service.recurring.preview_iterations(task, count, start_from, align_to_due_date)
    return IterationResponse(
        task_id=task_id,
        template_id=task.recurring_parent_id or task.id,
        iterations=iterations,
        count=len(iterations),
    )


@router.get("/tasks/{task_id}/instances", response_model=List[TaskResponse])
async def get_instances(task_id: int, service: TaskService = Depends(get_task_service)):
    """List the instances materialized for the task's series."""
    task = service.repository.load_task(task_id)
    return [TaskResponse.from_task(instance) for instance in service.recurring.list_instances(task)]


@router.get("/tasks/{task_id}/completions", response_model=List[CompletionResponse])
async def get_completions(task_id: int, service: TaskService = Depends(get_task_service)):
    """Completion and skip history of the task's series."""
    task = service.repository.load_task(task_id)
    return [CompletionResponse.model_validate(c) for c in service.recurring.list_completions(task)]
