"""Task schemas for the recurring task API."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import date, datetime
from typing import Optional, List, Union

from recurring_engine.models.recurrence_rule import RecurrenceType
from recurring_engine.models.status import normalize_status
from recurring_engine.models.task import Task
from recurring_engine.services.advancement_orchestrator import AdvancementResult
from recurring_engine.services.series_linkage import is_instance, is_template


class RecurrenceFields(BaseModel):
    """Recurrence columns accepted on create and update. Validated by the engine."""
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: Optional[int] = None  # every N days/weeks/months
    recurrence_weekdays: Optional[List[int]] = None  # 0=Sunday..6=Saturday, weekly only
    recurrence_weekday: Optional[int] = None
    recurrence_month_day: Optional[int] = None  # 1-31, monthly only
    recurrence_week_of_month: Optional[int] = None  # 1-5, 5 = last
    recurrence_end_date: Optional[date] = None
    completion_based: Optional[bool] = None


class TaskCreate(RecurrenceFields):
    """Schema for creating a task or a recurring template."""
    name: str = Field(..., min_length=1, max_length=200)
    note: Optional[str] = Field(None, max_length=5000)
    priority: Optional[str] = Field(default="medium", pattern=r"^(high|medium|low)$")
    project_id: Optional[int] = None
    tags: Optional[List[str]] = Field(None, max_length=10)
    due_date: Optional[date] = None
    status: Optional[Union[int, str]] = None  # name or legacy integer code


class TaskUpdate(RecurrenceFields):
    """Schema for updating a task. Recurrence fields sent for an instance land on its template."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    note: Optional[str] = Field(None, max_length=5000)
    priority: Optional[str] = Field(None, pattern=r"^(high|medium|low)$")
    project_id: Optional[int] = None
    tags: Optional[List[str]] = Field(None, max_length=10)
    due_date: Optional[date] = None


class RecurrenceEdit(RecurrenceFields):
    """Recurrence-only edit, always applied to the series template."""


class StatusChange(BaseModel):
    """Schema for a status transition."""
    status: Union[int, str]
    completed_at: Optional[datetime] = None


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    uid: str
    name: str
    note: Optional[str] = None
    priority: Optional[str] = "medium"
    project_id: Optional[int] = None
    tags: Optional[List[str]] = []
    due_date: Optional[date] = None
    status: str
    status_code: int = 0  # legacy integer representation of status
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    recurring_parent_id: Optional[int] = None
    recurrence_type: str = RecurrenceType.NONE.value
    recurrence_interval: int = 1
    recurrence_weekdays: Optional[List[int]] = None
    recurrence_weekday: Optional[int] = None
    recurrence_month_day: Optional[int] = None
    recurrence_week_of_month: Optional[int] = None
    recurrence_end_date: Optional[date] = None
    completion_based: bool = False
    series_state: str
    recurrence_refresh_pending: bool = False
    is_template: bool = False
    is_instance: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return normalize_status(value).value

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        response = cls.model_validate(task)
        return response.model_copy(update={
            "status_code": normalize_status(task.status).legacy_code,
            "is_template": is_template(task),
            "is_instance": is_instance(task),
        })


class AdvancementResponse(BaseModel):
    """Result of a completion, skip or rollover."""
    task: TaskResponse
    next_task: Optional[TaskResponse] = None
    exhausted: bool = False
    parent_child_logic_executed: bool = False

    @classmethod
    def from_result(cls, result: AdvancementResult) -> "AdvancementResponse":
        return cls(
            task=TaskResponse.from_task(result.updated_task),
            next_task=TaskResponse.from_task(result.new_instance) if result.new_instance else None,
            exhausted=result.exhausted,
            parent_child_logic_executed=result.parent_child_logic_executed,
        )


class IterationResponse(BaseModel):
    """Upcoming occurrence dates of a series."""
    task_id: int
    template_id: Optional[int] = None
    iterations: List[date] = []
    count: int = 0


class CompletionResponse(BaseModel):
    """One entry of a series' completion history."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    instance_id: Optional[int] = None
    original_due_date: Optional[date] = None
    completed_at: datetime
    skipped: bool = False
