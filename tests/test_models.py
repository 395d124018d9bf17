from datetime import date

import pytest
from pydantic import ValidationError

from recurring_engine.models.recurrence_rule import RecurrenceRule, RecurrenceType
from recurring_engine.models.status import TaskStatus, normalize_status
from recurring_engine.models.task import Task
from recurring_engine.services.errors import InvalidStatus


@pytest.mark.parametrize(
    "value, expected",
    [
        (TaskStatus.WAITING, TaskStatus.WAITING),
        ("done", TaskStatus.DONE),
        (" Archived ", TaskStatus.ARCHIVED),
        (2, TaskStatus.DONE),
        ("1", TaskStatus.IN_PROGRESS),
        (6, TaskStatus.PLANNED),
    ],
)
def test_normalize_status(value, expected):
    assert normalize_status(value) == expected


@pytest.mark.parametrize("value", [7, -1, True, "finished", None, 2.0])
def test_normalize_status_rejects_unknown(value):
    with pytest.raises(InvalidStatus):
        normalize_status(value)


def test_legacy_codes_and_closed_statuses():
    assert TaskStatus.NOT_STARTED.legacy_code == 0
    assert TaskStatus.DONE.legacy_code == 2
    assert {s for s in TaskStatus if s.is_closed} == {TaskStatus.DONE, TaskStatus.ARCHIVED}


def test_rule_from_fields_defaults():
    rule = RecurrenceRule.from_fields({"recurrence_type": "daily", "recurrence_interval": None})
    assert rule.type == RecurrenceType.DAILY
    assert rule.interval == 1
    assert rule.weekdays == frozenset()
    assert rule.is_recurring


def test_rule_interval_floor():
    assert RecurrenceRule(type=RecurrenceType.DAILY, interval=0).interval == 1


def test_rule_is_frozen():
    rule = RecurrenceRule(type=RecurrenceType.DAILY)
    with pytest.raises(ValidationError):
        rule.interval = 4


def test_rule_exhaustion():
    rule = RecurrenceRule(type=RecurrenceType.DAILY, end_date=date(2025, 1, 20))
    assert not rule.is_exhausted(date(2025, 1, 20))
    assert rule.is_exhausted(date(2025, 1, 21))
    assert RecurrenceRule().is_exhausted(date(2025, 1, 1))


def test_rule_round_trips_through_task_columns():
    task = Task(name="Standup", due_date=date(2025, 1, 20))
    task.apply_rule(RecurrenceRule(type=RecurrenceType.WEEKLY, weekdays=[5, 1, 3]))

    assert task.recurrence_type == "weekly"
    assert task.recurrence_weekdays == [1, 3, 5]
    assert task.recurrence_rule.weekdays == frozenset({1, 3, 5})


def test_task_status_property_reads_legacy_value():
    task = Task(name="Legacy", status="2")
    assert task.task_status == TaskStatus.DONE
