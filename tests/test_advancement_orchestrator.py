import threading
from contextlib import contextmanager
from datetime import date, datetime

import pytest
from sqlmodel import Session

from recurring_engine.db.config import build_engine
from recurring_engine.db.init import init_db
from recurring_engine.models.status import TaskStatus
from recurring_engine.models.task import SeriesState, Task
from recurring_engine.services.errors import InvalidRule, InvalidStatus, PersistenceFailure
from recurring_engine.services import task_repository
from recurring_engine.services.task_service import TaskService
from recurring_engine.utils.metrics import metrics_collector


@pytest.fixture()
def weekly(make_task):
    # Wednesday
    return make_task(name="Take out bins", due_date=date(2025, 1, 15), recurrence_type="weekly")


@pytest.fixture()
def orchestrator(service):
    return service.recurring.orchestrator


def test_completing_instance_uses_original_due_date(service, weekly, orchestrator):
    first = orchestrator.advance_on_completion(weekly, datetime(2025, 1, 18, 9, 0))
    instance = first.new_instance
    assert instance.due_date == date(2025, 1, 22)

    # Completed late; the successor still follows the original due date
    second = orchestrator.advance_on_completion(instance, datetime(2025, 1, 27, 17, 30))

    assert second.updated_task.task_status == TaskStatus.DONE
    assert second.updated_task.completed_at == datetime(2025, 1, 27, 17, 30)
    assert second.new_instance.due_date == date(2025, 1, 29)
    assert second.new_instance.recurring_parent_id == weekly.id
    assert second.parent_child_logic_executed
    assert not second.exhausted
    assert len(service.recurring.list_instances(weekly)) == 2


def test_completing_template_keeps_it_as_rule_holder(service, weekly, orchestrator):
    result = orchestrator.advance_on_completion(weekly)

    template = service.repository.load_task(weekly.id)
    assert template.task_status == TaskStatus.DONE
    assert template.recurrence_type == "weekly"
    assert result.new_instance.recurring_parent_id == template.id
    assert result.new_instance.due_date == date(2025, 1, 22)


def test_completion_based_series_anchors_on_completion(make_task, orchestrator):
    template = make_task(
        due_date=date(2025, 1, 10),
        recurrence_type="daily",
        recurrence_interval=2,
        completion_based=True,
    )

    result = orchestrator.advance_on_completion(template, datetime(2025, 1, 20, 10, 0))

    assert result.new_instance.due_date == date(2025, 1, 22)


def test_last_occurrence_exhausts_series(service, make_task, orchestrator):
    template = make_task(
        due_date=date(2025, 1, 19),
        recurrence_type="daily",
        recurrence_end_date=date(2025, 1, 20),
    )

    first = orchestrator.advance_on_completion(template)
    assert first.new_instance.due_date == date(2025, 1, 20)

    last = orchestrator.advance_on_completion(first.new_instance)
    assert last.exhausted
    assert last.new_instance is None
    assert not last.parent_child_logic_executed
    assert service.repository.load_task(template.id).series_state == SeriesState.EXHAUSTED.value


def test_end_date_in_the_past_creates_nothing(service, make_task, orchestrator):
    template = make_task(
        due_date=date(2025, 1, 10),
        recurrence_type="daily",
        recurrence_end_date=date(2025, 1, 15),
    )

    result = orchestrator.advance_on_completion(template)

    assert result.exhausted
    assert service.recurring.list_instances(template) == []


def test_completing_twice_creates_one_successor(service, weekly, orchestrator):
    orchestrator.advance_on_completion(weekly)
    again = orchestrator.advance_on_completion(weekly)

    assert again.new_instance is None
    assert len(service.recurring.list_instances(weekly)) == 1
    assert len(service.recurring.list_completions(weekly)) == 1


def test_failed_write_rolls_back_everything(service, weekly, orchestrator, monkeypatch):
    errors_before = metrics_collector.get_metrics()["counters"]["recurring_advancement_errors_total"]

    def fail(task):
        raise PersistenceFailure("disk full")

    monkeypatch.setattr(service.repository, "create_task", fail)

    with pytest.raises(PersistenceFailure):
        orchestrator.advance_on_completion(weekly)

    template = service.repository.load_task(weekly.id)
    assert template.task_status == TaskStatus.NOT_STARTED
    assert template.completed_at is None
    assert service.recurring.list_completions(template) == []
    assert service.recurring.list_instances(template) == []
    errors_after = metrics_collector.get_metrics()["counters"]["recurring_advancement_errors_total"]
    assert errors_after == errors_before + 1


def test_non_closing_status_is_rejected(weekly, orchestrator):
    with pytest.raises(InvalidStatus):
        orchestrator.advance_on_completion(weekly, status=TaskStatus.WAITING)


def test_plain_task_completes_without_successor(service, make_task, orchestrator):
    plain = make_task(name="One-off", due_date=date(2025, 1, 15))

    result = orchestrator.advance_on_completion(plain)

    assert result.updated_task.task_status == TaskStatus.DONE
    assert result.new_instance is None
    assert service.repository.list_instances(plain.id) == []


def test_skip_moves_due_date_forward(service, weekly, orchestrator):
    result = orchestrator.skip_occurrence(weekly)

    assert result.updated_task.due_date == date(2025, 1, 22)
    assert result.updated_task.task_status == TaskStatus.NOT_STARTED
    history = service.recurring.list_completions(weekly)
    assert len(history) == 1
    assert history[0].skipped
    assert history[0].original_due_date == date(2025, 1, 15)


def test_skipping_last_occurrence_cancels_it(service, make_task, orchestrator):
    template = make_task(
        due_date=date(2025, 1, 20),
        recurrence_type="daily",
        recurrence_end_date=date(2025, 1, 20),
    )

    result = orchestrator.skip_occurrence(template)

    assert result.exhausted
    assert result.updated_task.task_status == TaskStatus.CANCELLED


def test_skip_rejects_plain_and_closed_tasks(make_task, weekly, orchestrator):
    with pytest.raises(InvalidRule):
        orchestrator.skip_occurrence(make_task(name="One-off"))

    orchestrator.advance_on_completion(weekly)
    with pytest.raises(InvalidStatus):
        orchestrator.skip_occurrence(weekly)


def test_rollover_moves_completion_based_series_only(service, make_task, orchestrator):
    flexible = make_task(
        name="Stretch",
        due_date=date(2025, 1, 15),
        recurrence_type="daily",
        completion_based=True,
    )
    fixed = make_task(name="Pay rent", due_date=date(2025, 1, 8), recurrence_type="weekly")

    results = orchestrator.rollover_overdue()

    assert [r.updated_task.id for r in results] == [flexible.id]
    assert service.repository.load_task(flexible.id).due_date == date(2025, 1, 20)
    assert service.repository.load_task(fixed.id).due_date == date(2025, 1, 8)


def test_forced_rollover_stays_on_series_grid(service, make_task, orchestrator):
    fixed = make_task(name="Pay rent", due_date=date(2025, 1, 8), recurrence_type="weekly")

    results = orchestrator.rollover_overdue(force=True)

    assert len(results) == 1
    assert service.repository.load_task(fixed.id).due_date == date(2025, 1, 22)


def test_rollover_leaves_orphans_alone(service, orchestrator):
    orphan = service.repository.create_task(
        Task(name="Orphan", due_date=date(2025, 1, 1), recurring_parent_id=999)
    )
    service.repository.commit()

    assert orchestrator.rollover_overdue(force=True) == []
    assert service.repository.load_task(orphan.id).due_date == date(2025, 1, 1)


def test_reopened_occurrence_does_not_advance_twice(service, weekly):
    first = service.complete_task(weekly.id)
    assert first.new_instance is not None

    service.set_status(weekly.id, "in_progress")
    again = service.complete_task(weekly.id)

    assert again.updated_task.task_status == TaskStatus.DONE
    assert again.new_instance is None
    assert len(service.recurring.list_instances(weekly)) == 1
    assert len(service.recurring.list_completions(weekly)) == 1


def test_failed_write_rolls_back_before_releasing_lock(service, weekly, orchestrator, monkeypatch):
    events = []

    @contextmanager
    def recording_lock(template_id):
        events.append("acquire")
        try:
            yield
        finally:
            events.append("release")

    def fail(task):
        raise PersistenceFailure("disk full")

    rollback = service.repository.rollback

    def recording_rollback():
        events.append("rollback")
        rollback()

    monkeypatch.setattr(task_repository, "_lock_for", recording_lock)
    monkeypatch.setattr(service.repository, "rollback", recording_rollback)
    monkeypatch.setattr(service.repository, "create_task", fail)

    with pytest.raises(PersistenceFailure):
        orchestrator.advance_on_completion(weekly)

    assert events == ["acquire", "rollback", "release"]


def test_concurrent_completions_advance_once(tmp_path, clock):
    engine = build_engine(f"sqlite:///{tmp_path / 'engine.db'}")
    init_db(engine)

    with Session(engine) as session:
        service = TaskService(session, clock)
        template = service.create({"name": "Feed the cat", "due_date": date(2025, 1, 15), "recurrence_type": "daily"})
        template_id = template.id
        instance_id = service.complete_task(template_id).new_instance.id

    barrier = threading.Barrier(2)
    created = []
    errors = []

    def complete():
        try:
            with Session(engine) as session:
                barrier.wait()
                result = TaskService(session, clock).complete_task(instance_id)
                created.append(result.new_instance is not None)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=complete) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(created) == [False, True]

    with Session(engine) as session:
        service = TaskService(session, clock)
        template = service.repository.load_task(template_id)
        assert len(service.recurring.list_instances(template)) == 2
        completions = [
            completion for completion in service.recurring.list_completions(template)
            if completion.instance_id == instance_id and not completion.skipped
        ]
        assert len(completions) == 1

    engine.dispose()
