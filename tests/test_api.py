from sqlmodel import Session

from recurring_engine.models.task import Task


def create(client, **payload):
    payload.setdefault("name", "Water the plants")
    response = client.post("/api/tasks", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_and_metrics(client):
    assert client.get("/health").json()["status"] == "healthy"
    counters = client.get("/metrics").json()["counters"]
    assert "recurring_instances_created_total" in counters


def test_create_recurring_template(client):
    task = create(client, due_date="2025-01-15", recurrence_type="weekly", recurrence_weekdays=[3, 1])

    assert task["is_template"]
    assert not task["is_instance"]
    assert task["recurrence_weekdays"] == [1, 3]
    assert task["status"] == "not_started"
    assert task["status_code"] == 0


def test_invalid_rule_uses_error_envelope(client):
    response = client.post(
        "/api/tasks",
        json={"name": "Broken", "recurrence_type": "monthly", "recurrence_month_day": 40},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "INVALID_RULE"


def test_unknown_task_is_404(client):
    response = client.get("/api/tasks/12345")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_completion_with_legacy_status_creates_next_instance(client):
    task = create(client, due_date="2025-01-15", recurrence_type="weekly")

    response = client.patch(f"/api/tasks/{task['id']}/status", json={"status": 2})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["task"]["status"] == "done"
    assert body["parent_child_logic_executed"]
    assert body["next_task"]["due_date"] == "2025-01-22"
    assert body["next_task"]["recurring_parent_id"] == task["id"]

    instances = client.get(f"/api/tasks/{task['id']}/instances").json()
    assert [i["due_date"] for i in instances] == ["2025-01-22"]
    completions = client.get(f"/api/tasks/{task['id']}/completions").json()
    assert len(completions) == 1
    assert completions[0]["original_due_date"] == "2025-01-15"


def test_unknown_status_is_rejected(client):
    task = create(client)
    response = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "finished"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_STATUS"


def test_toggle_completion_reopens(client):
    task = create(client, note="Use rain water")

    done = client.patch(f"/api/tasks/{task['id']}/toggle_completion").json()
    assert done["task"]["status"] == "done"

    reopened = client.patch(f"/api/tasks/{task['id']}/toggle_completion").json()
    assert reopened["task"]["status"] == "in_progress"
    assert reopened["task"]["completed_at"] is None


def test_next_iterations(client):
    task = create(client, due_date="2025-01-10", recurrence_type="daily", recurrence_interval=2)

    response = client.get(f"/api/tasks/{task['id']}/next-iterations", params={"count": 3})

    assert response.status_code == 200
    body = response.json()
    assert body["template_id"] == task["id"]
    assert body["iterations"] == ["2025-01-22", "2025-01-24", "2025-01-26"]
    assert body["count"] == 3


def test_next_iterations_from_start_date(client):
    task = create(client, due_date="2025-01-03", recurrence_type="daily", recurrence_interval=3)

    seeded = client.get(f"/api/tasks/{task['id']}/next-iterations", params={"count": 2, "start_from": "2025-01-20"})
    aligned = client.get(
        f"/api/tasks/{task['id']}/next-iterations",
        params={"count": 2, "start_from": "2025-01-20", "align_to_due_date": True},
    )

    assert seeded.json()["iterations"] == ["2025-01-23", "2025-01-26"]
    assert aligned.json()["iterations"] == ["2025-01-21", "2025-01-24"]


def test_next_iterations_count_is_bounded(client):
    task = create(client, due_date="2025-01-10", recurrence_type="daily")
    assert client.get(f"/api/tasks/{task['id']}/next-iterations", params={"count": 0}).status_code == 422


def test_orphan_instance_is_conflict(client, engine):
    with Session(engine) as session:
        orphan = Task(name="Orphan", recurring_parent_id=777)
        session.add(orphan)
        session.commit()
        orphan_id = orphan.id

    response = client.get(f"/api/tasks/{orphan_id}/next-iterations")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "AMBIGUOUS_PARENT"


def test_skip_and_recurrence_edit(client):
    task = create(client, due_date="2025-01-15", recurrence_type="weekly")

    skipped = client.post(f"/api/tasks/{task['id']}/skip").json()
    assert skipped["task"]["due_date"] == "2025-01-22"

    edited = client.put(f"/api/tasks/{task['id']}/recurrence", json={"recurrence_interval": 2})
    assert edited.status_code == 200
    assert edited.json()["recurrence_interval"] == 2


def test_update_redirects_recurrence_fields_to_template(client):
    task = create(client, due_date="2025-01-15", recurrence_type="weekly")
    instance = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "done"}).json()["next_task"]

    response = client.put(
        f"/api/tasks/{instance['id']}",
        json={"name": "Renamed occurrence", "recurrence_interval": 3},
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed occurrence"
    template = client.get(f"/api/tasks/{task['id']}").json()
    assert template["name"] == "Water the plants"
    assert template["recurrence_interval"] == 3


def test_rollover_endpoint(client):
    task = create(client, due_date="2025-01-15", recurrence_type="daily", completion_based=True)

    results = client.post("/api/tasks/rollover").json()

    assert [r["task"]["id"] for r in results] == [task["id"]]
    assert results[0]["task"]["due_date"] == "2025-01-20"


def test_delete_task(client):
    task = create(client)
    assert client.delete(f"/api/tasks/{task['id']}").status_code == 204
    assert client.get(f"/api/tasks/{task['id']}").status_code == 404
