import os
from datetime import datetime

# Keep the application's default engine away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from recurring_engine.db.config import build_engine, get_session
from recurring_engine.db.init import init_db
from recurring_engine.main import app
from recurring_engine.services.clock import FixedClock, set_clock
from recurring_engine.services.task_service import TaskService

# Monday
NOW = datetime(2025, 1, 20, 10, 0)


@pytest.fixture()
def clock() -> FixedClock:
    fixed = FixedClock(NOW)
    set_clock(fixed)
    yield fixed
    set_clock(None)


@pytest.fixture()
def engine():
    test_engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def session(engine) -> Session:
    with Session(engine) as db:
        yield db


@pytest.fixture()
def service(session: Session, clock: FixedClock) -> TaskService:
    return TaskService(session, clock)


@pytest.fixture()
def make_task(service: TaskService):
    def _make(**data):
        data.setdefault("name", "Water the plants")
        return service.create(data)

    return _make


@pytest.fixture()
def client(engine, clock: FixedClock) -> TestClient:
    def _session_override():
        with Session(engine) as db:
            yield db

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()
