from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shedai.core.config import settings
from shedai.db.deps import get_db
from shedai.db.models.schedule_run import ScheduleRun
from shedai.db.models.user import User
from shedai.db.models.user_document import UserDocument
from shedai.main import app
from shedai.services.document_store import PATTERNS, TASKS, SqlDocumentStore


def _engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_fk(conn, record):  # pragma: no cover
        cursor = conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    User.__table__.create(bind=engine)
    UserDocument.__table__.create(bind=engine)
    ScheduleRun.__table__.create(bind=engine)
    return engine


@pytest.fixture()
def client(monkeypatch):
    TestingSessionLocal = sessionmaker(bind=_engine(), autoflush=False, autocommit=False, future=True)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "debug", True)
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "notifications_enabled", False)
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _seed_user(session_factory):
    session = session_factory()
    try:
        user_id = uuid4()
        store = SqlDocumentStore(session)
        store.put(user_id, PATTERNS, ["23:00-07:00 sleep"])
        store.put(user_id, TASKS, [{"title": "Budget review", "deadline_day": 14}])
        return user_id
    finally:
        session.close()


def test_jobs_config_and_run_now(client):
    test_client, session_factory = client
    user_id = _seed_user(session_factory)

    resp = test_client.get("/jobs")
    assert resp.status_code == 200
    body = resp.json()
    assert "scheduler_enabled" in body
    assert body["schedule"]["nightly_time"] == f"{settings.nightly_job_hour:02d}:{settings.nightly_job_minute:02d}"

    run_resp = test_client.post("/jobs/run-now", json={"job": "nightly_schedule"})
    assert run_resp.status_code == 200
    data = run_resp.json()
    assert data["users_processed"] == 1
    assert data["schedules_written"] == 1
    assert data["request_id"]

    single = test_client.post("/jobs/run-now", json={"user_id": str(user_id)})
    assert single.status_code == 200

    session = session_factory()
    runs = session.query(ScheduleRun).filter(ScheduleRun.user_id == user_id, ScheduleRun.run_type == "schedule").all()
    session.close()
    assert len(runs) == 2


def test_jobs_run_now_unknown_user(client):
    test_client, _ = client
    resp = test_client.post("/jobs/run-now", json={"user_id": str(uuid4())})
    assert resp.status_code == 404


def test_jobs_run_now_forbidden_in_prod(monkeypatch):
    TestingSessionLocal = sessionmaker(bind=_engine(), autoflush=False, autocommit=False, future=True)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "debug", False)
    with TestClient(app) as test_client:
        resp = test_client.post("/jobs/run-now", json={"job": "nightly_schedule"})
        assert resp.status_code == 403
    app.dependency_overrides.clear()
