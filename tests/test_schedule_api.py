from __future__ import annotations

from uuid import UUID, uuid4

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
from shedai.services.document_store import SESSIONS, SqlDocumentStore

MONDAY = "2030-01-07"


@pytest.fixture()
def client(monkeypatch):
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

    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    UserDocument.__table__.create(bind=engine)
    ScheduleRun.__table__.create(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(settings, "openai_api_key", None)
    with TestClient(app) as test_client:
        yield test_client, TestingSessionLocal
    app.dependency_overrides.clear()


def _store_inputs(test_client, user_id):
    resp = test_client.put(
        f"/users/{user_id}/patterns",
        json={"patterns": ["23:00-07:00 sleep", "weekdays 09:00-18:00 office", "sometimes yoga"]},
    )
    assert resp.status_code == 200
    assert resp.json()["unrecognized"] == ["sometimes yoga"]

    resp = test_client.put(
        f"/users/{user_id}/tasks",
        json={"tasks": [{"title": "Thesis", "deadline_day": 7, "importance": "high", "difficulty": "high"}]},
    )
    assert resp.status_code == 200

    resp = test_client.put(f"/users/{user_id}/constraints", json={"text": "No work on weekends. Be kind."})
    assert resp.status_code == 200
    body = resp.json()
    assert body["recognized"] == ["weekend_deny"]
    assert body["soft_guidance"] == ["Be kind."]


def test_inputs_round_trip(client):
    test_client, _ = client
    user_id = uuid4()
    _store_inputs(test_client, user_id)

    patterns = test_client.get(f"/users/{user_id}/patterns").json()
    assert patterns["patterns"][0] == "23:00-07:00 sleep"
    assert patterns["request_id"]
    tasks = test_client.get(f"/users/{user_id}/tasks").json()
    assert tasks["tasks"][0]["title"] == "Thesis"
    constraints = test_client.get(f"/users/{user_id}/constraints").json()
    assert constraints["text"] == "No work on weekends. Be kind."


def test_invalid_tasks_are_rejected(client):
    test_client, _ = client
    resp = test_client.put(
        f"/users/{uuid4()}/tasks",
        json={"tasks": [{"title": "Fine", "deadline_day": 2}, {"title": "", "importance": "extreme"}]},
    )
    assert resp.status_code == 422
    invalid = resp.json()["detail"]["invalid_tasks"]
    assert [item["index"] for item in invalid] == [1]


def test_unknown_user_is_404(client):
    test_client, _ = client
    user_id = uuid4()
    assert test_client.get(f"/users/{user_id}/patterns").status_code == 404
    assert test_client.post("/schedule/generate", json={"user_id": str(user_id)}).status_code == 404
    assert test_client.get("/schedule/latest", params={"user_id": str(user_id)}).status_code == 404


def test_generate_from_stored_inputs(client):
    test_client, _ = client
    user_id = uuid4()
    _store_inputs(test_client, user_id)

    resp = test_client.post("/schedule/generate", json={"user_id": str(user_id), "anchor_date": MONDAY})
    assert resp.status_code == 200
    data = resp.json()
    assert data["anchor_date"] == MONDAY
    assert [day["day"] for day in data["schedule"]] == [1, 2, 3, 4, 5, 6, 7]
    report = data["report"]
    assert report["proposer_status"] == "disabled"
    assert report["complete"] is True
    assert report["dropped_inputs"] == ["pattern: sometimes yoga"]
    assert report["soft_guidance"] == ["Be kind."]

    for day in data["schedule"]:
        task_minutes = [a for a in day["activities"] if a["kind"] == "task"]
        if day["weekday"] in ("Saturday", "Sunday"):
            assert task_minutes == []
        else:
            assert task_minutes

    latest = test_client.get("/schedule/latest", params={"user_id": str(user_id)})
    assert latest.status_code == 200
    assert latest.json()["run_id"] == data["run_id"]

    history = test_client.get("/schedule/history", params={"user_id": str(user_id)})
    assert history.status_code == 200
    items = history.json()["items"]
    assert [UUID(item["run_id"]) for item in items] == [UUID(data["run_id"])]
    assert items[0]["complete"] is True


def test_inline_generation_threads_session(client):
    test_client, session_factory = client
    user_id = uuid4()
    body = {
        "user_id": str(user_id),
        "anchor_date": MONDAY,
        "horizon_days": 3,
        "patterns": ["23:00-07:00 sleep"],
        "tasks": [{"title": "Essay", "deadline_day": 3}],
        "constraint_text": "I prefer to work in the morning.",
        "session_id": "chat-1",
    }
    first = test_client.post("/schedule/generate", json=body)
    assert first.status_code == 200
    assert first.json()["session_id"] == "chat-1"
    assert len(first.json()["schedule"]) == 3
    second = test_client.post("/schedule/generate", json=body)
    assert second.status_code == 200

    session = session_factory()
    stored = SqlDocumentStore(session).get(user_id, SESSIONS)
    session.close()
    messages = stored["chat-1"]["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert messages[0]["content"] == "I prefer to work in the morning."


def test_horizon_is_bounded(client):
    test_client, _ = client
    resp = test_client.post(
        "/schedule/generate",
        json={"user_id": str(uuid4()), "horizon_days": 29, "tasks": []},
    )
    assert resp.status_code == 422


def test_horizon_above_configured_maximum_is_rejected(client, monkeypatch):
    test_client, session_factory = client
    monkeypatch.setattr(settings, "max_horizon_days", 5)
    user_id = uuid4()
    resp = test_client.post(
        "/schedule/generate",
        json={"user_id": str(user_id), "anchor_date": MONDAY, "horizon_days": 7, "tasks": []},
    )
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["error"] == "invalid_horizon"
    assert detail["max_horizon_days"] == 5

    session = session_factory()
    assert session.query(ScheduleRun).count() == 0
    session.close()


def test_feedback_is_kept_and_replayed_into_generation(client):
    test_client, _ = client
    user_id = uuid4()
    assert test_client.get(f"/users/{user_id}/feedback").status_code == 404

    resp = test_client.put(
        f"/users/{user_id}/tasks",
        json={"tasks": [{"title": "Thesis", "deadline_day": 7, "importance": "high", "difficulty": "high"}]},
    )
    assert resp.status_code == 200

    resp = test_client.post(f"/users/{user_id}/feedback", json={"text": "주말에는 쉬고 싶어"})
    assert resp.status_code == 200
    entry = resp.json()["entry"]
    assert entry["kind"] == "suggestion"
    assert entry["recognized"] == ["weekend_deny"]
    assert test_client.post(f"/users/{user_id}/feedback", json={"text": "   "}).status_code == 422

    listing = test_client.get(f"/users/{user_id}/feedback").json()
    assert [item["text"] for item in listing["items"]] == ["주말에는 쉬고 싶어"]

    resp = test_client.post("/schedule/generate", json={"user_id": str(user_id), "anchor_date": MONDAY})
    assert resp.status_code == 200
    for day in resp.json()["schedule"]:
        if day["weekday"] in ("Saturday", "Sunday"):
            assert [a for a in day["activities"] if a["kind"] == "task"] == []
