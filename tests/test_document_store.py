from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shedai.db.models.user import User
from shedai.db.models.user_document import UserDocument
from shedai.services.document_store import (
    CONSTRAINTS,
    FEEDBACK,
    PATTERNS,
    SESSIONS,
    TASKS,
    InMemoryDocumentStore,
    SqlDocumentStore,
)
from shedai.services.feedback_service import recent_feedback_texts, record_feedback
from shedai.services.user_service import require_user, users_with_tasks


@pytest.fixture()
def db_session():
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

    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    User.__table__.create(bind=engine)
    UserDocument.__table__.create(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def test_sql_store_creates_user_and_replaces_documents(db_session):
    store = SqlDocumentStore(db_session)
    user_id = uuid4()

    assert store.get(user_id, PATTERNS) is None
    store.put(user_id, PATTERNS, ["23:00-07:00 sleep"])
    store.put(user_id, PATTERNS, ["weekdays 09:00-18:00 office"])

    assert require_user(db_session, user_id).id == user_id
    assert store.get(user_id, PATTERNS) == ["weekdays 09:00-18:00 office"]
    assert db_session.query(UserDocument).count() == 1


def test_sql_store_returns_copies(db_session):
    store = SqlDocumentStore(db_session)
    user_id = uuid4()
    store.put(user_id, CONSTRAINTS, {"text": "No work on weekends."})

    loaded = store.get(user_id, CONSTRAINTS)
    loaded["text"] = "changed"
    assert store.get(user_id, CONSTRAINTS) == {"text": "No work on weekends."}


def test_users_with_tasks_only_lists_task_owners(db_session):
    store = SqlDocumentStore(db_session)
    with_tasks, without_tasks = uuid4(), uuid4()
    store.put(with_tasks, TASKS, [{"title": "Essay", "deadline_day": 3}])
    store.put(without_tasks, PATTERNS, [])

    assert users_with_tasks(db_session) == [with_tasks]


def test_unknown_collection_is_rejected(db_session):
    with pytest.raises(ValueError):
        SqlDocumentStore(db_session).get(uuid4(), "calendar")
    with pytest.raises(ValueError):
        InMemoryDocumentStore().put(uuid4(), "calendar", {})


def test_require_user_raises_for_unknown(db_session):
    with pytest.raises(ValueError):
        require_user(db_session, uuid4())


def test_in_memory_store():
    store = InMemoryDocumentStore()
    first, second = uuid4(), uuid4()
    payload = {"s1": {"session_id": "s1", "messages": []}}
    store.put(first, SESSIONS, payload)
    store.put(second, TASKS, [])
    payload["s1"]["messages"].append({"role": "user", "content": "hi"})

    assert store.get(first, SESSIONS) == {"s1": {"session_id": "s1", "messages": []}}
    assert store.get(first, TASKS) is None
    assert store.get(second, TASKS) == []


def test_feedback_history_is_append_only(db_session):
    user_id = uuid4()
    first = record_feedback(db_session, user_id, "Too packed this week.", now=datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc))
    record_feedback(db_session, user_id, "No work on weekends.", now=datetime(2030, 1, 8, 9, 0, tzinfo=timezone.utc))

    store = SqlDocumentStore(db_session)
    stored = store.get(user_id, FEEDBACK)
    assert [item["text"] for item in stored] == ["Too packed this week.", "No work on weekends."]
    assert stored[0]["kind"] == first.kind.value == "negative"
    assert stored[1]["recognized"] == ["weekend_deny"]
    assert recent_feedback_texts(store, user_id, limit=1) == ["No work on weekends."]

    with pytest.raises(ValueError):
        record_feedback(db_session, user_id, "  ")
    assert len(store.get(user_id, FEEDBACK)) == 2
