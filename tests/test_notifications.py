from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shedai.core.config import settings
from shedai.db.models.schedule_run import ScheduleRun
from shedai.db.models.user import User
from shedai.db.models.user_document import UserDocument
from shedai.services.notifications.base import NotificationResult
from shedai.services.notifications.factory import get_notification_service
from shedai.services.notifications.hooks import RUN_TYPE_NOTIFICATION, notify_schedule_ready
from shedai.services.notifications.noop import NoopNotificationService


@pytest.fixture()
def session_factory():
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
    return TestingSessionLocal


def _seed_run(session, *, shortfalls=()):
    user_id = uuid4()
    session.add(User(id=user_id))
    session.flush()
    run = ScheduleRun(
        user_id=user_id,
        anchor_date=date(2030, 1, 7),
        horizon_days=7,
        proposer_status="ok",
        schedule=[],
        report={
            "shortfalls": [
                {"task_id": f"t{i}", "title": title, "required_minutes": 120, "allocated_minutes": 60}
                for i, title in enumerate(shortfalls)
            ],
            "complete": not shortfalls,
        },
    )
    session.add(run)
    session.commit()
    session.refresh(run)
    return run


def _notification_logs(session, user_id):
    return (
        session.query(ScheduleRun)
        .filter(ScheduleRun.user_id == user_id, ScheduleRun.run_type == RUN_TYPE_NOTIFICATION)
        .all()
    )


def test_notification_recorded_with_noop_provider(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", True)
    monkeypatch.setattr(settings, "notifications_provider", "noop")
    session = session_factory()
    run = _seed_run(session)

    result = notify_schedule_ready(session, run, "req-1")

    assert result.status == "noop"
    (log,) = _notification_logs(session, run.user_id)
    assert log.report["schedule_run_id"] == str(run.id)
    assert log.report["result"]["status"] == "noop"
    assert log.request_id == "req-1"
    session.close()


def test_notification_skipped_when_disabled(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", False)
    called = {"value": False}

    class DummyService:
        def notify_schedule_ready(self, **kwargs):  # pragma: no cover - not used
            called["value"] = True
            return NotificationResult(status="noop", reason="dummy")

    monkeypatch.setattr("shedai.services.notifications.hooks.get_notification_service", lambda: DummyService())
    session = session_factory()
    run = _seed_run(session)

    result = notify_schedule_ready(session, run, None)

    assert result.status == "skipped"
    (log,) = _notification_logs(session, run.user_id)
    assert log.reason == "Notification skipped"
    assert called["value"] is False
    session.close()


def test_shortfalls_are_passed_to_the_provider(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "notifications_enabled", True)
    seen = {}

    class DummyService:
        def notify_schedule_ready(self, **kwargs):
            seen.update(kwargs)
            return NotificationResult(status="sent", reason="dummy")

    monkeypatch.setattr("shedai.services.notifications.hooks.get_notification_service", lambda: DummyService())
    session = session_factory()
    run = _seed_run(session, shortfalls=["Thesis", "Slides"])

    result = notify_schedule_ready(session, run, None)

    assert result.status == "sent"
    assert seen["shortfall_titles"] == ["Thesis", "Slides"]
    assert seen["anchor_date"] == "2030-01-07"
    assert seen["horizon_days"] == 7
    (log,) = _notification_logs(session, run.user_id)
    assert log.report["extras"]["shortfalls"] == ["Thesis", "Slides"]
    session.close()


def test_factory_falls_back_to_noop(monkeypatch):
    monkeypatch.setattr(settings, "notifications_provider", "carrier-pigeon")
    get_notification_service.cache_clear()
    try:
        assert isinstance(get_notification_service(), NoopNotificationService)
    finally:
        get_notification_service.cache_clear()
