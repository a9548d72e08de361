"""Append-only feedback history per user."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from shedai.core.config import settings
from shedai.engine.feedback import FeedbackEntry, analyze_feedback, feedback_texts
from shedai.observability.metrics import log_metric
from shedai.services.document_store import FEEDBACK, DocumentStore, SqlDocumentStore

logger = logging.getLogger(__name__)


def load_feedback(store: DocumentStore, user_id: UUID) -> List[FeedbackEntry]:
    return [FeedbackEntry.from_dict(item) for item in store.get(user_id, FEEDBACK) or []]


def record_feedback(
    db: Session,
    user_id: UUID,
    text: str,
    *,
    now: Optional[datetime] = None,
) -> FeedbackEntry:
    """Classify and append one feedback entry; raises ``ValueError`` for blank text."""
    entry = analyze_feedback(text, created_at=now)
    store = SqlDocumentStore(db)
    history = store.get(user_id, FEEDBACK) or []
    history.append(entry.to_dict())
    store.put(user_id, FEEDBACK, history)
    log_metric("feedback.recorded", 1, metadata={"user_id": str(user_id), "kind": entry.kind.value})
    logger.info("Stored %s feedback for user %s (directives=%s)", entry.kind.value, user_id, list(entry.recognized))
    return entry


def recent_feedback_texts(store: DocumentStore, user_id: UUID, *, limit: Optional[int] = None) -> List[str]:
    """Feedback texts replayed into the next generation, oldest first."""
    limit = settings.feedback_history_limit if limit is None else limit
    return feedback_texts(load_feedback(store, user_id), limit=limit)
