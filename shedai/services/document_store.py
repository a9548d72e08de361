"""Per-user document storage for schedule inputs and session state."""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Protocol, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from shedai.db.models.user_document import UserDocument
from shedai.services.user_service import get_or_create_user

logger = logging.getLogger(__name__)

PATTERNS = "patterns"
TASKS = "tasks"
CONSTRAINTS = "constraints"
SESSIONS = "session"
FEEDBACK = "feedback"
COLLECTIONS = (PATTERNS, TASKS, CONSTRAINTS, SESSIONS, FEEDBACK)


class DocumentStore(Protocol):
    def get(self, user_id: UUID, collection: str) -> Any:
        ...

    def put(self, user_id: UUID, collection: str, payload: Any) -> None:
        ...


def _check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection '{collection}'")


class SqlDocumentStore:
    """Stores one JSON payload per (user, collection) row."""

    def __init__(self, db: Session, *, autocommit: bool = True) -> None:
        self.db = db
        self.autocommit = autocommit

    def _row(self, user_id: UUID, collection: str) -> UserDocument | None:
        return (
            self.db.query(UserDocument)
            .filter(UserDocument.user_id == user_id, UserDocument.collection == collection)
            .one_or_none()
        )

    def get(self, user_id: UUID, collection: str) -> Any:
        _check_collection(collection)
        row = self._row(user_id, collection)
        return copy.deepcopy(row.payload) if row is not None else None

    def put(self, user_id: UUID, collection: str, payload: Any) -> None:
        _check_collection(collection)
        get_or_create_user(self.db, user_id)
        row = self._row(user_id, collection)
        if row is None:
            row = UserDocument(user_id=user_id, collection=collection, payload=payload)
            self.db.add(row)
        else:
            row.payload = payload
        if self.autocommit:
            self.db.commit()
        else:
            self.db.flush()
        logger.debug("Stored %s for user %s", collection, user_id)


class InMemoryDocumentStore:
    """Dictionary-backed store for scripts and tests."""

    def __init__(self) -> None:
        self._documents: Dict[Tuple[UUID, str], Any] = {}

    def get(self, user_id: UUID, collection: str) -> Any:
        _check_collection(collection)
        return copy.deepcopy(self._documents.get((user_id, collection)))

    def put(self, user_id: UUID, collection: str, payload: Any) -> None:
        _check_collection(collection)
        self._documents[(user_id, collection)] = copy.deepcopy(payload)
