"""Helpers for working with users."""
from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shedai.db.models.user import User
from shedai.db.models.user_document import UserDocument


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create a new row safely."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(id=user_id)
    db.add(user)
    try:
        db.flush()
        return user
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise


def require_user(db: Session, user_id: UUID) -> User:
    """Return the user or raise ValueError so routes can answer 404."""
    user = db.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    return user


def users_with_tasks(db: Session) -> List[UUID]:
    """Users that have a stored task document, the population of the nightly job."""
    rows = (
        db.query(UserDocument.user_id)
        .filter(UserDocument.collection == "tasks")
        .order_by(UserDocument.created_at)
        .all()
    )
    return [row[0] for row in rows]
