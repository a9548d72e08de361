"""Notification service interface."""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass
class NotificationResult:
    status: str
    reason: str


class NotificationService:
    """Base interface for notification providers."""

    def notify_schedule_ready(
        self,
        *,
        user_id: UUID,
        run_id: UUID,
        anchor_date: str,
        horizon_days: int,
        shortfall_titles: list[str],
        request_id: str | None,
    ) -> NotificationResult:
        raise NotImplementedError
