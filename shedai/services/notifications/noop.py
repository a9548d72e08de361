"""No-op notification provider (logs only)."""
from __future__ import annotations

import logging
from uuid import UUID

from shedai.services.notifications.base import NotificationResult, NotificationService


logger = logging.getLogger(__name__)


class NoopNotificationService(NotificationService):
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
        logger.info(
            "Notification queued (noop) schedule_ready user=%s run=%s from=%s days=%s shortfalls=%s",
            user_id,
            run_id,
            anchor_date,
            horizon_days,
            len(shortfall_titles),
        )
        return NotificationResult(status="noop", reason="notification provider is noop")
