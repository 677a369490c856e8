"""Notification channel that records deliveries in an in-process outbox."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any

from zenmoments.domains.relaxation.domain_logic.models import Notification

logger = logging.getLogger(__name__)

DEFAULT_OUTBOX_SIZE = 100


class OutboxNotificationChannel:
    """Logs notifications and keeps the most recent ones for inspection.

    Device delivery is the client's concern; clients poll the outbox and
    report the user's answer back through feedback.
    """

    def __init__(self, *, max_size: int = DEFAULT_OUTBOX_SIZE) -> None:
        self._outbox: deque[dict[str, Any]] = deque(maxlen=max_size)

    async def deliver(self, notification: Notification) -> str:
        delivery_id = str(uuid.uuid4())
        self._outbox.append({
            "delivery_id": delivery_id,
            "delivered_at": datetime.now(timezone.utc).isoformat(),
            **notification.as_dict(),
        })
        logger.info("Notification %s queued for moment %s", delivery_id, notification.moment_id)
        return delivery_id

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent deliveries, newest first."""
        items = list(self._outbox)
        items.reverse()
        return items[:limit]

    def __len__(self) -> int:
        return len(self._outbox)
