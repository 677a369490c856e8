"""Notification gate: turns new relaxation moments into at-most-once notifications.

For each moment delivered by the dispatch bus the gate:

1. skips ids it has already processed,
2. attaches the best nearby place from the recommendation scorer when the
   moment has none (bounded by a timeout, failures are non-fatal),
3. composes a human-readable message,
4. hands it to the notification channel,
5. marks the moment as notified.

The processed-id set lives as long as the gate instance, so the guarantee is
at-most-once per process, not across restarts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING

from zenmoments.core.storage.models import FeedbackRecord
from zenmoments.core.storage.repository import RepositoryError
from zenmoments.domains.relaxation.domain_logic.models import (
    FeedbackOutcome,
    Notification,
    RelaxationMoment,
)
from zenmoments.domains.relaxation.places.preferences import MEDITATION_PROFILE, PlacePreferences

if TYPE_CHECKING:
    from zenmoments.core.dispatch.bus import DispatchBus, Subscription
    from zenmoments.core.storage.repository import FeedbackRepository
    from zenmoments.domains.relaxation.connectors import NotificationChannel
    from zenmoments.domains.relaxation.domain_logic.moments import MomentManager
    from zenmoments.domains.relaxation.places import PlaceRecommender

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Zen Moment Detected"
FEEDBACK_CATEGORY = "relaxationFeedback"


class NotificationGate:
    """Deduplicates, enriches and delivers relaxation-moment notifications.

    Bus delivery only enqueues; a worker task drains the queue in arrival
    order, so slow place lookups never hold up detection.

    Usage::

        gate = NotificationGate(manager, channel, recommender=recommender)
        gate.attach(bus)
        ...
        await gate.join()   # wait until queued moments are processed
        await gate.aclose()
    """

    def __init__(
        self,
        moments: MomentManager,
        channel: NotificationChannel,
        *,
        recommender: PlaceRecommender | None = None,
        repository: FeedbackRepository | None = None,
        enrichment_timeout: float = 5.0,
        profile: PlacePreferences = MEDITATION_PROFILE,
        timezone: tzinfo | None = None,
    ) -> None:
        self._moments = moments
        self._channel = channel
        self._recommender = recommender
        self._repository = repository
        self._timeout = enrichment_timeout
        self._profile = profile
        self._tz = timezone
        self._notified: set[str] = set()
        self._queue: asyncio.Queue[RelaxationMoment] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._feedback: list[FeedbackRecord] = []
        if repository is not None:
            self._feedback = repository.load_feedback()
            logger.info("Loaded %d stored feedback records", len(self._feedback))

    # ------------------------------------------------------------------
    # Bus integration
    # ------------------------------------------------------------------

    def attach(self, bus: DispatchBus) -> Subscription:
        """Subscribe the gate to new moments on ``bus``."""
        return bus.subscribe_moment(self.enqueue)

    def enqueue(self, moment: RelaxationMoment) -> None:
        """Queue a moment for notification without waiting for it."""
        self._queue.put_nowait(moment)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while not self._queue.empty():
            moment = self._queue.get_nowait()
            try:
                await self.notify(moment)
            except Exception:
                logger.exception("Notification processing failed for moment %s", moment.id)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued moment has been processed."""
        await self._queue.join()

    async def aclose(self) -> None:
        """Cancel the worker; queued moments that were not processed are dropped."""
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    # ------------------------------------------------------------------
    # Notification path
    # ------------------------------------------------------------------

    def already_notified(self, moment_id: str) -> bool:
        return moment_id in self._notified

    async def notify(self, moment: RelaxationMoment) -> str | None:
        """Run the notification path for one moment.

        Returns:
            The channel's delivery id, or None if skipped or delivery failed.
        """
        moment_id = moment.id
        if moment_id in self._notified:
            logger.debug("Moment %s already notified, skipping", moment_id)
            return None
        # Recorded up front: a failing delivery must not be retried.
        self._notified.add(moment_id)

        delivery_id: str | None = None
        try:
            moment = await self._enrich(moment)
            notification = self.compose(moment)
            delivery_id = await self._channel.deliver(notification)
        except Exception:
            logger.exception("Failed to deliver notification for moment %s", moment_id)
        finally:
            self._moments.mark_notified(moment_id)
        return delivery_id

    async def _enrich(self, moment: RelaxationMoment) -> RelaxationMoment:
        if moment.nearby_place is not None or self._recommender is None:
            return moment
        try:
            places = await asyncio.wait_for(
                self._recommender.recommend(self._profile, near=moment.location, limit=1),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Place lookup for moment %s timed out after %.1fs", moment.id, self._timeout
            )
            return moment
        except Exception as exc:
            logger.warning("Place lookup for moment %s failed: %s", moment.id, exc)
            return moment

        if not places:
            return moment
        place = places[0]
        logger.info("Found nearby place for moment %s: %s", moment.id, place.name)
        updated = self._moments.attach_place(moment.id, place)
        return updated if updated is not None else replace(moment, nearby_place=place)

    def compose(self, moment: RelaxationMoment) -> Notification:
        """Build the notification text for a moment."""
        time_string = datetime.fromtimestamp(moment.timestamp / 1000, tz=self._tz).strftime("%H:%M")
        if moment.nearby_place is not None:
            body = (
                f"You seemed particularly relaxed at {time_string} near "
                f"{moment.nearby_place.name}. Was this a good moment for you?"
            )
        else:
            body = f"You seemed particularly relaxed at {time_string}. Was this a good moment for you?"
        return Notification(
            title=NOTIFICATION_TITLE,
            body=body,
            moment_id=moment.id,
            data={"category": FEEDBACK_CATEGORY, "moment": moment.as_dict()},
        )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def record_feedback(self, moment_id: str, confirmed: bool) -> FeedbackOutcome:
        """Apply the user's answer and keep a feedback record when it changed.

        Repeating the same answer is a no-op; a different answer overwrites
        the moment's verdict and appends a new record.
        """
        outcome = self._moments.record_feedback(moment_id, confirmed)
        if outcome.status != "updated" or outcome.moment is None:
            return outcome

        moment = outcome.moment
        record = FeedbackRecord(
            id="",
            namespace=self._repository.namespace if self._repository is not None else "",
            moment_id=moment.id,
            moment_timestamp=moment.timestamp,
            confirmed=confirmed,
            location=moment.location.as_dict(),
            nearby_place_name=moment.nearby_place.name if moment.nearby_place else None,
            is_manual=moment.is_manual,
        )
        if self._repository is not None:
            try:
                record.id = self._repository.append_feedback(record)
            except RepositoryError:
                logger.exception("Feedback for moment %s was not persisted", moment_id)
        self._feedback.append(record)
        return outcome

    def feedback_history(self, limit: int | None = None) -> list[FeedbackRecord]:
        """Feedback records loaded at start-up plus those recorded since, oldest first."""
        if limit is None:
            return list(self._feedback)
        return self._feedback[-limit:] if limit > 0 else []
