"""Moment lifecycle manager — the single owner of the relaxation-moment set."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import replace
from typing import Callable

from zenmoments.domains.relaxation.domain_logic.models import (
    DETECTED_ORIGIN,
    HOUR_MS,
    MANUAL_ORIGIN,
    FeedbackOutcome,
    Location,
    RelaxationMoment,
    TelemetrySample,
    ZenPlace,
)

logger = logging.getLogger(__name__)


class MomentError(Exception):
    """Raised when a moment cannot be created."""


class MomentManager:
    """Creates, retains, and updates relaxation moments.

    All mutations run under one lock, so concurrent detection and manual
    creation can neither corrupt the set nor produce duplicate ids. Callers
    only ever receive copies of the stored moments.

    Usage::

        manager = MomentManager(fallback_location=sampler.fallback_location)
        moment = manager.create_from_detection(sample)
        manager.record_feedback(moment.id, True)
    """

    def __init__(
        self,
        *,
        retention_ms: int = 24 * HOUR_MS,
        fallback_location: Callable[[], Location] | None = None,
    ) -> None:
        self._retention_ms = retention_ms
        self._fallback_location = fallback_location
        self._moments: list[RelaxationMoment] = []
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._moments)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_from_detection(self, sample: TelemetrySample) -> RelaxationMoment:
        """Record an algorithmically detected moment.

        Raises:
            MomentError: If the sample carries no location.
        """
        if sample.location is None:
            raise MomentError("Detected moments require a location")
        return self._create(sample, sample.location, is_manual=False)

    def create_manual(self, sample: TelemetrySample) -> RelaxationMoment:
        """Record a user-declared moment, substituting a fallback location if needed."""
        location = sample.location
        if location is None:
            if self._fallback_location is None:
                raise MomentError("Manual moment has no location and no fallback is configured")
            location = self._fallback_location()
        return self._create(sample, location, is_manual=True)

    def _create(
        self, sample: TelemetrySample, location: Location, *, is_manual: bool
    ) -> RelaxationMoment:
        origin = MANUAL_ORIGIN if is_manual else DETECTED_ORIGIN
        with self._lock:
            moment = RelaxationMoment(
                id=self._new_id(origin, sample.timestamp),
                timestamp=sample.timestamp,
                location=location,
                heart_rate=sample.heart_rate,
                stress_level=sample.stress_level,
                is_manual=is_manual,
            )
            self._moments.append(moment)
            self._prune(reference=moment.timestamp)
            created = replace(moment)

        logger.info(
            "%s relaxation moment %s created", "Manual" if is_manual else "Detected", created.id
        )
        return created

    def _new_id(self, origin: str, timestamp: int) -> str:
        # Sequence suffix keeps ids unique when two moments share a millisecond.
        existing = {m.id for m in self._moments}
        while True:
            candidate = f"{origin}-{timestamp}-{next(self._sequence)}"
            if candidate not in existing:
                return candidate

    def _prune(self, *, reference: int) -> None:
        cutoff = reference - self._retention_ms
        before = len(self._moments)
        self._moments = [m for m in self._moments if m.timestamp >= cutoff]
        dropped = before - len(self._moments)
        if dropped:
            logger.info("Pruned %d relaxation moments older than retention window", dropped)

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def record_feedback(self, moment_id: str, confirmed: bool) -> FeedbackOutcome:
        """Set the user's verdict on a moment (last write wins).

        An unknown id is not an error: the moment may have been pruned.
        """
        with self._lock:
            moment = self._find(moment_id)
            if moment is None:
                outcome = FeedbackOutcome(status="not_found", moment_id=moment_id)
            elif moment.confirmed is confirmed:
                outcome = FeedbackOutcome(
                    status="unchanged", moment_id=moment_id, moment=replace(moment)
                )
            else:
                moment.confirmed = confirmed
                outcome = FeedbackOutcome(
                    status="updated", moment_id=moment_id, moment=replace(moment)
                )

        if outcome.status == "not_found":
            logger.warning("Feedback ignored: moment %s not found", moment_id)
        else:
            logger.info(
                "Feedback for moment %s: %s (%s)",
                moment_id,
                "relaxing" if confirmed else "not relaxing",
                outcome.status,
            )
        return outcome

    def attach_place(self, moment_id: str, place: ZenPlace) -> RelaxationMoment | None:
        """Attach an enrichment result; returns None if the moment is gone."""
        with self._lock:
            moment = self._find(moment_id)
            if moment is None:
                return None
            moment.nearby_place = place
            return replace(moment)

    def mark_notified(self, moment_id: str) -> RelaxationMoment | None:
        """Flag a moment as having passed through the notification gate."""
        with self._lock:
            moment = self._find(moment_id)
            if moment is None:
                return None
            moment.notified = True
            return replace(moment)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, moment_id: str) -> RelaxationMoment | None:
        with self._lock:
            moment = self._find(moment_id)
            return replace(moment) if moment is not None else None

    def list(self) -> list[RelaxationMoment]:
        """All retained moments in insertion order."""
        with self._lock:
            return [replace(m) for m in self._moments]

    def _find(self, moment_id: str) -> RelaxationMoment | None:
        for moment in self._moments:
            if moment.id == moment_id:
                return moment
        return None
