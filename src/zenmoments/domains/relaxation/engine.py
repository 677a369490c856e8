"""Monitoring engine: owns the sampling loop and the moment pipeline.

One engine instance holds all state: rolling window, sampler, detector,
moment manager, dispatch bus and (optionally) the notification gate. There
are no module-level singletons; construct one per process with
:func:`build_engine` and pass it to whatever needs it.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any

from zenmoments.core.dispatch.bus import DispatchBus, Handler, Subscription
from zenmoments.domains.relaxation.connectors import LocationUnavailableError
from zenmoments.domains.relaxation.domain_logic.detector import RelaxationDetector
from zenmoments.domains.relaxation.domain_logic.models import (
    HOUR_MS,
    MINUTE_MS,
    Clock,
    DetectionThresholds,
    FeedbackOutcome,
    Location,
    RelaxationMoment,
    TelemetrySample,
    now_ms,
)
from zenmoments.domains.relaxation.domain_logic.moments import MomentManager
from zenmoments.domains.relaxation.domain_logic.sampler import TelemetrySampler
from zenmoments.domains.relaxation.domain_logic.window import RollingWindowStore
from zenmoments.domains.relaxation.notifications.gate import NotificationGate

if TYPE_CHECKING:
    from zenmoments.core.config.settings import Settings
    from zenmoments.core.storage.repository import FeedbackRepository
    from zenmoments.domains.relaxation.connectors import LocationProvider, NotificationChannel
    from zenmoments.domains.relaxation.places import PlaceRecommender

logger = logging.getLogger(__name__)


class MonitoringEngine:
    """Telemetry monitoring and relaxation-moment detection.

    ``start_monitoring()`` launches a periodic sampling task and, when a
    location provider is configured, a task following its position stream.
    ``stop_monitoring()`` cancels both and waits for them before returning.
    Both calls are idempotent.
    """

    def __init__(
        self,
        *,
        window: RollingWindowStore,
        sampler: TelemetrySampler,
        detector: RelaxationDetector,
        moments: MomentManager,
        bus: DispatchBus | None = None,
        gate: NotificationGate | None = None,
        location_provider: LocationProvider | None = None,
        interval_seconds: float = 30.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.window = window
        self.sampler = sampler
        self.detector = detector
        self.moments = moments
        self.bus = bus or DispatchBus()
        self.gate = gate
        self._location_provider = location_provider
        self._interval = interval_seconds
        self._sample_task: asyncio.Task | None = None
        self._location_task: asyncio.Task | None = None
        if gate is not None:
            gate.attach(self.bus)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_monitoring(self) -> bool:
        return self._sample_task is not None

    async def start_monitoring(self) -> bool:
        """Start sampling. Returns False if monitoring was already active."""
        if self._sample_task is not None:
            return False

        loop = asyncio.get_running_loop()
        if self._location_provider is not None:
            self._location_task = loop.create_task(self._follow_location(self._location_provider))
        else:
            logger.info("No location provider configured, using jittered default location")
        self._sample_task = loop.create_task(self._sample_periodically())
        logger.info("Started telemetry monitoring (every %.1fs)", self._interval)
        return True

    async def stop_monitoring(self) -> bool:
        """Stop sampling and release the location stream.

        Returns False if monitoring was not active. No samples or moments are
        produced once this returns.
        """
        if self._sample_task is None:
            return False

        sample_task, self._sample_task = self._sample_task, None
        location_task, self._location_task = self._location_task, None
        for task in (sample_task, location_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Stopped telemetry monitoring")
        return True

    async def aclose(self) -> None:
        """Stop monitoring and cancel the notification worker.

        The gate stays subscribed, so the engine can be started again later
        (a new client session restarts the worker on the next moment).
        """
        await self.stop_monitoring()
        if self.gate is not None:
            await self.gate.aclose()

    async def _sample_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Telemetry tick failed; monitoring continues")

    async def _follow_location(self, provider: LocationProvider) -> None:
        try:
            async for location in provider.updates():
                self.sampler.update_location(location)
        except LocationUnavailableError as exc:
            logger.warning("Location unavailable (%s); using jittered default location", exc)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Location stream failed; using last known or default location")

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def tick(self) -> TelemetrySample:
        """Sample once, publish the sample, and publish a moment if detected."""
        sample = self.sampler.tick()
        await self.bus.publish_data(sample)
        if self.detector.evaluate(self.window, sample):
            moment = self.moments.create_from_detection(sample)
            await self.bus.publish_moment(moment)
        return sample

    def update_location(self, location: Location) -> None:
        """Record a position fix directly, whether or not monitoring is active."""
        self.sampler.update_location(location)

    async def create_manual(self, sample: TelemetrySample | None = None) -> RelaxationMoment:
        """Declare a relaxation moment explicitly, bypassing the detector."""
        if sample is None:
            sample = self.sampler.relaxed_sample()
        moment = self.moments.create_manual(sample)
        await self.bus.publish_moment(moment)
        return moment

    def record_feedback(self, moment_id: str, confirmed: bool) -> FeedbackOutcome:
        """Record the user's verdict on a moment."""
        if self.gate is not None:
            return self.gate.record_feedback(moment_id, confirmed)
        return self.moments.record_feedback(moment_id, confirmed)

    def list_moments(self) -> list[RelaxationMoment]:
        return self.moments.list()

    def recent_samples(self, minutes: float = 10) -> list[TelemetrySample]:
        return self.window.recent(int(minutes * MINUTE_MS))

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe_data(self, handler: Handler[Any]) -> Subscription:
        return self.bus.subscribe_data(handler)

    def subscribe_moment(self, handler: Handler[Any]) -> Subscription:
        return self.bus.subscribe_moment(handler)

    def status(self) -> dict[str, Any]:
        latest = self.window.latest()
        location = self.sampler.last_location
        return {
            "is_monitoring": self.is_monitoring,
            "interval_seconds": self._interval,
            "samples_in_window": len(self.window),
            "latest_sample": latest.as_dict() if latest else None,
            "moments": len(self.moments),
            "last_known_location": location.as_dict() if location else None,
        }


def build_engine(
    settings: Settings,
    *,
    channel: NotificationChannel | None = None,
    recommender: PlaceRecommender | None = None,
    repository: FeedbackRepository | None = None,
    location_provider: LocationProvider | None = None,
    rng: random.Random | None = None,
    clock: Clock = now_ms,
) -> MonitoringEngine:
    """Assemble an engine from settings and collaborators.

    Without a notification channel the engine runs without a gate: moments
    are still published on the bus but nothing is notified.
    """
    window = RollingWindowStore(horizon_ms=settings.sample_retention_minutes * MINUTE_MS)
    sampler = TelemetrySampler(
        window,
        rng=rng,
        clock=clock,
        simulate_dips=settings.simulation_mode,
        dip_probability=settings.relaxation_dip_probability,
        default_latitude=settings.default_latitude,
        default_longitude=settings.default_longitude,
        jitter_degrees=settings.location_jitter_degrees,
    )
    if settings.simulation_mode and settings.seed_history_samples > 0:
        sampler.seed_history(settings.seed_history_samples)

    detector = RelaxationDetector(DetectionThresholds(
        window_ms=settings.detection_window_minutes * MINUTE_MS,
        min_baseline_samples=settings.min_baseline_samples,
        heart_rate_drop=settings.heart_rate_drop_threshold,
        stress_drop=settings.stress_drop_threshold,
        movement_ceiling=settings.movement_ceiling,
    ))
    moments = MomentManager(
        retention_ms=settings.moment_retention_hours * HOUR_MS,
        fallback_location=sampler.fallback_location,
    )

    gate: NotificationGate | None = None
    if channel is not None:
        gate = NotificationGate(
            moments,
            channel,
            recommender=recommender,
            repository=repository,
            enrichment_timeout=settings.enrichment_timeout_seconds,
        )

    return MonitoringEngine(
        window=window,
        sampler=sampler,
        detector=detector,
        moments=moments,
        gate=gate,
        location_provider=location_provider,
        interval_seconds=settings.sample_interval_seconds,
    )
