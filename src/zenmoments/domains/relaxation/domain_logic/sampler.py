"""Simulated wearable telemetry: bounded random walk with optional relaxation dips."""

from __future__ import annotations

import logging
import math
import random

from zenmoments.domains.relaxation.domain_logic.models import (
    DEFAULT_JITTER_DEGREES,
    DEFAULT_LATITUDE,
    DEFAULT_LONGITUDE,
    HEART_RATE_RANGE,
    MINUTE_MS,
    MOVEMENT_RANGE,
    STRESS_RANGE,
    Clock,
    Location,
    TelemetrySample,
    clamp,
    jittered_location,
    now_ms,
)
from zenmoments.domains.relaxation.domain_logic.window import RollingWindowStore

logger = logging.getLogger(__name__)

# Starting point when the window is empty
BASE_HEART_RATE = 70
BASE_STRESS = 50
BASE_MOVEMENT = 20

# Random-walk step spans (each step is uniform in [-span/2, span/2])
HEART_RATE_STEP = 6.0
STRESS_STEP = 10.0
MOVEMENT_STEP = 15.0

# Synthetic relaxation dip
DIP_HEART_RATE = 15
DIP_STRESS = 30
DIP_MOVEMENT = 15


class TelemetrySampler:
    """Produces one plausible biometric sample per tick.

    Each sample continues from the newest sample in the window. When
    ``simulate_dips`` is on, a small fraction of ticks receive a synthetic
    relaxation dip so the detector has positive examples to react to.
    """

    def __init__(
        self,
        window: RollingWindowStore,
        *,
        rng: random.Random | None = None,
        clock: Clock = now_ms,
        simulate_dips: bool = True,
        dip_probability: float = 0.05,
        default_latitude: float = DEFAULT_LATITUDE,
        default_longitude: float = DEFAULT_LONGITUDE,
        jitter_degrees: float = DEFAULT_JITTER_DEGREES,
    ) -> None:
        if not 0.0 <= dip_probability <= 1.0:
            raise ValueError("dip_probability must be within [0, 1]")
        self._window = window
        self._rng = rng or random.Random()
        self._clock = clock
        self._simulate_dips = simulate_dips
        self._dip_probability = dip_probability
        self._default_latitude = default_latitude
        self._default_longitude = default_longitude
        self._jitter = jitter_degrees
        self._last_location: Location | None = None

    @property
    def last_location(self) -> Location | None:
        return self._last_location

    def update_location(self, location: Location) -> None:
        """Record the most recent position from the location stream."""
        self._last_location = location

    def fallback_location(self) -> Location:
        """A jittered point around the configured reference coordinate."""
        return jittered_location(
            self._rng,
            latitude=self._default_latitude,
            longitude=self._default_longitude,
            jitter=self._jitter,
        )

    def current_location(self) -> Location:
        """Last known position, or a jittered default when none arrived."""
        return self._last_location or self.fallback_location()

    def tick(self) -> TelemetrySample:
        """Generate the next sample and append it to the window."""
        sample = self.next_sample()
        self._window.append(sample)
        logger.debug(
            "Sample hr=%d stress=%d movement=%d",
            sample.heart_rate,
            sample.stress_level,
            sample.movement,
        )
        return sample

    def next_sample(self) -> TelemetrySample:
        """Build the next random-walk sample without storing it."""
        previous = self._window.latest()
        heart_rate = float(previous.heart_rate if previous else BASE_HEART_RATE)
        stress = float(previous.stress_level if previous else BASE_STRESS)
        movement = float(previous.movement if previous else BASE_MOVEMENT)

        heart_rate = clamp(heart_rate + self._step(HEART_RATE_STEP), HEART_RATE_RANGE)
        stress = clamp(stress + self._step(STRESS_STEP), STRESS_RANGE)
        movement = clamp(movement + self._step(MOVEMENT_STEP), MOVEMENT_RANGE)

        if self._simulate_dips and self._rng.random() < self._dip_probability:
            heart_rate = clamp(heart_rate - DIP_HEART_RATE, HEART_RATE_RANGE)
            stress = clamp(stress - DIP_STRESS, STRESS_RANGE)
            movement = clamp(movement - DIP_MOVEMENT, MOVEMENT_RANGE)
            logger.debug("Injected synthetic relaxation dip")

        return TelemetrySample(
            heart_rate=math.floor(heart_rate),
            stress_level=math.floor(stress),
            movement=math.floor(movement),
            timestamp=self._clock(),
            location=self.current_location(),
        )

    def relaxed_sample(self) -> TelemetrySample:
        """A canned, clearly relaxed reading used for user-declared moments."""
        return TelemetrySample(
            heart_rate=60,
            stress_level=10,
            movement=5,
            timestamp=self._clock(),
            location=self.current_location(),
        )

    def seed_history(self, count: int = 60) -> int:
        """Fill the window with ``count`` location-less samples, one per minute.

        Returns the number of samples added.
        """
        now = self._clock()
        for i in range(count):
            self._window.append(TelemetrySample(
                heart_rate=self._rng.randint(60, 79),
                stress_level=self._rng.randint(30, 79),
                movement=self._rng.randint(0, 29),
                timestamp=now - (count - i) * MINUTE_MS,
            ))
        logger.info("Seeded %d simulated history samples", count)
        return count

    def _step(self, span: float) -> float:
        return (self._rng.random() - 0.5) * span
