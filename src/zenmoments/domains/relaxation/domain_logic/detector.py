"""Relaxation detection: threshold test of a new sample against a rolling baseline.

The rule is a heuristic, not a calibrated classifier:

* at least ``min_baseline_samples`` prior samples inside the detection window,
* heart rate at least ``heart_rate_drop`` below the baseline mean
  **or** stress at least ``stress_drop`` below the baseline mean,
* **and** movement strictly below ``movement_ceiling``.

A sample without a location never triggers.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from typing import Sequence

from zenmoments.domains.relaxation.domain_logic.models import (
    DetectionThresholds,
    TelemetrySample,
)
from zenmoments.domains.relaxation.domain_logic.window import RollingWindowStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Baseline:
    """Mean telemetry over the prior samples of the detection window."""

    heart_rate: float
    stress_level: float
    movement: float
    sample_count: int


def compute_baseline(samples: Sequence[TelemetrySample]) -> Baseline | None:
    """Arithmetic means of heart rate, stress and movement, or None if empty."""
    if not samples:
        return None
    return Baseline(
        heart_rate=statistics.fmean(s.heart_rate for s in samples),
        stress_level=statistics.fmean(s.stress_level for s in samples),
        movement=statistics.fmean(s.movement for s in samples),
        sample_count=len(samples),
    )


def is_relaxation(
    prior: Sequence[TelemetrySample],
    sample: TelemetrySample,
    thresholds: DetectionThresholds = DetectionThresholds(),
) -> bool:
    """Pure trigger decision for ``sample`` given the prior window samples."""
    if sample.location is None:
        return False
    if len(prior) < thresholds.min_baseline_samples:
        return False

    baseline = compute_baseline(prior)
    if baseline is None:
        return False

    heart_rate_drop = baseline.heart_rate - sample.heart_rate
    stress_drop = baseline.stress_level - sample.stress_level
    return (
        (heart_rate_drop >= thresholds.heart_rate_drop or stress_drop >= thresholds.stress_drop)
        and sample.movement < thresholds.movement_ceiling
    )


class RelaxationDetector:
    """Reads the detection window from the store and applies :func:`is_relaxation`.

    Holds no state beyond its thresholds.
    """

    def __init__(self, thresholds: DetectionThresholds | None = None) -> None:
        self._thresholds = thresholds or DetectionThresholds()

    @property
    def thresholds(self) -> DetectionThresholds:
        return self._thresholds

    def prior_window(
        self, store: RollingWindowStore, sample: TelemetrySample
    ) -> list[TelemetrySample]:
        """Samples in the detection window ending at ``sample``, excluding it."""
        window = store.recent(self._thresholds.window_ms, now=sample.timestamp)
        return [s for s in window if s is not sample]

    def evaluate(self, store: RollingWindowStore, sample: TelemetrySample) -> bool:
        """Decide whether the newly appended ``sample`` is a relaxation event."""
        triggered = is_relaxation(self.prior_window(store, sample), sample, self._thresholds)
        if triggered:
            logger.info(
                "Relaxation detected at %d (hr=%d, stress=%d, movement=%d)",
                sample.timestamp,
                sample.heart_rate,
                sample.stress_level,
                sample.movement,
            )
        return triggered
