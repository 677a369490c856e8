"""Rolling window of recent telemetry samples."""

from __future__ import annotations

import bisect
import logging
from collections import deque

from zenmoments.domains.relaxation.domain_logic.models import HOUR_MS, TelemetrySample

logger = logging.getLogger(__name__)


class RollingWindowStore:
    """Time-ordered samples from the last ``horizon_ms`` milliseconds.

    The horizon is measured against the newest sample held, so the store
    never contains a sample older than ``horizon_ms`` relative to it.

    Usage::

        store = RollingWindowStore()
        store.append(sample)
        baseline = store.recent(5 * 60 * 1000)
    """

    def __init__(self, horizon_ms: int = HOUR_MS) -> None:
        if horizon_ms <= 0:
            raise ValueError("horizon_ms must be positive")
        self._horizon_ms = horizon_ms
        self._samples: deque[TelemetrySample] = deque()

    @property
    def horizon_ms(self) -> int:
        return self._horizon_ms

    def __len__(self) -> int:
        return len(self._samples)

    def latest(self) -> TelemetrySample | None:
        """Return the newest sample, or None when empty."""
        return self._samples[-1] if self._samples else None

    def append(self, sample: TelemetrySample) -> None:
        """Insert a sample in timestamp order and prune expired samples."""
        if not self._samples or sample.timestamp >= self._samples[-1].timestamp:
            self._samples.append(sample)
        else:
            # Late arrival: keep the sequence ordered.
            timestamps = [s.timestamp for s in self._samples]
            self._samples.insert(bisect.bisect_right(timestamps, sample.timestamp), sample)
        self._prune()

    def recent(self, duration_ms: int, *, now: int | None = None) -> list[TelemetrySample]:
        """Samples with ``timestamp >= now - duration_ms``, oldest first.

        Args:
            duration_ms: Look-back span in milliseconds.
            now: Reference time. Defaults to the newest sample's timestamp.
        """
        if not self._samples:
            return []
        reference = self._samples[-1].timestamp if now is None else now
        cutoff = reference - duration_ms
        result: list[TelemetrySample] = []
        for sample in reversed(self._samples):
            if sample.timestamp < cutoff:
                break
            if sample.timestamp <= reference:
                result.append(sample)
        result.reverse()
        return result

    def snapshot(self) -> list[TelemetrySample]:
        """All retained samples, oldest first."""
        return list(self._samples)

    def _prune(self) -> None:
        cutoff = self._samples[-1].timestamp - self._horizon_ms
        dropped = 0
        while self._samples and self._samples[0].timestamp < cutoff:
            self._samples.popleft()
            dropped += 1
        if dropped:
            logger.debug("Pruned %d samples older than %d", dropped, cutoff)
