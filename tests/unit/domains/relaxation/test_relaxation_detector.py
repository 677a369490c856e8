"""Tests for the relaxation threshold test against a rolling baseline."""

from __future__ import annotations

from zenmoments.domains.relaxation.domain_logic.detector import (
    RelaxationDetector,
    compute_baseline,
    is_relaxation,
)
from zenmoments.domains.relaxation.domain_logic.models import (
    MINUTE_MS,
    DetectionThresholds,
    Location,
    TelemetrySample,
)
from zenmoments.domains.relaxation.domain_logic.window import RollingWindowStore

T0 = 1_772_366_400_000
HERE = Location(52.3676, 4.9041)


def _baseline() -> list[TelemetrySample]:
    readings = [(75, 50, 20), (74, 52, 22), (76, 48, 18)]
    return [
        TelemetrySample(heart_rate=hr, stress_level=st, movement=mv, timestamp=T0 + i * 30_000, location=HERE)
        for i, (hr, st, mv) in enumerate(readings)
    ]


def _new(heart_rate: int, stress: int, movement: int, location: Location | None = HERE) -> TelemetrySample:
    return TelemetrySample(
        heart_rate=heart_rate,
        stress_level=stress,
        movement=movement,
        timestamp=T0 + 90_000,
        location=location,
    )


class TestBaseline:
    def test_means(self):
        baseline = compute_baseline(_baseline())
        assert baseline.heart_rate == 75
        assert baseline.stress_level == 50
        assert baseline.movement == 20
        assert baseline.sample_count == 3

    def test_empty_has_no_baseline(self):
        assert compute_baseline([]) is None


class TestTrigger:
    def test_heart_rate_drop_triggers(self):
        assert is_relaxation(_baseline(), _new(68, 55, 10)) is True

    def test_small_drop_does_not_trigger(self):
        assert is_relaxation(_baseline(), _new(73, 49, 10)) is False

    def test_stress_drop_alone_triggers(self):
        assert is_relaxation(_baseline(), _new(75, 40, 10)) is True

    def test_threshold_boundaries_are_inclusive(self):
        assert is_relaxation(_baseline(), _new(70, 50, 10)) is True
        assert is_relaxation(_baseline(), _new(75, 40, 10)) is True

    def test_movement_at_ceiling_blocks_trigger(self):
        assert is_relaxation(_baseline(), _new(60, 20, 25)) is False
        assert is_relaxation(_baseline(), _new(60, 20, 24)) is True

    def test_insufficient_baseline_never_triggers(self):
        assert is_relaxation(_baseline()[:2], _new(55, 0, 0)) is False

    def test_sample_without_location_never_triggers(self):
        assert is_relaxation(_baseline(), _new(55, 0, 0, location=None)) is False

    def test_custom_thresholds(self):
        strict = DetectionThresholds(heart_rate_drop=10.0, stress_drop=30.0)
        assert is_relaxation(_baseline(), _new(68, 55, 10), strict) is False

    def test_decision_is_deterministic(self):
        prior = _baseline()
        sample = _new(68, 55, 10)
        results = {is_relaxation(prior, sample) for _ in range(20)}
        assert results == {True}


class TestDetectorWithStore:
    def _store_with(self, samples: list[TelemetrySample]) -> RollingWindowStore:
        store = RollingWindowStore()
        for s in samples:
            store.append(s)
        return store

    def test_new_sample_excluded_from_baseline(self):
        new = _new(68, 55, 10)
        store = self._store_with(_baseline() + [new])
        detector = RelaxationDetector()
        assert len(detector.prior_window(store, new)) == 3
        assert detector.evaluate(store, new) is True

    def test_only_last_five_minutes_count(self):
        old = [
            TelemetrySample(heart_rate=90, stress_level=80, movement=10,
                            timestamp=T0 - 10 * MINUTE_MS + i, location=HERE)
            for i in range(5)
        ]
        new = _new(68, 55, 10)
        store = self._store_with(old + _baseline()[:2] + [new])
        detector = RelaxationDetector()
        assert len(detector.prior_window(store, new)) == 2
        assert detector.evaluate(store, new) is False

    def test_evaluate_has_no_hidden_state(self):
        new = _new(68, 55, 10)
        store = self._store_with(_baseline() + [new])
        detector = RelaxationDetector()
        assert [detector.evaluate(store, new) for _ in range(3)] == [True, True, True]
