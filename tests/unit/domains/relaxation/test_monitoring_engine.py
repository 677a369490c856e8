"""Tests for MonitoringEngine — lifecycle, pipeline and assembly from settings."""

from __future__ import annotations

import asyncio
import random

import pytest

from zenmoments.core.config.settings import Settings
from zenmoments.domains.relaxation.connectors.location import PushLocationProvider
from zenmoments.domains.relaxation.domain_logic.detector import RelaxationDetector
from zenmoments.domains.relaxation.domain_logic.models import Location, TelemetrySample
from zenmoments.domains.relaxation.domain_logic.moments import MomentManager
from zenmoments.domains.relaxation.domain_logic.sampler import TelemetrySampler
from zenmoments.domains.relaxation.domain_logic.window import RollingWindowStore
from zenmoments.domains.relaxation.engine import MonitoringEngine, build_engine
from zenmoments.domains.relaxation.notifications.gate import NotificationGate

HERE = Location(52.3676, 4.9041)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _engine(
    clock,
    *,
    channel=None,
    recommender=None,
    dip_probability: float = 0.0,
    interval: float = 30.0,
    location_provider=None,
) -> MonitoringEngine:
    window = RollingWindowStore()
    sampler = TelemetrySampler(
        window,
        rng=random.Random(11),
        clock=clock,
        simulate_dips=dip_probability > 0,
        dip_probability=dip_probability,
    )
    moments = MomentManager(fallback_location=sampler.fallback_location)
    gate = NotificationGate(moments, channel, recommender=recommender) if channel else None
    return MonitoringEngine(
        window=window,
        sampler=sampler,
        detector=RelaxationDetector(),
        moments=moments,
        gate=gate,
        location_provider=location_provider,
        interval_seconds=interval,
    )


def _prime_baseline(engine: MonitoringEngine, clock) -> None:
    """Three tense, located samples in the last 90 seconds."""
    for offset in (90_000, 60_000, 30_000):
        engine.window.append(TelemetrySample(
            heart_rate=90, stress_level=70, movement=20,
            timestamp=clock.now - offset, location=HERE,
        ))


class TestLifecycle:
    def test_start_and_stop_are_idempotent(self, clock):
        engine = _engine(clock, interval=0.01)

        async def _cycle():
            results = [await engine.start_monitoring(), await engine.start_monitoring()]
            assert engine.is_monitoring
            results += [await engine.stop_monitoring(), await engine.stop_monitoring()]
            return results

        assert _run(_cycle()) == [True, False, True, False]
        assert not engine.is_monitoring

    def test_double_start_runs_one_timer(self, clock):
        engine = _engine(clock, interval=0.02)
        seen: list[TelemetrySample] = []
        engine.subscribe_data(seen.append)

        async def _sample_for_a_while():
            await engine.start_monitoring()
            await engine.start_monitoring()
            await asyncio.sleep(0.1)
            await engine.stop_monitoring()

        _run(_sample_for_a_while())
        assert 1 <= len(seen) <= 6

    def test_no_samples_after_stop(self, clock):
        engine = _engine(clock, interval=0.01)
        seen: list[TelemetrySample] = []
        engine.subscribe_data(seen.append)

        async def _stop_then_wait():
            await engine.start_monitoring()
            await asyncio.sleep(0.05)
            await engine.stop_monitoring()
            count = len(seen)
            await asyncio.sleep(0.05)
            return count

        count_at_stop = _run(_stop_then_wait())
        assert count_at_stop >= 1
        assert len(seen) == count_at_stop

    def test_invalid_interval_rejected(self, clock):
        with pytest.raises(ValueError):
            _engine(clock, interval=0)

    def test_aclose_leaves_engine_reusable(self, clock, recording_channel):
        engine = _engine(clock, channel=recording_channel, interval=0.01)

        async def _two_sessions():
            await engine.start_monitoring()
            await engine.create_manual()
            await engine.gate.join()
            await engine.aclose()
            stopped = not engine.is_monitoring
            clock.advance(1_000)
            await engine.create_manual()
            await engine.gate.join()
            return stopped

        assert _run(_two_sessions()) is True
        assert len(recording_channel.delivered) == 2


class TestLocationStream:
    def test_location_fixes_reach_sampler(self, clock):
        provider = PushLocationProvider()
        provider.push(51.5074, -0.1278)
        engine = _engine(clock, interval=0.01, location_provider=provider)
        seen: list[TelemetrySample] = []
        engine.subscribe_data(seen.append)

        async def _monitor():
            await engine.start_monitoring()
            await asyncio.sleep(0.05)
            await engine.stop_monitoring()

        _run(_monitor())
        assert engine.sampler.last_location == Location(51.5074, -0.1278)
        assert seen[-1].location == Location(51.5074, -0.1278)

    def test_update_location_without_monitoring(self, clock):
        engine = _engine(clock)
        engine.update_location(Location(40.7128, -74.006))
        moment = _run(engine.create_manual())
        assert not engine.is_monitoring
        assert moment.location == Location(40.7128, -74.006)
        assert engine.status()["last_known_location"] == {"latitude": 40.7128, "longitude": -74.006}

    def test_permission_denied_falls_back_to_default(self, clock):
        provider = PushLocationProvider(permission_granted=False)
        engine = _engine(clock, interval=0.01, location_provider=provider)
        seen: list[TelemetrySample] = []
        engine.subscribe_data(seen.append)

        async def _monitor():
            await engine.start_monitoring()
            await asyncio.sleep(0.05)
            still_running = engine.is_monitoring
            await engine.stop_monitoring()
            return still_running

        assert _run(_monitor()) is True
        assert seen
        assert all(s.location is not None for s in seen)
        assert engine.sampler.last_location is None


class TestPipeline:
    def test_tick_publishes_sample(self, clock):
        engine = _engine(clock)
        seen: list[TelemetrySample] = []
        engine.subscribe_data(seen.append)
        sample = _run(engine.tick())
        assert seen == [sample]
        assert engine.window.latest() is sample

    def test_tick_detects_and_notifies(self, clock, recording_channel, static_recommender):
        engine = _engine(
            clock, channel=recording_channel, recommender=static_recommender, dip_probability=1.0
        )
        _prime_baseline(engine, clock)
        moments = []
        engine.subscribe_moment(moments.append)

        async def _tick_and_drain():
            await engine.tick()
            await engine.gate.join()
            await engine.aclose()

        _run(_tick_and_drain())
        assert len(moments) == 1
        assert moments[0].is_manual is False
        [note] = recording_channel.delivered
        assert note.moment_id == moments[0].id
        stored = engine.list_moments()[0]
        assert stored.status == "notified"
        assert stored.nearby_place.name == "Hortus Botanicus"

    def test_create_manual_without_sample(self, clock, recording_channel):
        engine = _engine(clock, channel=recording_channel)
        moments = []
        engine.subscribe_moment(moments.append)

        async def _declare():
            moment = await engine.create_manual()
            await engine.gate.join()
            return moment

        moment = _run(_declare())
        assert moment.is_manual is True
        assert moment.location is not None
        assert moments == [moment]
        assert len(recording_channel.delivered) == 1

    def test_create_manual_substitutes_location(self, clock):
        engine = _engine(clock)
        bare = TelemetrySample(heart_rate=60, stress_level=10, movement=5, timestamp=clock.now)
        moment = _run(engine.create_manual(bare))
        assert moment.location is not None

    def test_feedback_via_engine(self, clock, recording_channel):
        engine = _engine(clock, channel=recording_channel)

        async def _declare():
            moment = await engine.create_manual()
            await engine.gate.join()
            return moment

        moment = _run(_declare())
        assert engine.record_feedback(moment.id, True).status == "updated"
        assert engine.record_feedback("missing", True).status == "not_found"
        assert engine.list_moments()[0].confirmed is True

    def test_feedback_without_gate(self, clock):
        engine = _engine(clock)
        moment = _run(engine.create_manual())
        assert engine.record_feedback(moment.id, False).status == "updated"

    def test_unsubscribed_listener_stops_receiving(self, clock):
        engine = _engine(clock)
        seen: list[TelemetrySample] = []
        sub = engine.subscribe_data(seen.append)
        _run(engine.tick())
        sub.unsubscribe()
        clock.advance(30_000)
        _run(engine.tick())
        assert len(seen) == 1

    def test_status(self, clock):
        engine = _engine(clock)
        _run(engine.tick())
        status = engine.status()
        assert status["is_monitoring"] is False
        assert status["samples_in_window"] == 1
        assert status["latest_sample"]["timestamp"] == clock.now
        assert status["moments"] == 0


class TestBuildEngine:
    def test_simulation_seeds_history(self, clock):
        settings = Settings(simulation_mode=True, seed_history_samples=10)
        engine = build_engine(settings, rng=random.Random(1), clock=clock)
        assert len(engine.window) == 10
        assert engine.gate is None

    def test_simulation_off_starts_empty(self, clock, recording_channel):
        settings = Settings(simulation_mode=False)
        engine = build_engine(settings, channel=recording_channel, clock=clock)
        assert len(engine.window) == 0
        assert engine.gate is not None
        assert engine.detector.thresholds.movement_ceiling == settings.movement_ceiling

    def test_recent_samples(self, clock):
        settings = Settings(simulation_mode=True, seed_history_samples=60)
        engine = build_engine(settings, rng=random.Random(1), clock=clock)
        # Seeded samples are one minute apart; the newest is a minute old.
        assert len(engine.recent_samples(10)) == 11
