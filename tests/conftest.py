"""Shared test fixtures for Zen Moments tests."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OVERPASS_ENABLED", "false")
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("DB_PATH", ":memory:")
    monkeypatch.setenv("SIMULATION_MODE", "true")
    monkeypatch.setenv("ZEN_HOST", "127.0.0.1")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from zenmoments.domains.relaxation.domain_logic.models import (  # noqa: E402
    Location,
    Notification,
    ZenPlace,
)
from zenmoments.domains.relaxation.places.preferences import PlacePreferences  # noqa: E402

# Fixed reference time for deterministic tests (2026-03-01T12:00:00Z)
T0 = 1_772_366_400_000


# ---------------------------------------------------------------------------
# Clock and collaborators
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class RecordingChannel:
    """Notification channel that keeps every delivered notification."""

    def __init__(self, *, fail: bool = False) -> None:
        self.delivered: list[Notification] = []
        self._fail = fail

    async def deliver(self, notification: Notification) -> str:
        if self._fail:
            raise RuntimeError("device refused notification")
        self.delivered.append(notification)
        return f"delivery-{len(self.delivered)}"


class StaticRecommender:
    """Recommender returning a fixed list, optionally slow or failing."""

    def __init__(
        self,
        places: list[ZenPlace] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.places = list(places or [])
        self.delay = delay
        self.error = error
        self.calls: list[tuple[PlacePreferences, Location | None, int]] = []

    async def recommend(
        self,
        prefs: PlacePreferences,
        *,
        near: Location | None = None,
        limit: int = 10,
    ) -> list[ZenPlace]:
        self.calls.append((prefs, near, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.places[:limit]


def make_place(
    name: str = "Hortus Botanicus",
    type: str = "garden",
    description: str = "Botanical garden with quiet paths.",
) -> ZenPlace:
    return ZenPlace(
        id=f"test-{name.lower().replace(' ', '-')}",
        name=name,
        description=description,
        type=type,
        location=Location(52.3667, 4.9089),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def garden_place() -> ZenPlace:
    return make_place()


@pytest.fixture
def static_recommender(garden_place: ZenPlace) -> StaticRecommender:
    return StaticRecommender([garden_place])


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def feedback_db():
    """Create an in-memory FeedbackDatabase for testing."""
    from zenmoments.core.storage.database import FeedbackDatabase

    db = FeedbackDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from zenmoments.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def feedback_repository(feedback_db, field_encryptor):
    """Create a FeedbackRepository backed by in-memory SQLite."""
    from zenmoments.core.storage.repository import FeedbackRepository

    return FeedbackRepository(feedback_db, field_encryptor)


@pytest.fixture
def make_recommender():
    """Factory for StaticRecommender instances with custom behaviour."""
    return StaticRecommender


@pytest.fixture
def failing_channel() -> RecordingChannel:
    return RecordingChannel(fail=True)
