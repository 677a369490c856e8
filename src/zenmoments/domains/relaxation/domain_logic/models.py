"""Telemetry and relaxation-moment models plus domain constants."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import Callable


# ---------------------------------------------------------------------------
# Valid ranges (inclusive)
# ---------------------------------------------------------------------------

HEART_RATE_RANGE = (50, 120)
STRESS_RANGE = (0, 100)
MOVEMENT_RANGE = (0, 100)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

# Reference coordinate used when no location fix is available (Amsterdam)
DEFAULT_LATITUDE = 52.3676
DEFAULT_LONGITUDE = 4.9041
DEFAULT_JITTER_DEGREES = 0.01

# Id origin tags
DETECTED_ORIGIN = "relaxation"
MANUAL_ORIGIN = "manual-relaxation"

Clock = Callable[[], int]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def clamp(value: float, bounds: tuple[int, int]) -> float:
    low, high = bounds
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Location:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: dict) -> Location:
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


def jittered_location(
    rng: random.Random,
    *,
    latitude: float = DEFAULT_LATITUDE,
    longitude: float = DEFAULT_LONGITUDE,
    jitter: float = DEFAULT_JITTER_DEGREES,
) -> Location:
    """Return a point within ``jitter / 2`` degrees of the reference coordinate."""
    return Location(
        latitude=latitude + (rng.random() - 0.5) * jitter,
        longitude=longitude + (rng.random() - 0.5) * jitter,
    )


@dataclass(frozen=True)
class TelemetrySample:
    """A single simulated wearable reading."""

    heart_rate: int       # bpm, 50-120
    stress_level: int     # 0 (relaxed) - 100 (stressed)
    movement: int         # 0 (still) - 100 (very active)
    timestamp: int        # epoch milliseconds
    location: Location | None = None

    def as_dict(self) -> dict:
        return {
            "heart_rate": self.heart_rate,
            "stress_level": self.stress_level,
            "movement": self.movement,
            "timestamp": self.timestamp,
            "location": self.location.as_dict() if self.location else None,
        }


@dataclass(frozen=True)
class ZenPlace:
    """A calm point of interest that can be attached to a moment."""

    id: str
    name: str
    description: str
    type: str  # 'park' | 'garden' | 'cafe' | 'meditation'
    location: Location
    image_url: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "location": self.location.as_dict(),
            "image_url": self.image_url,
        }


@dataclass
class RelaxationMoment:
    """A detected or user-declared instant of physiological calm.

    Only the MomentManager mutates instances; everything else receives copies.
    """

    id: str
    timestamp: int
    location: Location
    heart_rate: int
    stress_level: int
    nearby_place: ZenPlace | None = None
    confirmed: bool | None = None   # None until the user responds
    is_manual: bool = False
    notified: bool = False

    @property
    def status(self) -> str:
        """Lifecycle state: detected/manual -> notified -> confirmed | rejected."""
        if self.confirmed is True:
            return "confirmed"
        if self.confirmed is False:
            return "rejected"
        if self.notified:
            return "notified"
        return "manual" if self.is_manual else "detected"

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "location": self.location.as_dict(),
            "heart_rate": self.heart_rate,
            "stress_level": self.stress_level,
            "nearby_place": self.nearby_place.as_dict() if self.nearby_place else None,
            "confirmed": self.confirmed,
            "is_manual": self.is_manual,
            "status": self.status,
        }


@dataclass(frozen=True)
class DetectionThresholds:
    """Tunable parameters of the relaxation threshold test."""

    window_ms: int = 5 * MINUTE_MS
    min_baseline_samples: int = 3
    heart_rate_drop: float = 5.0
    stress_drop: float = 10.0
    movement_ceiling: int = 25


@dataclass
class FeedbackOutcome:
    """Result of recording user feedback against the moment set."""

    status: str  # 'updated' | 'unchanged' | 'not_found'
    moment_id: str
    moment: RelaxationMoment | None = None

    @property
    def found(self) -> bool:
        return self.status != "not_found"

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "moment_id": self.moment_id,
            "moment": self.moment.as_dict() if self.moment else None,
        }


@dataclass
class Notification:
    """Composed notification content handed to the notification channel."""

    title: str
    body: str
    moment_id: str
    data: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "body": self.body,
            "moment_id": self.moment_id,
            "data": self.data,
        }
