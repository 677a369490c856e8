"""Data models for the feedback persistence layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class FeedbackRecord:
    """One user verdict on a relaxation moment, kept for later analysis."""

    id: str
    namespace: str
    moment_id: str
    moment_timestamp: int                      # epoch milliseconds
    confirmed: bool
    location: dict[str, float] | None = None   # stored encrypted
    nearby_place_name: str | None = None
    is_manual: bool = False
    recorded_at: str = ""                      # ISO 8601

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "moment_id": self.moment_id,
            "moment_timestamp": self.moment_timestamp,
            "confirmed": self.confirmed,
            "location": self.location,
            "nearby_place_name": self.nearby_place_name,
            "is_manual": self.is_manual,
            "recorded_at": self.recorded_at,
        }
