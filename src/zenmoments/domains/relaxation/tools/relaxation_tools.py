"""MCP tools exposing the relaxation engine to clients.

These are the only entry points a client has into the engine: lifecycle
controls, user-declared moments, feedback, and read-only views.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastmcp import FastMCP

from zenmoments.domains.relaxation.domain_logic.models import (
    HEART_RATE_RANGE,
    MOVEMENT_RANGE,
    STRESS_RANGE,
    Location,
    TelemetrySample,
)

if TYPE_CHECKING:
    from zenmoments.domains.relaxation.connectors.location import PushLocationProvider
    from zenmoments.domains.relaxation.connectors.notifications import OutboxNotificationChannel
    from zenmoments.domains.relaxation.engine import MonitoringEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _in_range(name: str, value: int | None, bounds: tuple[int, int]) -> int | None:
    low, high = bounds
    if value is not None and not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")
    return value


def _manual_sample(
    engine: MonitoringEngine,
    *,
    heart_rate: int | None,
    stress_level: int | None,
    movement: int | None,
    latitude: float | None,
    longitude: float | None,
) -> TelemetrySample | None:
    """Build the sample for a declared moment, or None to use the canned relaxed reading."""
    if (latitude is None) != (longitude is None):
        raise ValueError("latitude and longitude must be given together")
    if all(v is None for v in (heart_rate, stress_level, movement, latitude)):
        return None

    heart_rate = _in_range("heart_rate", heart_rate, HEART_RATE_RANGE)
    stress_level = _in_range("stress_level", stress_level, STRESS_RANGE)
    movement = _in_range("movement", movement, MOVEMENT_RANGE)

    relaxed = engine.sampler.relaxed_sample()
    location = relaxed.location
    if latitude is not None and longitude is not None:
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise ValueError(f"Invalid coordinate: ({latitude}, {longitude})")
        location = Location(latitude=latitude, longitude=longitude)

    return TelemetrySample(
        heart_rate=heart_rate if heart_rate is not None else relaxed.heart_rate,
        stress_level=stress_level if stress_level is not None else relaxed.stress_level,
        movement=movement if movement is not None else relaxed.movement,
        timestamp=relaxed.timestamp,
        location=location,
    )


def _validate_limit(limit: int, *, maximum: int = 500) -> int:
    if limit < 1 or limit > maximum:
        raise ValueError(f"limit must be between 1 and {maximum}")
    return limit


def register_relaxation_tools(
    mcp: FastMCP,
    engine: MonitoringEngine,
    *,
    channel: OutboxNotificationChannel | None = None,
    location_provider: PushLocationProvider | None = None,
) -> None:
    """Register relaxation monitoring tools on the MCP server."""

    @mcp.tool
    async def start_monitoring() -> str:
        """Start sampling wearable telemetry and detecting relaxation moments."""
        started = await engine.start_monitoring()
        return json.dumps({"status": "started" if started else "already_running"})

    @mcp.tool
    async def stop_monitoring() -> str:
        """Stop telemetry sampling and release the location stream."""
        stopped = await engine.stop_monitoring()
        return json.dumps({"status": "stopped" if stopped else "not_running"})

    @mcp.tool
    def monitoring_status() -> str:
        """Report whether monitoring is active, plus the latest sample and moment count."""
        return json.dumps(engine.status())

    @mcp.tool
    def recent_telemetry(minutes: float = 10) -> str:
        """Return telemetry samples from the last N minutes, oldest first.

        Args:
            minutes: Look-back window in minutes (max 60).
        """
        if minutes <= 0 or minutes > 60:
            raise ValueError("minutes must be within (0, 60]")
        samples = engine.recent_samples(minutes)
        return json.dumps({
            "minutes": minutes,
            "count": len(samples),
            "samples": [s.as_dict() for s in samples],
        })

    @mcp.tool
    async def declare_relaxation(
        heart_rate: int | None = None,
        stress_level: int | None = None,
        movement: int | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> str:
        """Declare a relaxation moment directly ("I'm feeling zen now").

        Omitted readings fall back to a relaxed reference reading; an omitted
        location falls back to the last known or default location.

        Args:
            heart_rate: Current heart rate in BPM (50-120).
            stress_level: Current stress level (0-100).
            movement: Current activity level (0-100).
            latitude: Current latitude in decimal degrees.
            longitude: Current longitude in decimal degrees.
        """
        sample = _manual_sample(
            engine,
            heart_rate=heart_rate,
            stress_level=stress_level,
            movement=movement,
            latitude=latitude,
            longitude=longitude,
        )
        moment = await engine.create_manual(sample)
        logger.info("Relaxation moment %s declared by the user", moment.id)
        return json.dumps({"status": "created", "moment": moment.as_dict()})

    @mcp.tool
    def record_relaxation_feedback(moment_id: str, was_relaxing: bool) -> str:
        """Record whether a detected moment really was relaxing.

        Args:
            moment_id: Id of the relaxation moment.
            was_relaxing: True if the user confirms, False if they reject it.
        """
        if not moment_id:
            raise ValueError("moment_id is required")
        outcome = engine.record_feedback(moment_id, was_relaxing)
        return json.dumps(outcome.as_dict())

    @mcp.tool
    def list_relaxation_moments(newest_first: bool = True) -> str:
        """List relaxation moments from the last 24 hours.

        Args:
            newest_first: Order newest to oldest (default) or in creation order.
        """
        moments = engine.list_moments()
        if newest_first:
            moments.reverse()
        return json.dumps({
            "count": len(moments),
            "moments": [m.as_dict() for m in moments],
        })

    @mcp.tool
    def feedback_history(limit: int = 50) -> str:
        """Return recorded relaxation feedback, newest first.

        Args:
            limit: Maximum number of records to return.
        """
        if engine.gate is None:
            return json.dumps({"count": 0, "records": []})
        records = engine.gate.feedback_history(_validate_limit(limit))
        records.reverse()
        return json.dumps({"count": len(records), "records": [r.as_dict() for r in records]})

    if channel is not None:
        @mcp.tool
        def recent_notifications(limit: int = 20) -> str:
            """Return the most recent relaxation notifications, newest first.

            Args:
                limit: Maximum number of notifications to return.
            """
            items = channel.recent(_validate_limit(limit, maximum=100))
            return json.dumps({"count": len(items), "notifications": items})

    if location_provider is not None:
        @mcp.tool
        def report_location(latitude: float, longitude: float) -> str:
            """Report the device's current position.

            The fix is used right away by declared moments, and by sampling
            once monitoring runs.

            Args:
                latitude: Latitude in decimal degrees.
                longitude: Longitude in decimal degrees.
            """
            location = location_provider.push(latitude, longitude)
            engine.update_location(location)
            return json.dumps({"status": "ok", "location": location.as_dict()})
