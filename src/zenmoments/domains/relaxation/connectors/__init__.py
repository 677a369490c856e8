"""Connectors — interfaces to the device services the engine depends on."""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable

from zenmoments.domains.relaxation.domain_logic.models import Location, Notification


class LocationUnavailableError(Exception):
    """Location permission was denied or the provider cannot deliver fixes."""


@runtime_checkable
class LocationProvider(Protocol):
    """Best-effort stream of position fixes.

    Absence of fixes is a valid state. ``updates()`` raises
    LocationUnavailableError when permission is denied.
    """

    def updates(self) -> AsyncIterator[Location]:
        """Yield positions as they arrive."""
        ...


@runtime_checkable
class NotificationChannel(Protocol):
    """On-device notification delivery."""

    async def deliver(self, notification: Notification) -> str:
        """Hand a notification to the device and return its delivery id."""
        ...
