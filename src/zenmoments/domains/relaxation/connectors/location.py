"""Push-fed location provider."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from zenmoments.domains.relaxation.connectors import LocationUnavailableError
from zenmoments.domains.relaxation.domain_logic.models import Location

logger = logging.getLogger(__name__)


class PushLocationProvider:
    """Location provider fed by explicit ``push()`` calls.

    Only the newest unread fix is kept; older unread fixes are superseded.

    Usage::

        provider = PushLocationProvider()
        provider.push(52.37, 4.90)
        async for location in provider.updates():
            ...
    """

    def __init__(self, *, permission_granted: bool = True) -> None:
        self.permission_granted = permission_granted
        self._queue: asyncio.Queue[Location] = asyncio.Queue(maxsize=1)
        self._latest: Location | None = None

    @property
    def latest(self) -> Location | None:
        return self._latest

    def push(self, latitude: float, longitude: float) -> Location:
        """Publish a new position fix."""
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise ValueError(f"Invalid coordinate: ({latitude}, {longitude})")
        location = Location(latitude=latitude, longitude=longitude)
        self._latest = location
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(location)
        logger.debug("Location fix pushed: %s", location)
        return location

    async def updates(self) -> AsyncIterator[Location]:
        if not self.permission_granted:
            raise LocationUnavailableError("Location permission denied")
        if self._latest is not None and self._queue.empty():
            yield self._latest
        while True:
            yield await self._queue.get()
