"""Place recommendation — ranks calm places for a preference profile."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from zenmoments.domains.relaxation.domain_logic.models import Location, ZenPlace
from zenmoments.domains.relaxation.places.preferences import PlacePreferences


@runtime_checkable
class PlaceRecommender(Protocol):
    """Recommendation scorer consulted to enrich relaxation moments."""

    async def recommend(
        self,
        prefs: PlacePreferences,
        *,
        near: Location | None = None,
        limit: int = 10,
    ) -> list[ZenPlace]:
        """Return up to ``limit`` places, best match first."""
        ...


@runtime_checkable
class PlaceSource(Protocol):
    """Supplies candidate places around a location."""

    async def nearby(self, prefs: PlacePreferences, location: Location) -> list[ZenPlace]:
        ...
