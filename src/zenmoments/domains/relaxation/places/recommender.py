"""Preference-scored place recommendations with catalog fallback."""

from __future__ import annotations

import logging

from zenmoments.domains.relaxation.domain_logic.models import (
    DEFAULT_LATITUDE,
    DEFAULT_LONGITUDE,
    Location,
    ZenPlace,
)
from zenmoments.domains.relaxation.places import PlaceSource
from zenmoments.domains.relaxation.places.overpass import PlaceLookupError
from zenmoments.domains.relaxation.places.preferences import PlacePreferences, rank_places

logger = logging.getLogger(__name__)


class ZenPlaceRecommender:
    """Ranks candidate places for a preference profile.

    Candidates come from ``source`` when configured; when it fails or returns
    nothing, the static ``fallback`` catalog is used instead.

    Usage::

        recommender = ZenPlaceRecommender(OverpassPlaceSource(), fallback=load_place_catalog())
        best = await recommender.recommend(MEDITATION_PROFILE, near=moment.location, limit=1)
    """

    def __init__(
        self,
        source: PlaceSource | None = None,
        *,
        fallback: list[ZenPlace] | None = None,
        default_location: Location | None = None,
    ) -> None:
        self._source = source
        self._fallback = list(fallback or [])
        self._default_location = default_location or Location(DEFAULT_LATITUDE, DEFAULT_LONGITUDE)

    async def recommend(
        self,
        prefs: PlacePreferences,
        *,
        near: Location | None = None,
        limit: int = 10,
    ) -> list[ZenPlace]:
        candidates = await self._candidates(prefs, near or self._default_location)
        ranked = rank_places(candidates, prefs, limit=limit)
        if ranked:
            logger.debug("Top recommendation: %s (%s)", ranked[0].name, ranked[0].type)
        return ranked

    async def _candidates(self, prefs: PlacePreferences, location: Location) -> list[ZenPlace]:
        if self._source is not None:
            try:
                places = await self._source.nearby(prefs, location)
            except PlaceLookupError as exc:
                logger.warning("Place lookup failed, using catalog: %s", exc)
            else:
                if places:
                    return places
                logger.info("Place source returned nothing, using catalog")
        return list(self._fallback)
