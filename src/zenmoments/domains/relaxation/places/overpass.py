"""OpenStreetMap Overpass client for nearby calm places."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from zenmoments.domains.relaxation.domain_logic.models import Location, ZenPlace
from zenmoments.domains.relaxation.places.preferences import PlacePreferences

logger = logging.getLogger(__name__)

DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"
DEFAULT_RADIUS_METERS = 2000
MAX_PLACES = 20

_TYPE_IMAGES = {
    "park": "https://images.unsplash.com/photo-1585938389612-a552a28d6914?auto=format&fit=crop&q=80",
    "garden": "https://images.unsplash.com/photo-1585320806297-9794b3e4eeae?auto=format&fit=crop&q=80",
    "cafe": "https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?auto=format&fit=crop&q=80",
    "meditation": "https://images.unsplash.com/photo-1545389336-cf090694435e?auto=format&fit=crop&q=80",
}


# ------------------------------------------------------------------
# Exceptions
# ------------------------------------------------------------------

class PlaceLookupError(Exception):
    """Base exception for place lookup failures."""


class PlaceConnectionError(PlaceLookupError):
    """Could not reach the Overpass API."""


class PlaceResponseError(PlaceLookupError):
    """The Overpass API answered with something unusable."""


# ------------------------------------------------------------------
# Query building and parsing
# ------------------------------------------------------------------

def build_overpass_query(
    prefs: PlacePreferences,
    location: Location,
    *,
    radius: int = DEFAULT_RADIUS_METERS,
    limit: int = MAX_PLACES,
    timeout_seconds: int = 5,
) -> str:
    """Build an Overpass QL union of node filters driven by the preferences."""
    around = f"(around:{radius},{location.latitude},{location.longitude})"
    filters: list[str] = []

    if prefs.parks or prefs.nature > 5:
        filters.append('node[leisure="park"]')
    if prefs.cafes or prefs.social > 5 or prefs.indoor > 5:
        filters.append('node[amenity="cafe"]')
    if prefs.gardens or prefs.nature > 7:
        filters.append('node[leisure="garden"]')
    if prefs.meditation > 5:
        filters.append('node[amenity="place_of_worship"]')
        filters.append('node[amenity="yoga"]')

    if not filters:
        filters = ['node[leisure="park"]', 'node[amenity="cafe"]']

    body = "".join(f"{f}{around};" for f in filters)
    return f"[out:json][timeout:{timeout_seconds}];({body});out body {limit};"


def _place_type(tags: dict[str, Any]) -> str:
    if tags.get("amenity") == "cafe":
        return "cafe"
    if tags.get("leisure") == "garden":
        return "garden"
    if tags.get("amenity") in ("place_of_worship", "yoga"):
        return "meditation"
    return "park"


def parse_overpass_elements(elements: list[dict[str, Any]], *, limit: int = MAX_PLACES) -> list[ZenPlace]:
    """Convert Overpass nodes into ZenPlace records, skipping malformed nodes."""
    places: list[ZenPlace] = []
    for index, node in enumerate(elements[:limit]):
        try:
            lat = float(node["lat"])
            lon = float(node["lon"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Skipping Overpass element without coordinates: %r", node.get("id"))
            continue
        tags = node.get("tags") or {}
        place_type = _place_type(tags)
        places.append(ZenPlace(
            id=f"osm-{node.get('id', index)}",
            name=tags.get("name") or f"{place_type.capitalize()} {index + 1}",
            description=f"A nice {place_type} nearby.",
            type=place_type,
            location=Location(latitude=lat, longitude=lon),
            image_url=_TYPE_IMAGES[place_type],
        ))
    return places


# ------------------------------------------------------------------
# Client
# ------------------------------------------------------------------

class OverpassPlaceSource:
    """Fetches candidate places around a location from the Overpass API.

    Usage::

        source = OverpassPlaceSource(timeout_seconds=5.0)
        places = await source.nearby(MEDITATION_PROFILE, Location(52.37, 4.90))
    """

    def __init__(
        self,
        *,
        url: str = DEFAULT_OVERPASS_URL,
        radius_meters: int = DEFAULT_RADIUS_METERS,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._radius = radius_meters
        self._timeout = timeout_seconds
        self._transport = transport

    async def nearby(self, prefs: PlacePreferences, location: Location) -> list[ZenPlace]:
        """Return up to MAX_PLACES candidates near ``location``.

        Raises:
            PlaceConnectionError: Transport failure or timeout.
            PlaceResponseError: Non-2xx status or malformed JSON.
        """
        query = build_overpass_query(
            prefs,
            location,
            radius=self._radius,
            timeout_seconds=max(1, int(self._timeout)),
        )
        logger.debug("Overpass query: %s", query)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, data={"data": query})
        except httpx.HTTPError as exc:
            raise PlaceConnectionError(f"Overpass request failed: {exc}") from exc

        if response.status_code != 200:
            raise PlaceResponseError(
                f"Overpass returned HTTP {response.status_code}: {response.reason_phrase}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise PlaceResponseError(f"Invalid JSON from Overpass: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("elements", []), list):
            raise PlaceResponseError("Overpass response has no 'elements' list")

        places = parse_overpass_elements(payload.get("elements", []))
        logger.info("Overpass returned %d places near %s", len(places), location)
        return places
