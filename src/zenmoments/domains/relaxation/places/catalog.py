"""Place catalog loader — reads the static fallback catalog from YAML."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from zenmoments.domains.relaxation.domain_logic.models import Location, ZenPlace

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "zen_places.yaml"

PLACE_TYPES = {"park", "garden", "cafe", "meditation"}


def load_place_catalog(path: str | Path = DEFAULT_CATALOG_PATH) -> list[ZenPlace]:
    """Load the place catalog, skipping malformed entries.

    Returns an empty list if the file is missing.
    """
    path = Path(path)
    if not path.is_file():
        logger.warning("Place catalog does not exist: %s", path)
        return []

    with open(path) as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    places: list[ZenPlace] = []
    for entry in data.get("places", []):
        try:
            places.append(parse_place(entry))
        except (KeyError, TypeError, ValueError):
            logger.exception("Skipping malformed catalog entry in %s: %r", path, entry)
    logger.info("Loaded %d catalog places from %s", len(places), path)
    return places


def parse_place(entry: dict[str, Any]) -> ZenPlace:
    """Build a ZenPlace from one catalog mapping."""
    place_type = entry["type"]
    if place_type not in PLACE_TYPES:
        raise ValueError(f"Unknown place type: {place_type!r}")
    return ZenPlace(
        id=str(entry["id"]),
        name=entry["name"],
        description=entry.get("description", "").strip(),
        type=place_type,
        location=Location(latitude=float(entry["latitude"]), longitude=float(entry["longitude"])),
        image_url=entry.get("image_url", ""),
    )
