"""Place preference profiles and the preference-weighted place score."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace

from zenmoments.domains.relaxation.domain_logic.models import ZenPlace

BASE_SCORE = 50.0
SCORE_RANGE = (0.0, 100.0)


@dataclass(frozen=True)
class PlacePreferences:
    """What kind of calm places a user is drawn to.

    Sliders run 1-10; flags mark explicit interest in a place category.
    """

    nature: int = 5
    quiet: int = 5
    indoor: int = 5
    outdoor: int = 5
    social: int = 5
    solitude: int = 5
    activity: int = 5
    meditation: int = 5
    water: int = 5
    urban: int = 5

    parks: bool = False
    gardens: bool = False
    cafes: bool = False
    libraries: bool = False
    museums: bool = False
    wellness: bool = False
    viewpoints: bool = False
    waterfront: bool = False
    temples: bool = False
    historic: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


# Neutral profile leaning towards meditation, used to enrich detected moments
MEDITATION_PROFILE = replace(PlacePreferences(), meditation=7, parks=True, temples=True)


def score_place(place: ZenPlace, prefs: PlacePreferences) -> float:
    """Score a place between 0 and 100 for the given preferences."""
    score = BASE_SCORE

    if place.type == "park":
        score += 20 if prefs.parks else 0
        score += prefs.nature * 2.5
        score += prefs.outdoor * 2
        score += (10 - prefs.urban) * 1.5
        if prefs.nature < 4:
            score -= 20
    elif place.type == "garden":
        score += 25 if prefs.gardens else 0
        score += prefs.nature * 2
        score += prefs.meditation * 1
        if not prefs.gardens:
            score -= 15
    elif place.type == "cafe":
        score += 25 if prefs.cafes else 0
        score += prefs.indoor * 1.5
        score += prefs.social * 2
        if prefs.social < 4:
            score -= 15
        if not prefs.cafes:
            score -= 15
    elif place.type == "meditation":
        score += prefs.meditation * 4
        score += prefs.quiet * 2
        score += prefs.solitude * 1.5
        if prefs.meditation < 5:
            score -= 40

    name = place.name.lower()
    description = place.description.lower()
    if "garden" in name and prefs.gardens:
        score += 10
    if "water" in name or "water" in description:
        score += prefs.water * 2
    if ("view" in name or "view" in description) and prefs.viewpoints:
        score += 10

    low, high = SCORE_RANGE
    return min(high, max(low, score))


def rank_places(
    places: list[ZenPlace], prefs: PlacePreferences, *, limit: int | None = None
) -> list[ZenPlace]:
    """Places sorted by descending score; ties keep their input order."""
    ranked = sorted(places, key=lambda p: score_place(p, prefs), reverse=True)
    return ranked[:limit] if limit is not None else ranked
