"""Deterministic client-side filters applied to a raw candidate page."""

from __future__ import annotations

from typing import Iterable

from src.models.profile import Coordinates, UserProfile
from src.utils.geo import haversine_km
from src.utils.logging_config import logger


def apply_exclusions(
    candidates: Iterable[UserProfile], excluded_uids: set[str]
) -> list[UserProfile]:
    """Drop every candidate whose uid is excluded.

    Runs on every page even when Firestore already applied a 'not-in'
    predicate; the store-level filter is only an optimization.
    """

    kept = [c for c in candidates if c.uid not in excluded_uids]
    logger.debug("apply_exclusions kept=%s", len(kept))
    return kept


def filter_by_radius(
    candidates: list[UserProfile],
    origin: Coordinates | None,
    radius_km: float | None,
    page_size: int,
) -> list[UserProfile]:
    """Keep candidates within radius_km of origin, capped at page_size.

    A missing or non-positive radius means "no preference": the page passes
    through untouched apart from the size cap. Candidates without
    coordinates are dropped whenever a radius applies, since their
    proximity cannot be verified.
    """

    if not radius_km or radius_km <= 0 or origin is None:
        return candidates[:page_size]

    nearby: list[UserProfile] = []
    for candidate in candidates:
        coords = candidate.coordinates
        if coords is None:
            continue

        distance = haversine_km(
            origin.latitude, origin.longitude, coords.latitude, coords.longitude
        )
        if distance > radius_km:
            continue

        nearby.append(candidate)
        if len(nearby) >= page_size:
            break

    logger.debug(
        "filter_by_radius radius_km=%s in=%s out=%s",
        radius_km,
        len(candidates),
        len(nearby),
    )
    return nearby
