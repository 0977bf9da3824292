"""Shared LangGraph state definitions.

All graph states are TypedDicts so state is explicit, serializable, and
consistent across graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

JsonDict = dict[str, object]
JsonList = list[JsonDict]


class DiscoveryState(TypedDict, total=False):
    """State for the candidate discovery graph.

    Fields are optional at runtime because nodes populate them progressively.
    Profiles are kept as camelCase dicts so the state stays JSON-serializable.
    """

    # Identifies the requesting user.
    user_id: str
    # Opaque continuation cursor from the previous page (None for page one).
    cursor: str | None
    # Requesting user's coordinates: {"latitude": .., "longitude": ..}.
    coordinates: JsonDict | None
    # Search radius; absent or <= 0 disables radius filtering.
    radius_km: float | None
    # Page size requested by the swipe deck.
    page_size: int
    # Users never to be offered again (self, swiped, matched).
    excluded_uids: list[str]
    # Raw slice after client-side exclusion, before radius filtering.
    candidates: JsonList
    # Final page shown to the user.
    profiles: JsonList
    # Cursor positioned at the last raw document fetched.
    next_cursor: str | None
    # Error string if any node fails.
    error: str
    # Response metadata for observability.
    response_metadata: JsonDict


class SwipeState(TypedDict, total=False):
    """State for the swipe graph (record, then reconcile on a like)."""

    swiper_id: str
    target_id: str
    # "like" or "skip".
    action: str
    # True once the swipe is durably written.
    swipe_recorded: bool
    # Counterpart profile when the like completed a match.
    matched_user: JsonDict | None
    # Reconciliation failure; the swipe itself still counts.
    reconcile_error: str
    # Validation or swipe write failure; the card is not committed.
    error: str
    response_metadata: JsonDict
