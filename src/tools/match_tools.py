"""Candidate discovery, swipe recording and match reconciliation.

Each function is one independent unit of work against the shared store.
Failures propagate (DataUnavailableError, InvalidInputError); the graphs
decide how they surface to the swipe deck.
"""

from __future__ import annotations

from src.models.matching import SWIPE_ACTIONS, canonical_match_id
from src.models.profile import UserProfile
from src.tools.filter_tools import apply_exclusions
from src.tools.firestore_tools import (
    add_swipe,
    create_match_if_absent,
    get_matches_for_user,
    get_profiles_by_ids,
    get_swipes_by_user,
    get_user_profile,
    has_liked,
    parse_profile,
    query_profiles_page,
)
from src.utils.clock import Clock
from src.utils.errors import InvalidInputError, NotFoundError
from src.utils.logging_config import logger

# Firestore document ids are capped at 1500 bytes and may not contain '/'.
MAX_USER_ID_BYTES = 1500


def validate_user_id(user_id: object, field: str = "user_id") -> str:
    """Return user_id unchanged if it can be a Firestore document id."""

    if not isinstance(user_id, str) or not user_id.strip():
        raise InvalidInputError(f"{field} is required")
    if "/" in user_id or user_id in (".", ".."):
        raise InvalidInputError(f"{field} is not a valid identifier")
    if len(user_id.encode("utf-8")) > MAX_USER_ID_BYTES:
        raise InvalidInputError(f"{field} is too long")
    return user_id


def require_profile(user_id: str) -> UserProfile:
    profile = get_user_profile(user_id)
    if profile is None:
        raise NotFoundError(f"User profile not found: {user_id}")
    return profile


def build_exclusion_set(user_id: str) -> set[str]:
    """Users that must never be offered to user_id again.

    The user itself, everyone they swiped (like or skip), and everyone they
    are matched with.
    """

    excluded = {user_id}
    excluded |= {swipe.swiped_user_id for swipe in get_swipes_by_user(user_id)}
    for match in get_matches_for_user(user_id):
        excluded.add(match.counterpart(user_id))

    logger.debug("build_exclusion_set user=%s size=%s", user_id, len(excluded))
    return excluded


def fetch_candidate_batch(
    user_id: str,
    excluded_uids: set[str],
    cursor: str | None,
    page_size: int,
    *,
    overfetch_multiplier: int = 1,
    not_in_limit: int = 10,
    fallback_multiplier: int = 2,
) -> tuple[list[UserProfile], str | None]:
    """Fetch the next raw slice of profiles and drop excluded ones.

    Returns the surviving profiles (not yet truncated) and the cursor of the
    last raw document, so the next call resumes after everything this call
    looked at, kept or not. The cursor is None only when the raw slice is
    empty.
    """

    limit = page_size * overfetch_multiplier
    if len(excluded_uids) <= not_in_limit:
        raw = query_profiles_page(
            after_uid=cursor, limit=limit, not_in=sorted(excluded_uids)
        )
    else:
        # Too many ids for a 'not-in' predicate; widen the slice instead.
        raw = query_profiles_page(
            after_uid=cursor,
            limit=limit * fallback_multiplier,
            not_equal=user_id,
        )

    if not raw:
        return [], None

    next_cursor = str(raw[-1]["uid"])
    profiles = [p for p in (parse_profile(d) for d in raw) if p is not None]
    return apply_exclusions(profiles, excluded_uids), next_cursor


def validate_swipe(swiper_id: str, target_id: str, action: str) -> None:
    validate_user_id(swiper_id, "swiper_id")
    validate_user_id(target_id, "target_id")
    if swiper_id == target_id:
        raise InvalidInputError("Users cannot swipe on themselves")
    if action not in SWIPE_ACTIONS:
        raise InvalidInputError(
            f"action must be one of: {', '.join(SWIPE_ACTIONS)}"
        )


def record_swipe(
    swiper_id: str, target_id: str, action: str, clock: Clock | None = None
) -> None:
    """Persist one swipe. Repeated swipes on the same pair are not merged."""

    validate_swipe(swiper_id, target_id, action)
    add_swipe(swiper_id, target_id, action, clock=clock)
    logger.info("Recorded %s: %s -> %s", action, swiper_id, target_id)


def reconcile_match(
    liker_id: str, target_id: str, clock: Clock | None = None
) -> UserProfile | None:
    """Turn liker_id's like on target_id into a match if it is mutual.

    Returns the target's profile when a match exists after this call
    (newly created or already present), None when target_id never liked
    liker_id back. Safe to call repeatedly or concurrently.
    """

    validate_swipe(liker_id, target_id, "like")

    if not has_liked(target_id, liker_id):
        return None

    created = create_match_if_absent(liker_id, target_id, clock=clock)
    logger.info(
        "Match %s %s",
        canonical_match_id(liker_id, target_id),
        "created" if created else "already present",
    )

    try:
        return require_profile(target_id)
    except NotFoundError:
        logger.warning("Matched user %s no longer has a profile", target_id)
        return None


def get_matched_profiles(user_id: str) -> list[UserProfile]:
    """Profiles of everyone user_id is matched with, ordered by uid."""

    validate_user_id(user_id)
    counterpart_ids = sorted(
        {match.counterpart(user_id) for match in get_matches_for_user(user_id)}
    )
    return get_profiles_by_ids(counterpart_ids)
