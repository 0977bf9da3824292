"""Firestore wrappers used by the discovery and swipe pipelines.

These helpers centralize collection names, schema validation, error handling,
and logging so graph nodes and match tools stay focused on matching logic.
Every store failure surfaces as DataUnavailableError.
"""

from __future__ import annotations

import os

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import AlreadyExists
from pydantic import ValidationError

from src.config import config
from src.models.matching import (
    MatchRecord,
    SwipeAction,
    SwipeRecord,
    canonical_match_id,
)
from src.models.profile import UserProfile
from src.utils.clock import Clock, write_timestamp
from src.utils.errors import DataUnavailableError
from src.utils.logging_config import logger

USERS_COLLECTION = "users"
SWIPES_COLLECTION = "swipes"
MATCHES_COLLECTION = "matches"

_db: firestore.Client | None = None
def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get(
                "GOOGLE_APPLICATION_CREDENTIALS", config.GOOGLE_APPLICATION_CREDENTIALS
            )
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(
                cred, {"projectId": config.FIREBASE_PROJECT_ID}
            )

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise DataUnavailableError(str(exc)) from exc


def parse_profile(data: dict, doc_id: str | None = None) -> UserProfile | None:
    """Validate a users/{uid} document, quarantining malformed ones.

    Returns None (and logs) instead of raising so one bad document cannot
    empty a whole page.
    """

    payload = dict(data)
    if doc_id and not payload.get("uid"):
        payload["uid"] = doc_id
    try:
        return UserProfile.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Quarantined malformed profile %s: %s",
            payload.get("uid") or doc_id,
            exc.error_count(),
        )
        return None


def get_user_profile(user_id: str) -> UserProfile | None:
    """Fetch a profile from users/{user_id}.

    Returns None if the document is missing or malformed.
    """

    try:
        doc = get_db().collection(USERS_COLLECTION).document(user_id).get()
    except Exception as exc:
        logger.error("Failed to fetch user profile: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc

    if not doc.exists:
        return None
    return parse_profile(doc.to_dict() or {}, doc.id)


def get_profiles_by_ids(user_ids: list[str]) -> list[UserProfile]:
    """Fetch several profiles, silently skipping ids with no valid document."""

    profiles: list[UserProfile] = []
    for user_id in user_ids:
        profile = get_user_profile(user_id)
        if profile is not None:
            profiles.append(profile)
    return profiles


def get_swipes_by_user(user_id: str) -> list[SwipeRecord]:
    """Fetch every swipe the user has made, regardless of action."""

    try:
        query = (
            get_db().collection(SWIPES_COLLECTION)
            .where("swiperId", "==", user_id)
        )
        docs = list(query.stream())
    except Exception as exc:
        logger.error("Failed to fetch swipes: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc

    swipes: list[SwipeRecord] = []
    for doc in docs:
        try:
            swipes.append(SwipeRecord.model_validate(doc.to_dict() or {}))
        except ValidationError:
            logger.warning("Skipping malformed swipe document %s", doc.id)
    return swipes


def get_matches_for_user(user_id: str) -> list[MatchRecord]:
    """Fetch every match whose users array contains the user."""

    try:
        query = (
            get_db().collection(MATCHES_COLLECTION)
            .where("users", "array_contains", user_id)
        )
        docs = list(query.stream())
    except Exception as exc:
        logger.error("Failed to fetch matches: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc

    matches: list[MatchRecord] = []
    for doc in docs:
        try:
            matches.append(MatchRecord.model_validate(doc.to_dict() or {}))
        except ValidationError:
            logger.warning("Skipping malformed match document %s", doc.id)
    return matches


def query_profiles_page(
    *,
    after_uid: str | None,
    limit: int,
    not_in: list[str] | None = None,
    not_equal: str | None = None,
) -> list[dict]:
    """Query raw profile documents ordered by uid, strictly after a cursor.

    Exactly one of ``not_in`` / ``not_equal`` narrows the query at the store
    level; callers still re-apply exclusion on the result. Raw dicts are
    returned (uid always set) so cursors can advance past documents that
    later fail validation.
    """

    try:
        query = get_db().collection(USERS_COLLECTION)
        if not_in:
            query = query.where("uid", "not-in", not_in)
        elif not_equal:
            query = query.where("uid", "!=", not_equal)
        query = query.order_by("uid")
        if after_uid is not None:
            query = query.start_after({"uid": after_uid})
        query = query.limit(limit)

        raw: list[dict] = []
        for doc in query.stream():
            data = doc.to_dict() or {}
            data.setdefault("uid", doc.id)
            raw.append(data)
        return raw
    except Exception as exc:
        logger.error("Failed to query profiles: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc


def add_swipe(
    swiper_id: str,
    swiped_user_id: str,
    action: SwipeAction,
    clock: Clock | None = None,
) -> None:
    """Append a swipe to the swipes collection (no read-before-write)."""

    try:
        get_db().collection(SWIPES_COLLECTION).add(
            {
                "swiperId": swiper_id,
                "swipedUserId": swiped_user_id,
                "action": action,
                "timestamp": write_timestamp(clock),
            }
        )
    except Exception as exc:
        logger.error("Failed to record swipe: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc


def has_liked(swiper_id: str, target_id: str) -> bool:
    """Check whether swiper_id has ever liked target_id."""

    try:
        query = (
            get_db().collection(SWIPES_COLLECTION)
            .where("swiperId", "==", swiper_id)
            .where("swipedUserId", "==", target_id)
            .where("action", "==", "like")
            .limit(1)
        )
        return any(True for _ in query.stream())
    except Exception as exc:
        logger.error("Failed to check reciprocal like: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc


def create_match_if_absent(
    uid1: str, uid2: str, clock: Clock | None = None
) -> bool:
    """Create matches/{canonical id} in one conditional write.

    Returns True if this call created the match, False if it already
    existed for the same pair. ``DocumentReference.create`` fails
    server-side when the document exists, so concurrent callers converge
    on one record. A key already held by a different pair raises
    DataUnavailableError instead of reporting a match that was never stored.
    """

    match_id = canonical_match_id(uid1, uid2)
    pair = sorted([uid1, uid2])
    try:
        ref = get_db().collection(MATCHES_COLLECTION).document(match_id)
        ref.create({"users": pair, "timestamp": write_timestamp(clock)})
        return True
    except AlreadyExists:
        existing = _existing_match_users(ref)
        if existing != pair:
            # Ids containing "_" can share a key with a different pair.
            logger.error(
                "Match key %s is held by another pair; refusing to reuse it",
                match_id,
            )
            raise DataUnavailableError(
                f"Match key {match_id} belongs to a different pair"
            )
        logger.info("Match already exists: %s", match_id)
        return False
    except Exception as exc:
        logger.error("Failed to create match: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc


def _existing_match_users(ref) -> list[str] | None:
    try:
        snapshot = ref.get()
    except Exception as exc:
        logger.error("Failed to read existing match: %s", str(exc))
        raise DataUnavailableError(str(exc)) from exc
    if not snapshot.exists:
        return None
    return sorted((snapshot.to_dict() or {}).get("users") or [])
