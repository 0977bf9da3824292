"""Swipe, match and page schemas for the discovery and matching pipelines."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.profile import UserProfile

SwipeAction = Literal["like", "skip"]
SWIPE_ACTIONS: tuple[str, ...] = ("like", "skip")


def canonical_match_id(uid1: str, uid2: str) -> str:
    """Order-independent document id for the match between two users."""

    return f"{uid1}_{uid2}" if uid1 < uid2 else f"{uid2}_{uid1}"


class SwipeRecord(BaseModel):
    """One immutable swipe event from swipes/{auto_id}."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    swiper_id: str = Field(alias="swiperId")
    swiped_user_id: str = Field(alias="swipedUserId")
    action: SwipeAction
    timestamp: Optional[datetime] = None


class MatchRecord(BaseModel):
    """A mutual like stored at matches/{canonical_match_id}."""

    model_config = ConfigDict(extra="ignore")

    users: tuple[str, str]
    timestamp: Optional[datetime] = None

    @field_validator("users")
    @classmethod
    def _sorted_distinct_pair(cls, value: tuple[str, str]) -> tuple[str, str]:
        if value[0] == value[1]:
            raise ValueError("a match needs two different users")
        return tuple(sorted(value))

    @property
    def match_id(self) -> str:
        return canonical_match_id(*self.users)

    def counterpart(self, user_id: str) -> str:
        """Return the other participant of this match."""

        first, second = self.users
        if user_id == first:
            return second
        if user_id == second:
            return first
        raise ValueError(f"{user_id} is not part of match {self.match_id}")


class CandidatePage(BaseModel):
    """A page of swipe candidates plus the raw-order continuation cursor.

    ``next_cursor`` is None only once the underlying profile order is
    exhausted, or when the page could not be built (``error`` is then set).
    """

    profiles: list[UserProfile] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    error: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.error is None and self.next_cursor is None
