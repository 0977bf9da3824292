"""Traveller profile schema as stored in users/{uid}.

Documents are written by the web client in camelCase; the models accept
either the stored alias or the Python field name and drop unknown fields
(timestamps, social links, safety data) that matching does not read.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Coordinates(BaseModel):
    """Latitude/longitude pair in degrees."""

    model_config = ConfigDict(extra="ignore")

    latitude: float
    longitude: float


class CurrentLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = None
    coordinates: Optional[Coordinates] = None


class AgeRange(BaseModel):
    model_config = ConfigDict(extra="ignore")

    min: int
    max: int


class MatchPreferences(BaseModel):
    """Who the traveller wants to be shown."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    age_range: Optional[AgeRange] = Field(default=None, alias="ageRange")
    gender_preference: Optional[list[str]] = Field(
        default=None, alias="genderPreference"
    )
    looking_for: Optional[list[str]] = Field(default=None, alias="lookingFor")


class UserProfile(BaseModel):
    """A participant in the swipe deck."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    uid: str
    name: str = ""
    email: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    interests: list[str] = Field(default_factory=list)
    current_location: Optional[CurrentLocation] = Field(
        default=None, alias="currentLocation"
    )
    match_preferences: Optional[MatchPreferences] = Field(
        default=None, alias="matchPreferences"
    )

    @field_validator("uid")
    @classmethod
    def _uid_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("uid must not be blank")
        return value

    @property
    def coordinates(self) -> Coordinates | None:
        """Current-location coordinates, if the traveller shared them."""

        if self.current_location is None:
            return None
        return self.current_location.coordinates

    def to_response(self) -> dict:
        """Serialize with the same camelCase keys the web client stores."""

        return self.model_dump(by_alias=True, exclude_none=True)
