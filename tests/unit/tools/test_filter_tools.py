"""
Unit tests for the client-side exclusion and radius filters.

Edge cases tested include:
  - Candidates without coordinates under a radius filter
  - Non-positive / missing radius meaning "no preference"
  - Truncation to the requested page size after over-fetching
"""

import pytest
from src.models.profile import Coordinates, UserProfile
from src.tools.filter_tools import apply_exclusions, filter_by_radius
from src.utils.geo import haversine_km


ORIGIN = Coordinates(latitude=27.70, longitude=85.32)


def _profile(uid, lat=None, lng=None):
    data = {"uid": uid}
    if lat is not None:
        data["currentLocation"] = {"coordinates": {"latitude": lat, "longitude": lng}}
    return UserProfile.model_validate(data)


class TestApplyExclusions:

    def test_excluded_users_are_removed(self):
        """Exclusion {B, C} over raw [B, C, D, E] leaves [D, E]."""
        raw = [_profile(uid) for uid in ("B", "C", "D", "E")]
        kept = apply_exclusions(raw, {"B", "C"})
        assert [p.uid for p in kept] == ["D", "E"]

    def test_order_is_preserved(self):
        raw = [_profile(uid) for uid in ("z", "a", "m")]
        assert [p.uid for p in apply_exclusions(raw, set())] == ["z", "a", "m"]


class TestFilterByRadius:

    def test_nearby_candidate_kept_and_distant_one_dropped(self):
        near = _profile("near", 27.72, 85.34)
        far = _profile("far", 28.50, 85.00)
        result = filter_by_radius([near, far], ORIGIN, 50, page_size=10)
        assert [p.uid for p in result] == ["near"]

    def test_candidates_without_location_are_dropped(self):
        result = filter_by_radius(
            [_profile("nowhere"), _profile("near", 27.71, 85.33)],
            ORIGIN,
            50,
            page_size=10,
        )
        assert [p.uid for p in result] == ["near"]

    def test_every_result_is_within_radius(self):
        candidates = [
            _profile(f"u{i}", 27.70 + i * 0.05, 85.32 - i * 0.05) for i in range(20)
        ]
        radius = 25.0
        result = filter_by_radius(candidates, ORIGIN, radius, page_size=20)
        assert result
        for candidate in result:
            coords = candidate.coordinates
            assert haversine_km(
                ORIGIN.latitude, ORIGIN.longitude, coords.latitude, coords.longitude
            ) <= radius

    @pytest.mark.parametrize("radius", [None, 0, -5])
    def test_no_radius_passes_page_through(self, radius):
        candidates = [_profile("nowhere"), _profile("far", 10.0, 10.0)]
        result = filter_by_radius(candidates, ORIGIN, radius, page_size=10)
        assert [p.uid for p in result] == ["nowhere", "far"]

    def test_result_truncated_to_page_size(self):
        candidates = [_profile(f"u{i}", 27.70, 85.32) for i in range(9)]
        result = filter_by_radius(candidates, ORIGIN, 5, page_size=3)
        assert [p.uid for p in result] == ["u0", "u1", "u2"]

    def test_truncation_also_applies_without_radius(self):
        candidates = [_profile(f"u{i}") for i in range(5)]
        assert len(filter_by_radius(candidates, None, None, page_size=2)) == 2
