"""Candidate discovery graph: exclusions, raw page, radius filter."""

from __future__ import annotations

import math

from langgraph.graph import StateGraph
from pydantic import ValidationError

from src.config import config
from src.graphs.base_graph import BaseGraph
from src.models.matching import CandidatePage
from src.models.profile import Coordinates, UserProfile
from src.state import DiscoveryState
from src.tools.filter_tools import filter_by_radius
from src.tools.match_tools import (
    build_exclusion_set,
    fetch_candidate_batch,
    validate_user_id,
)
from src.utils.errors import DataUnavailableError, InvalidInputError


def _with_state(state: DiscoveryState, **updates) -> DiscoveryState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


class CandidateDiscoveryGraph(BaseGraph):
    """Builds one page of the swipe deck for a user."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(DiscoveryState)

        graph.add_node("validate_input", self.node_validate_input)
        graph.add_node("build_exclusions", self.node_build_exclusions)
        graph.add_node("fetch_candidates", self.node_fetch_candidates)
        graph.add_node("filter_radius", self.node_filter_radius)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("validate_input")
        graph.add_edge("validate_input", "build_exclusions")
        graph.add_edge("build_exclusions", "fetch_candidates")
        graph.add_edge("fetch_candidates", "filter_radius")
        graph.add_edge("filter_radius", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_validate_input(self, state: DiscoveryState) -> DiscoveryState:
        """Normalize the request and reject malformed identifiers or radii."""

        self._log_node_execution("validate_input", state)
        try:
            user_id = validate_user_id(state.get("user_id"))

            page_size = state.get("page_size")
            if page_size is None:
                page_size = config.PROFILES_PER_FETCH
            if (
                isinstance(page_size, bool)
                or not isinstance(page_size, int)
                or page_size < 1
            ):
                raise InvalidInputError("page_size must be a positive integer")

            cursor = state.get("cursor")
            if cursor is not None and not isinstance(cursor, str):
                raise InvalidInputError("cursor must be a string")

            radius_km = state.get("radius_km")
            if radius_km is not None:
                radius_km = float(radius_km)
                if not math.isfinite(radius_km) or radius_km > config.MAX_RADIUS_KM:
                    raise InvalidInputError(
                        f"radius_km must be at most {config.MAX_RADIUS_KM}"
                    )

            coordinates = state.get("coordinates")
            if coordinates is not None:
                coordinates = Coordinates.model_validate(coordinates).model_dump()
            if radius_km and radius_km > 0 and coordinates is None:
                raise InvalidInputError("radius_km requires coordinates")
        except (InvalidInputError, ValidationError, TypeError, ValueError) as exc:
            self._log_node_error("validate_input", exc)
            return _with_state(state, error=f"Invalid request: {exc}")

        return _with_state(
            state,
            user_id=user_id,
            page_size=page_size,
            cursor=cursor,
            radius_km=radius_km,
            coordinates=coordinates,
        )

    def node_build_exclusions(self, state: DiscoveryState) -> DiscoveryState:
        """Collect self, swiped and matched uids for the requesting user."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("build_exclusions", state)
            excluded = build_exclusion_set(state["user_id"])
            return _with_state(state, excluded_uids=sorted(excluded))
        except DataUnavailableError as exc:
            # An incomplete exclusion set could re-offer a skipped or matched user.
            self._log_node_error("build_exclusions", exc)
            return _with_state(
                state,
                error="Swipe history unavailable. Returning no candidates.",
            )

    def node_fetch_candidates(self, state: DiscoveryState) -> DiscoveryState:
        """Fetch the next raw slice after the cursor and drop excluded users."""

        if state.get("error"):
            return state

        try:
            self._log_node_execution("fetch_candidates", state)
            radius_km = state.get("radius_km")
            overfetch = (
                config.RADIUS_OVERFETCH_MULTIPLIER
                if radius_km and radius_km > 0
                else 1
            )
            candidates, next_cursor = fetch_candidate_batch(
                state["user_id"],
                set(state.get("excluded_uids", [])),
                state.get("cursor"),
                state["page_size"],
                overfetch_multiplier=overfetch,
                not_in_limit=config.NOT_IN_FILTER_LIMIT,
                fallback_multiplier=config.FALLBACK_OVERFETCH_MULTIPLIER,
            )
            return _with_state(
                state,
                candidates=[c.to_response() for c in candidates],
                next_cursor=next_cursor,
            )
        except DataUnavailableError as exc:
            self._log_node_error("fetch_candidates", exc)
            return _with_state(
                state,
                error="Failed to query candidates. Returning no candidates.",
                candidates=[],
            )

    def node_filter_radius(self, state: DiscoveryState) -> DiscoveryState:
        """Apply the optional radius filter and cap the page size."""

        if state.get("error"):
            return state

        self._log_node_execution("filter_radius", state)
        candidates = [
            UserProfile.model_validate(c) for c in state.get("candidates", [])
        ]
        coordinates = state.get("coordinates")
        origin = Coordinates.model_validate(coordinates) if coordinates else None

        profiles = filter_by_radius(
            candidates,
            origin,
            state.get("radius_km"),
            state["page_size"],
        )
        return _with_state(state, profiles=[p.to_response() for p in profiles])

    def node_finalize_response(self, state: DiscoveryState) -> DiscoveryState:
        """Construct the page and response metadata."""

        if state.get("error"):
            return _with_state(
                state,
                profiles=[],
                next_cursor=None,
                response_metadata={
                    "success": False,
                    "error": state.get("error"),
                    "candidate_count": 0,
                    "returned_count": 0,
                },
            )

        profiles = state.get("profiles", [])
        self.logger.info(
            "Candidate page for %s: returned=%s exhausted=%s",
            state["user_id"],
            len(profiles),
            state.get("next_cursor") is None,
        )
        return _with_state(
            state,
            response_metadata={
                "success": True,
                "error": None,
                "candidate_count": len(state.get("candidates", [])),
                "returned_count": len(profiles),
                "radius_applied": bool(state.get("radius_km")) and state["radius_km"] > 0,
            },
        )


def create_discovery_graph():
    """Build and compile the discovery graph for server usage."""

    graph_builder = CandidateDiscoveryGraph(timeout=config.GRAPH_TIMEOUT)
    return graph_builder.compile()


def fetch_candidate_page(
    user_id: str,
    cursor: str | None = None,
    coordinates: dict | Coordinates | None = None,
    radius_km: float | None = None,
    page_size: int | None = None,
) -> CandidatePage:
    """Return the next page of swipe candidates for user_id.

    Failures never yield a partial page: the result is empty with
    ``error`` set, which the swipe deck shows as an empty state with retry.
    """

    if isinstance(coordinates, Coordinates):
        coordinates = coordinates.model_dump()

    result = create_discovery_graph().invoke(
        {
            "user_id": user_id,
            "cursor": cursor,
            "coordinates": coordinates,
            "radius_km": radius_km,
            "page_size": page_size,
        }
    )
    return CandidatePage(
        profiles=[UserProfile.model_validate(p) for p in result.get("profiles", [])],
        next_cursor=result.get("next_cursor"),
        error=result.get("error"),
    )
