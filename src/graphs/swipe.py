"""Swipe graph: record the swipe, then reconcile a match on a like.

Recording and reconciling are separate durable steps. A failed
reconciliation leaves the swipe recorded and simply yields no match.
"""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.config import config
from src.graphs.base_graph import BaseGraph
from src.state import SwipeState
from src.tools.match_tools import reconcile_match, record_swipe, validate_swipe
from src.utils.clock import Clock
from src.utils.errors import DataUnavailableError, InvalidInputError


def _with_state(state: SwipeState, **updates) -> SwipeState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


class SwipeGraph(BaseGraph):
    """Persist one swipe and surface a match when the like is mutual."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(SwipeState)

        graph.add_node("validate_input", self.node_validate_input)
        graph.add_node("record_swipe", self.node_record_swipe)
        graph.add_node("reconcile_match", self.node_reconcile_match)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("validate_input")

        def route_after_validate(state: SwipeState) -> str:
            if state.get("error"):
                return "finalize_response"
            return "record_swipe"

        def route_after_record(state: SwipeState) -> str:
            if state.get("error") or state.get("action") != "like":
                return "finalize_response"
            return "reconcile_match"

        graph.add_conditional_edges(
            "validate_input",
            route_after_validate,
            {
                "record_swipe": "record_swipe",
                "finalize_response": "finalize_response",
            },
        )
        graph.add_conditional_edges(
            "record_swipe",
            route_after_record,
            {
                "reconcile_match": "reconcile_match",
                "finalize_response": "finalize_response",
            },
        )
        graph.add_edge("reconcile_match", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_validate_input(self, state: SwipeState) -> SwipeState:
        """Reject self-swipes, unknown actions and malformed ids."""

        self._log_node_execution("validate_input", state)
        action = state.get("action")
        try:
            if not isinstance(action, str):
                raise InvalidInputError("action must be a string")
            action = action.strip().lower()
            validate_swipe(state.get("swiper_id"), state.get("target_id"), action)
        except InvalidInputError as exc:
            self._log_node_error("validate_input", exc)
            return _with_state(state, error=f"Invalid request: {exc}", swipe_recorded=False)

        return _with_state(state, action=action, swipe_recorded=False)

    def node_record_swipe(self, state: SwipeState) -> SwipeState:
        self._log_node_execution("record_swipe", state)
        try:
            record_swipe(
                state["swiper_id"], state["target_id"], state["action"], clock=self.clock
            )
        except DataUnavailableError as exc:
            self._log_node_error("record_swipe", exc)
            return _with_state(
                state,
                swipe_recorded=False,
                error="Failed to record swipe. Please try again.",
            )
        return _with_state(state, swipe_recorded=True)

    def node_reconcile_match(self, state: SwipeState) -> SwipeState:
        """Check for a reciprocal like and create the match at most once."""

        self._log_node_execution("reconcile_match", state)
        try:
            matched = reconcile_match(
                state["swiper_id"], state["target_id"], clock=self.clock
            )
        except DataUnavailableError as exc:
            self._log_node_error("reconcile_match", exc)
            return _with_state(
                state,
                matched_user=None,
                reconcile_error="Match check failed; the swipe was still recorded.",
            )

        return _with_state(
            state,
            matched_user=matched.to_response() if matched else None,
        )

    def node_finalize_response(self, state: SwipeState) -> SwipeState:
        matched_user = state.get("matched_user")
        metadata = {
            "success": not state.get("error"),
            "error": state.get("error"),
            "swipe_recorded": bool(state.get("swipe_recorded")),
            "matched": matched_user is not None,
            "reconcile_error": state.get("reconcile_error"),
        }
        if matched_user is not None:
            self.logger.info(
                "It's a match: %s <-> %s", state["swiper_id"], state["target_id"]
            )
        return _with_state(
            state, matched_user=matched_user, response_metadata=metadata
        )


def create_swipe_graph(clock: Clock | None = None):
    """Build and compile the swipe graph for server usage."""

    graph_builder = SwipeGraph(timeout=config.GRAPH_TIMEOUT, clock=clock)
    return graph_builder.compile()
