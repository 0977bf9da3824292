"""Base class for LangGraph graphs to share common behavior."""

from __future__ import annotations

from abc import ABC, abstractmethod
from langgraph.graph import StateGraph

from src.utils.clock import Clock
from src.utils.logging_config import logger


class BaseGraph(ABC):
    """Abstract base class for the discovery and swipe graphs.

    Centralizes logging, the injected clock, and the compile pattern so
    subclasses only describe their nodes and edges.
    """

    def __init__(self, timeout: int = 30, clock: Clock | None = None):
        self.timeout = timeout
        self.clock = clock
        self.logger = logger

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Build and return the StateGraph instance."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        """Log node entry with the state keys only (no profile data)."""

        self.logger.debug(
            "Executing node: %s keys=%s", node_name, sorted(state.keys())
        )

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        """Log node execution error without leaking user data."""

        self.logger.error(
            "Node %s failed: %s: %s", node_name, type(error).__name__, str(error)
        )

    def compile(self):
        """Build and compile the graph for execution."""

        graph = self.build_graph()
        return graph.compile()
