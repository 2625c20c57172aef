"""
CATALOG GRAPH - Atomic snapshot replacement

Holds the current PrerequisiteGraph for a consumer (one UI session, one
service worker). A reload builds and validates the new snapshot completely
before swapping the reference, so:

- a failed reload leaves the previous snapshot in place
- readers that already hold the old snapshot keep using it and its caches
- there is no partial/incremental update

Each CatalogGraph owns its snapshot and caches; nothing is process-wide.
"""
import logging
import threading
from typing import FrozenSet, Iterable, Optional

from core.graph_db import GraphError, PrerequisiteGraph, load, load_json
from core.schemas import PrerequisiteEdge, SubjectNode
from infrastructure.config import EngineConfig, default_config, load_engine_config
from infrastructure.diagnostics import QueryDiagnostics, configure_logging, describe_snapshot

logger = logging.getLogger(__name__)


class CatalogGraph:
    """
    Current-snapshot holder with timed query delegation.

    Usage:
        catalog = CatalogGraph.from_config()
        catalog.reload_json(response_bytes)

        report = catalog.detect_conflicts(selected_ids)
        hover = catalog.highlight_set(hovered_id)
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        diagnostics: Optional[QueryDiagnostics] = None,
    ):
        self._config = config or default_config()
        self._diagnostics = diagnostics or QueryDiagnostics()
        self._lock = threading.Lock()
        self._current: Optional[PrerequisiteGraph] = None

    @classmethod
    def from_config(cls, path=None, setup_logging: bool = True) -> "CatalogGraph":
        """
        Build a catalog from the TOML config (see infrastructure.config).

        Also configures logging at diagnostics.log_level unless
        setup_logging is False.
        """
        config = load_engine_config(path)
        if setup_logging:
            configure_logging(config.diagnostics.log_level)
        logger.debug(f"[CONFIG] Catalog config: {config}")
        return cls(config=config)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def query_diagnostics(self) -> QueryDiagnostics:
        return self._diagnostics

    @property
    def is_loaded(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> PrerequisiteGraph:
        """
        The current snapshot.

        Raises:
            GraphError: If nothing has been loaded yet
        """
        snapshot = self._current
        if snapshot is None:
            raise GraphError("No catalog snapshot loaded")
        return snapshot

    # =========================================================================
    # RELOAD
    # =========================================================================

    def reload(
        self,
        nodes: Iterable[SubjectNode],
        edges: Iterable[PrerequisiteEdge],
    ) -> PrerequisiteGraph:
        """
        Replace the snapshot.

        Raises:
            MalformedGraphError: The previous snapshot stays current
        """
        return self._swap(load(nodes, edges, config=self._config))

    def reload_json(self, payload: bytes) -> PrerequisiteGraph:
        """Replace the snapshot from a full-DAG JSON payload."""
        return self._swap(load_json(payload, config=self._config))

    def _swap(self, snapshot: PrerequisiteGraph) -> PrerequisiteGraph:
        with self._lock:
            previous = self._current
            self._current = snapshot
        if previous is not None:
            logger.info(f"[GRAPH] Replaced snapshot v{previous.version} with v{snapshot.version}")
        return snapshot

    # =========================================================================
    # QUERIES
    # =========================================================================

    def ancestors_of(self, node_id: str) -> FrozenSet[str]:
        graph = self.current
        with self._diagnostics.query("ancestors_of", graph.version):
            return graph.ancestors_of(node_id)

    def detect_conflicts(self, candidate_ids: Iterable[str]):
        graph = self.current
        with self._diagnostics.query("detect_conflicts", graph.version):
            return graph.detect_conflicts(candidate_ids)

    def assign_layers(self, node_ids: Optional[Iterable[str]] = None):
        graph = self.current
        with self._diagnostics.query("assign_layers", graph.version):
            return graph.assign_layers(node_ids)

    def focus_subgraph(self, node_id: str):
        graph = self.current
        with self._diagnostics.query("focus_subgraph", graph.version):
            return graph.focus_subgraph(node_id)

    def highlight_set(self, hovered_id: Optional[str]) -> Optional[FrozenSet[str]]:
        graph = self.current
        with self._diagnostics.query("highlight_set", graph.version):
            return graph.highlight_set(hovered_id)

    def describe(self) -> str:
        if self._current is None:
            return "[CLEAN] no snapshot loaded"
        return describe_snapshot(self._current)

    def __repr__(self) -> str:
        return f"CatalogGraph(current={self._current!r})"
