"""
PREREQUISITE GRAPH STORE - The Immutable Catalog Snapshot

This is the unit of recomputation. A PrerequisiteGraph is built once from a
full node/edge snapshot, validated, and never mutated afterwards. Every
derived structure (ancestor closures, highlight sets) is cached on the
snapshot itself, so replacing the snapshot discards all of them at once.

Architecture (The Bridge Pattern):
  Python Layer (Business Logic)
  - Uses string subject ids: "cs101", "9f1c..."
  - Calls: graph.ancestors_of("cs201"), graph.detect_conflicts({...})

  Bridge Layer (This File)
  - _node_map: Dict[str, int]  (subject id -> index)
  - _inv_map: Dict[int, str]   (index -> subject id)

  Rust Layer (rustworkx.PyDiGraph)
  - Uses integer indices: 0, 1, 2, ...
  - Edge direction: prerequisite -> dependent subject

Lifecycle:
- load() validates and builds; on failure no snapshot exists
- Derived caches are created lazily and live as long as the snapshot
- Each snapshot carries a process-unique, increasing `version`
"""
import itertools
import logging
import threading
import types
import warnings
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import msgspec
import polars as pl
import rustworkx as rx

from core.ontology import PrerequisiteKind
from core.schemas import (
    Diagnostics,
    PrerequisiteEdge,
    SubjectNode,
    SubjectSummary,
    decode_full_dag,
)
from infrastructure.config import EngineConfig, default_config

logger = logging.getLogger(__name__)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for prerequisite graph operations."""
    pass


class MalformedGraphError(GraphError):
    """
    Raised at load time when the input cannot form a valid snapshot.

    Causes: an edge references an unknown subject, a self-loop, a duplicate
    ordered pair, an invalid kind or priority, or an invalid/duplicate node.
    """
    def __init__(
        self,
        message: str,
        edge: Optional[PrerequisiteEdge] = None,
        node_id: Optional[str] = None,
    ):
        self.edge = edge
        self.node_id = node_id
        super().__init__(message)


class UnknownNodeError(GraphError):
    """Raised when a query references subject ids absent from the snapshot."""
    def __init__(self, node_ids: Iterable[str]):
        self.node_ids: Tuple[str, ...] = tuple(node_ids)
        super().__init__(f"Unknown subject id(s): {', '.join(self.node_ids)}")


class GraphInvariantError(GraphError):
    """Raised when a strict operation requires a DAG and the graph has a cycle."""
    pass


class CycleDetectedWarning(UserWarning):
    """
    Non-fatal: a prerequisite cycle was found.

    A cycle is a data-authoring defect. The engine keeps working with a
    degraded result and reports the nodes involved.
    """
    def __init__(self, node_ids: Sequence[str], source: str = "graph"):
        self.node_ids: Tuple[str, ...] = tuple(node_ids)
        self.source = source
        super().__init__(
            f"Prerequisite cycle detected by {source}: {', '.join(self.node_ids)}"
        )


# =============================================================================
# DIAGNOSTICS (per snapshot)
# =============================================================================

class GraphDiagnostics:
    """
    Collects cycles found while answering queries on one snapshot.

    Each distinct (source, members) cycle is logged and warned about once;
    later queries that hit the same cycle only see it here.
    """

    def __init__(self, version: int, emit_warnings: bool = True):
        self._version = version
        self._emit_warnings = emit_warnings
        self._lock = threading.Lock()
        self._cycles: List[Tuple[str, ...]] = []
        self._seen: set = set()

    def record_cycle(self, node_ids: Iterable[str], source: str) -> bool:
        """
        Record a cycle. Returns True if it had not been recorded before.
        """
        members = tuple(sorted(node_ids))
        key = (source, members)
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            if members not in self._cycles:
                self._cycles.append(members)

        logger.warning(
            f"[CYCLE] snapshot v{self._version}: {source} found cycle among {list(members)}"
        )
        if self._emit_warnings:
            warnings.warn(CycleDetectedWarning(members, source=source), stacklevel=4)
        return True

    @property
    def cycles(self) -> List[Tuple[str, ...]]:
        """Distinct cycles (sorted member ids) seen so far."""
        with self._lock:
            return list(self._cycles)

    @property
    def cycle_node_ids(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(n for members in self._cycles for n in members)

    @property
    def has_cycles(self) -> bool:
        with self._lock:
            return bool(self._cycles)

    def to_diagnostics(self) -> Diagnostics:
        return Diagnostics(cycles_detected=tuple(sorted(self.cycle_node_ids)))

    def __repr__(self) -> str:
        return f"GraphDiagnostics(version={self._version}, cycles={len(self._cycles)})"


# =============================================================================
# PREREQUISITE GRAPH (The Snapshot)
# =============================================================================

_snapshot_versions = itertools.count(1)


class PrerequisiteGraph:
    """
    Immutable snapshot of subjects and prerequisite edges, backed by rustworkx.

    All public methods accept/return subject id strings; the translation
    to/from rustworkx indices is handled internally.

    Usage:
        graph = load(nodes, edges)

        graph.ancestors_of("cs301")            # frozenset of ids
        graph.detect_conflicts({"cs301"})      # ConflictReport
        graph.assign_layers()                  # LayerAssignment
        graph.highlight_set("cs301")           # frozenset or None

    Thread Safety:
        Safe for concurrent readers. Lazy caches are filled under a lock and
        only ever hold values that are deterministic for this snapshot.
    """

    def __init__(
        self,
        nodes: Iterable[SubjectNode],
        edges: Iterable[PrerequisiteEdge],
        config: Optional[EngineConfig] = None,
    ):
        """
        Validate the input and build the snapshot.

        Prefer the module-level load() function.

        Raises:
            MalformedGraphError: If any node or edge is invalid
        """
        self._config = config or default_config()
        self._version = next(_snapshot_versions)

        node_list = list(nodes)
        edge_list = [self._normalize_edge(e) for e in edges]
        self._validate_nodes(node_list)
        node_ids = {n.id for n in node_list}
        self._validate_edges(edge_list, node_ids)

        # Core storage: Rust-native directed graph, one edge per ordered pair
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=False)

        # The Bridge: bidirectional id <-> index mapping
        indices = self._graph.add_nodes_from(node_list)
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}
        for node, idx in zip(node_list, indices):
            self._node_map[node.id] = idx
            self._inv_map[idx] = node.id

        self._graph.add_edges_from([
            (self._node_map[e.source_id], self._node_map[e.target_id], e)
            for e in edge_list
        ])

        self._nodes: Dict[str, SubjectNode] = {n.id: n for n in node_list}
        self._node_order: Tuple[str, ...] = tuple(n.id for n in node_list)
        self._edges: Tuple[PrerequisiteEdge, ...] = tuple(edge_list)

        # Adjacency in input order
        outgoing: Dict[str, List[PrerequisiteEdge]] = {nid: [] for nid in self._node_order}
        incoming: Dict[str, List[PrerequisiteEdge]] = {nid: [] for nid in self._node_order}
        for e in edge_list:
            outgoing[e.source_id].append(e)
            incoming[e.target_id].append(e)
        self._outgoing: Dict[str, Tuple[PrerequisiteEdge, ...]] = {k: tuple(v) for k, v in outgoing.items()}
        self._incoming: Dict[str, Tuple[PrerequisiteEdge, ...]] = {k: tuple(v) for k, v in incoming.items()}

        # Derived, built lazily
        self._cache_lock = threading.Lock()
        self._ancestors = None
        self._hard_ancestors = None
        self.diagnostics = GraphDiagnostics(
            self._version,
            emit_warnings=self._config.diagnostics.emit_cycle_warnings,
        )

        logger.info(
            f"[GRAPH] Loaded snapshot v{self._version}: "
            f"{self.node_count} subjects, {self.edge_count} prerequisites"
        )

        if self._config.closure.precompute:
            self.ancestors.precompute()
            self.hard_ancestors.precompute()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _normalize_edge(edge: PrerequisiteEdge) -> PrerequisiteEdge:
        """Coerce a string kind into PrerequisiteKind; msgspec does not validate on __init__."""
        if isinstance(edge.kind, PrerequisiteKind):
            return edge
        try:
            kind = PrerequisiteKind.parse(edge.kind)
        except ValueError as e:
            raise MalformedGraphError(
                f"Invalid prerequisite edge {edge.source_id} -> {edge.target_id}: {e}",
                edge=edge,
            )
        return msgspec.structs.replace(edge, kind=kind)

    def _validate_nodes(self, nodes: List[SubjectNode]) -> None:
        seen: set = set()
        for node in nodes:
            if node.id in seen:
                raise MalformedGraphError(f"Duplicate subject id: {node.id}", node_id=node.id)
            seen.add(node.id)

            if not node.code:
                raise MalformedGraphError(f"Subject {node.id}: code is required", node_id=node.id)
            if not node.name:
                raise MalformedGraphError(f"Subject {node.id}: name is required", node_id=node.id)
            if not isinstance(node.credits, int) or node.credits <= 0:
                raise MalformedGraphError(
                    f"Subject {node.id}: credits must be a positive integer, got {node.credits!r}",
                    node_id=node.id,
                )
            if node.weekly_hours < 0:
                raise MalformedGraphError(
                    f"Subject {node.id}: weekly hours cannot be negative",
                    node_id=node.id,
                )

    def _validate_edges(self, edges: List[PrerequisiteEdge], node_ids: set) -> None:
        min_priority = self._config.validation.min_priority
        max_priority = self._config.validation.max_priority
        pairs: set = set()

        for edge in edges:
            if edge.source_id == edge.target_id:
                raise MalformedGraphError(
                    f"Self-loop prerequisite edge: {edge}; a subject cannot be its own prerequisite",
                    edge=edge,
                )

            missing = [nid for nid in (edge.source_id, edge.target_id) if nid not in node_ids]
            if missing:
                raise MalformedGraphError(
                    f"Prerequisite edge {edge} references unknown subject(s): {', '.join(missing)}",
                    edge=edge,
                )

            if edge.pair in pairs:
                raise MalformedGraphError(f"Duplicate prerequisite edge: {edge}", edge=edge)
            pairs.add(edge.pair)

            if edge.priority is not None and not (min_priority <= edge.priority <= max_priority):
                raise MalformedGraphError(
                    f"Prerequisite edge {edge}: priority must be between "
                    f"{min_priority} and {max_priority}, got {edge.priority}",
                    edge=edge,
                )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def version(self) -> int:
        """Process-unique snapshot version; caches are scoped to it."""
        return self._version

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def node_count(self) -> int:
        """Number of subjects in the snapshot."""
        return self._graph.num_nodes()

    @property
    def edge_count(self) -> int:
        """Number of prerequisite edges in the snapshot."""
        return self._graph.num_edges()

    @property
    def is_empty(self) -> bool:
        return self.node_count == 0

    @property
    def nodes_by_id(self) -> Mapping[str, SubjectNode]:
        """Read-only id -> SubjectNode mapping."""
        return types.MappingProxyType(self._nodes)

    @property
    def node_ids(self) -> Tuple[str, ...]:
        """Subject ids in load order."""
        return self._node_order

    @property
    def digraph(self) -> rx.PyDiGraph:
        """
        The underlying rustworkx graph (node payload: SubjectNode, edge
        payload: PrerequisiteEdge). Callers must not mutate it.
        """
        return self._graph

    # =========================================================================
    # NODE / EDGE ACCESS
    # =========================================================================

    def get_node(self, node_id: str) -> SubjectNode:
        """
        Retrieve a subject by id.

        Raises:
            UnknownNodeError: If the subject is not in the snapshot
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError([node_id])

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def summary(self, node_id: str) -> SubjectSummary:
        return self.get_node(node_id).summary()

    def iter_nodes(self) -> Iterator[SubjectNode]:
        """Iterate subjects in load order."""
        return (self._nodes[nid] for nid in self._node_order)

    def get_all_edges(self) -> Tuple[PrerequisiteEdge, ...]:
        """All edges in load order."""
        return self._edges

    def edges_from(self, node_id: str) -> Tuple[PrerequisiteEdge, ...]:
        """Outgoing edges: subjects that list `node_id` as a prerequisite."""
        self.require(node_id)
        return self._outgoing[node_id]

    def edges_to(self, node_id: str) -> Tuple[PrerequisiteEdge, ...]:
        """Incoming edges: the direct prerequisites of `node_id`."""
        self.require(node_id)
        return self._incoming[node_id]

    def get_edge(self, source_id: str, target_id: str) -> Optional[PrerequisiteEdge]:
        """The edge for an ordered pair, or None."""
        self.require(source_id, target_id)
        for edge in self._outgoing[source_id]:
            if edge.target_id == target_id:
                return edge
        return None

    def require(self, *node_ids: str) -> None:
        """
        Raise UnknownNodeError naming every id absent from the snapshot.
        """
        unknown = [nid for nid in node_ids if nid not in self._nodes]
        if unknown:
            raise UnknownNodeError(unknown)

    def index_of(self, node_id: str) -> int:
        """rustworkx index for a subject id."""
        try:
            return self._node_map[node_id]
        except KeyError:
            raise UnknownNodeError([node_id])

    def id_of(self, idx: int) -> str:
        """Subject id for a rustworkx index."""
        try:
            return self._inv_map[idx]
        except KeyError:
            raise GraphError(f"Invalid index: {idx}")

    # =========================================================================
    # DERIVED ENGINES (lazy, cached per snapshot)
    # =========================================================================

    @property
    def ancestors(self):
        """Ancestor closure over every edge."""
        if self._ancestors is None:
            from core.closure import AncestorClosure
            with self._cache_lock:
                if self._ancestors is None:
                    self._ancestors = AncestorClosure(self, label="ancestor closure")
        return self._ancestors

    @property
    def hard_ancestors(self):
        """Ancestor closure over HARD edges only."""
        if self._hard_ancestors is None:
            from core.closure import AncestorClosure
            with self._cache_lock:
                if self._hard_ancestors is None:
                    self._hard_ancestors = AncestorClosure(
                        self, hard_only=True, label="hard ancestor closure"
                    )
        return self._hard_ancestors

    # =========================================================================
    # QUERIES
    # =========================================================================

    def ancestors_of(self, node_id: str) -> FrozenSet[str]:
        """Every subject that must (directly or transitively) precede `node_id`."""
        return self.ancestors.ancestors_of(node_id)

    def hard_ancestors_of(self, node_id: str) -> FrozenSet[str]:
        """Subjects with at least one all-hard path to `node_id`."""
        return self.hard_ancestors.ancestors_of(node_id)

    def detect_conflicts(self, candidate_ids: Iterable[str]):
        from core.conflicts import detect_conflicts
        return detect_conflicts(self, candidate_ids)

    def assign_layers(self, node_ids: Optional[Iterable[str]] = None):
        from core.layering import assign_layers
        return assign_layers(self, node_ids)

    def focus_subgraph(self, node_id: str):
        from core.focus import focus_subgraph
        return focus_subgraph(self, node_id)

    def highlight_set(self, hovered_id: Optional[str]) -> Optional[FrozenSet[str]]:
        from core.focus import highlight_set
        return highlight_set(self, hovered_id)

    def validate_dag(self):
        from core.graph_invariants import validate_dag
        return validate_dag(self)

    def topological_order(self) -> List[str]:
        from core.graph_invariants import topological_order
        return topological_order(self)

    def would_create_cycle(self, subject_id: str, prerequisite_id: str) -> bool:
        from core.graph_invariants import would_create_cycle
        return would_create_cycle(self, subject_id, prerequisite_id)

    # =========================================================================
    # EXPORT (Polars-Compatible)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """Export subjects to a Polars DataFrame."""
        nodes = list(self.iter_nodes())
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "code": [n.code for n in nodes],
                "name": [n.name for n in nodes],
                "credits": [n.credits for n in nodes],
                "department_id": [n.department_id for n in nodes],
                "active": [n.active for n in nodes],
            },
            schema={
                "id": pl.Utf8,
                "code": pl.Utf8,
                "name": pl.Utf8,
                "credits": pl.Int64,
                "department_id": pl.Utf8,
                "active": pl.Boolean,
            },
        )

    def to_polars_edges(self) -> pl.DataFrame:
        """Export prerequisite edges to a Polars DataFrame."""
        return pl.DataFrame(
            {
                "source_id": [e.source_id for e in self._edges],
                "target_id": [e.target_id for e in self._edges],
                "kind": [e.kind.value for e in self._edges],
                "priority": [e.priority for e in self._edges],
            },
            schema={
                "source_id": pl.Utf8,
                "target_id": pl.Utf8,
                "kind": pl.Utf8,
                "priority": pl.Int64,
            },
        )

    # =========================================================================
    # DUNDER
    # =========================================================================

    def __len__(self) -> int:
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __repr__(self) -> str:
        return (
            f"PrerequisiteGraph(version={self._version}, "
            f"nodes={self.node_count}, edges={self.edge_count})"
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def load(
    nodes: Iterable[SubjectNode],
    edges: Iterable[PrerequisiteEdge],
    config: Optional[EngineConfig] = None,
) -> PrerequisiteGraph:
    """
    Build a validated snapshot.

    Raises:
        MalformedGraphError: On any invalid node or edge; nothing is dropped
    """
    return PrerequisiteGraph(nodes, edges, config=config)


def load_json(payload: bytes, config: Optional[EngineConfig] = None) -> PrerequisiteGraph:
    """
    Build a snapshot from the subject service's full-DAG JSON payload.

    Raises:
        MalformedGraphError: On undecodable JSON or any invalid record
    """
    try:
        dag = decode_full_dag(payload)
    except (msgspec.DecodeError, msgspec.ValidationError) as e:
        raise MalformedGraphError(f"Invalid full-DAG payload: {e}")

    nodes = [record.to_node() for record in dag.subjects]
    edges = []
    for record in dag.prerequisites:
        try:
            edges.append(record.to_edge())
        except ValueError as e:
            raise MalformedGraphError(
                f"Invalid prerequisite {record.prerequisite_id} -> {record.subject_id}: {e}"
            )
    return load(nodes, edges, config=config)


def create_empty_graph() -> PrerequisiteGraph:
    """An empty snapshot."""
    return PrerequisiteGraph([], [])
