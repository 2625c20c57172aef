"""
ANCESTOR CLOSURE ENGINE - "What must be completed before subject X?"

Computes, per subject, the full transitive set of upstream prerequisites,
memoized for the lifetime of one snapshot.

Algorithm:
    Depth-first traversal over incoming edges. A subject's closure is the
    union of its direct prerequisites and each direct prerequisite's own
    cached closure, so every subject is resolved at most once.

    The traversal keeps an "on stack" marker for subjects currently being
    resolved. Reaching a marked subject again means a cycle: the traversal
    does not descend, and the whole strongly connected group is resolved
    together once its root finishes (Tarjan's scheme). Every member of the
    group receives the same closure, which includes the group itself, so a
    subject is in its own ancestor set only when a cycle makes it
    self-reachable. The cycle is reported through the snapshot diagnostics.

    The traversal is iterative; long prerequisite chains do not hit the
    interpreter recursion limit.

Complexity:
    Resolution is O(V+E) set unions overall. A repeated ancestors_of() on a
    resolved subject is a dict lookup.
"""
import logging
import threading
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple

from core.schemas import PrerequisiteEdge

logger = logging.getLogger(__name__)

EdgeFilter = Callable[[PrerequisiteEdge], bool]


class AncestorClosure:
    """
    Memoized ancestor closure over one PrerequisiteGraph snapshot.

    Owned by the snapshot (see PrerequisiteGraph.ancestors); never shared
    across snapshots, so the cache is implicitly keyed by snapshot version.

    Args:
        graph: The snapshot to traverse
        hard_only: Follow only HARD edges (used for conflict detection)
        edge_filter: Custom predicate; overrides hard_only when given
        label: Name used in logs and cycle diagnostics
    """

    def __init__(
        self,
        graph,
        hard_only: bool = False,
        edge_filter: Optional[EdgeFilter] = None,
        label: str = "ancestor closure",
    ):
        self._graph = graph
        self._version = graph.version
        self._label = label

        if edge_filter is None:
            edge_filter = (lambda e: e.is_hard) if hard_only else (lambda e: True)

        # Predecessor index lists, built once from the rustworkx graph
        digraph = graph.digraph
        self._preds: Dict[int, Tuple[int, ...]] = {
            idx: tuple(src for src, _, edge in digraph.in_edges(idx) if edge_filter(edge))
            for idx in digraph.node_indices()
        }

        self._cache: Dict[int, FrozenSet[str]] = {}
        self._inclusive: Dict[str, FrozenSet[str]] = {}
        self._cycles: List[Tuple[str, ...]] = []
        self._lock = threading.RLock()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def version(self) -> int:
        """Version of the snapshot this cache belongs to."""
        return self._version

    @property
    def label(self) -> str:
        return self._label

    @property
    def cycles(self) -> List[Tuple[str, ...]]:
        """Cycles (sorted member ids) found by this engine so far."""
        with self._lock:
            return list(self._cycles)

    @property
    def resolved_count(self) -> int:
        """How many subjects have a cached closure."""
        return len(self._cache)

    def ancestors_of(self, node_id: str) -> FrozenSet[str]:
        """
        All subjects reachable backward from `node_id`.

        Raises:
            UnknownNodeError: If `node_id` is not in the snapshot
        """
        idx = self._graph.index_of(node_id)
        cached = self._cache.get(idx)
        if cached is not None:
            return cached

        with self._lock:
            if idx not in self._cache:
                self._resolve(idx)
            return self._cache[idx]

    def inclusive(self, node_id: str) -> FrozenSet[str]:
        """`{node_id} | ancestors_of(node_id)`, cached (hover path)."""
        cached = self._inclusive.get(node_id)
        if cached is not None:
            return cached

        result = self.ancestors_of(node_id) | {node_id}
        with self._lock:
            return self._inclusive.setdefault(node_id, result)

    def precompute(self) -> int:
        """
        Resolve every subject in the snapshot.

        Returns:
            Number of subjects resolved by this call
        """
        before = len(self._cache)
        with self._lock:
            for idx in self._preds:
                if idx not in self._cache:
                    self._resolve(idx)
        resolved = len(self._cache) - before
        logger.debug(f"[QUERY] {self._label}: precomputed {resolved} subjects (v{self._version})")
        return resolved

    def as_dict(self) -> Dict[str, FrozenSet[str]]:
        """Closure of every subject, keyed by id."""
        self.precompute()
        return {self._graph.id_of(idx): closure for idx, closure in self._cache.items()}

    def __contains__(self, node_id: str) -> bool:
        return self._graph.has_node(node_id) and self._graph.index_of(node_id) in self._cache

    def __repr__(self) -> str:
        return (
            f"AncestorClosure(label={self._label!r}, version={self._version}, "
            f"resolved={len(self._cache)}/{len(self._preds)})"
        )

    # =========================================================================
    # TRAVERSAL
    # =========================================================================

    def _resolve(self, start: int) -> None:
        """Iterative Tarjan walk over predecessors; caches every finished group."""
        index: Dict[int, int] = {}
        low: Dict[int, int] = {}
        stack: List[int] = []
        on_stack: set = set()
        counter = 0

        def visit(node: int) -> Tuple[int, Iterator[int]]:
            nonlocal counter
            index[node] = low[node] = counter
            counter += 1
            stack.append(node)
            on_stack.add(node)
            return node, iter(self._preds[node])

        work = [visit(start)]
        while work:
            node, preds = work[-1]
            descended = False
            for pred in preds:
                if pred in self._cache:
                    continue
                if pred not in index:
                    work.append(visit(pred))
                    descended = True
                    break
                if pred in on_stack:
                    # Back edge: pred is still being resolved
                    low[node] = min(low[node], index[pred])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])

            if low[node] == index[node]:
                group = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    group.append(member)
                    if member == node:
                        break
                self._finalize(group)

    def _finalize(self, group: List[int]) -> None:
        """Store the shared closure of a finished strongly connected group."""
        id_of = self._graph.id_of
        members = set(group)
        closure: set = set()

        for member in group:
            for pred in self._preds[member]:
                if pred in members:
                    continue
                closure.add(id_of(pred))
                closure |= self._cache[pred]

        if len(group) > 1:
            member_ids = [id_of(m) for m in group]
            closure.update(member_ids)
            self._cycles.append(tuple(sorted(member_ids)))
            self._graph.diagnostics.record_cycle(member_ids, source=self._label)

        frozen = frozenset(closure)
        for member in group:
            self._cache[member] = frozen
