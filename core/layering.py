"""
TOPOLOGICAL LAYER ASSIGNER - Dependency order for hierarchical layout

Partitions a subset of subjects into ordered layers such that every edge
between two members points from a lower layer to a higher one. The layout
collaborator turns layers into coordinates; this module never does.

Algorithm (Kahn):
    1. In-degree counts only edges with both endpoints in the subset
    2. Seed the frontier with in-degree-0 subjects at layer 0
    3. Drain the frontier, decrement successors, promote any successor
       reaching in-degree 0 into the next frontier
    4. Advance the layer each time the frontier is exhausted

Cycle policy:
    If the frontier empties while subjects remain unassigned, every
    remaining subject goes to the current (trailing) layer. One bad edge
    must not break the whole visualization. The trailing-layer subjects are
    listed in `trailing`; only the strongly connected groups among them are
    reported as cycles (diagnostics plus CycleDetectedWarning), so a subject
    that merely depends on a cycle is not called a cycle member.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import msgspec
import polars as pl
import rustworkx as rx

from core.graph_db import UnknownNodeError
from core.schemas import Diagnostics

logger = logging.getLogger(__name__)


class LayerAssignment(msgspec.Struct, kw_only=True, frozen=True):
    """Layer index per subject id, plus any cycle diagnostics."""
    layers: Dict[str, int] = msgspec.field(default_factory=dict)
    # Subjects forced into the last layer because Kahn could not place them
    trailing: Tuple[str, ...] = ()
    diagnostics: Diagnostics = msgspec.field(default_factory=Diagnostics)

    @property
    def depth(self) -> int:
        """Number of layers."""
        return max(self.layers.values()) + 1 if self.layers else 0

    def layer_of(self, node_id: str) -> int:
        """
        Raises:
            KeyError: If the subject was not part of this assignment
        """
        return self.layers[node_id]

    def waves(self) -> List[List[str]]:
        """Subject ids grouped per layer, in assignment order."""
        grouped: List[List[str]] = [[] for _ in range(self.depth)]
        for node_id, layer in self.layers.items():
            grouped[layer].append(node_id)
        return grouped

    def to_polars(self) -> pl.DataFrame:
        """(id, layer, in_cycle) rows for the layout collaborator."""
        cyclic = set(self.diagnostics.cycles_detected)
        ids = list(self.layers)
        return pl.DataFrame(
            {
                "id": ids,
                "layer": [self.layers[i] for i in ids],
                "in_cycle": [i in cyclic for i in ids],
            },
            schema={"id": pl.Utf8, "layer": pl.Int64, "in_cycle": pl.Boolean},
        )


def assign_layers(graph, node_ids: Optional[Iterable[str]] = None) -> LayerAssignment:
    """
    Assign layers to `node_ids` (default: every subject in the snapshot).

    Duplicate ids are ignored; order of first appearance decides order
    within a layer.

    Raises:
        UnknownNodeError: If any id is not in the snapshot
    """
    if node_ids is None:
        ids = list(graph.node_ids)
    else:
        if isinstance(node_ids, str):
            raise TypeError("expected an iterable of subject ids, got a single string")
        ids = list(dict.fromkeys(node_ids))

    unknown = [nid for nid in ids if not graph.has_node(nid)]
    if unknown:
        raise UnknownNodeError(unknown)

    subset = set(ids)
    in_degree: Dict[str, int] = {nid: 0 for nid in ids}
    successors: Dict[str, List[str]] = {nid: [] for nid in ids}
    for nid in ids:
        for edge in graph.edges_from(nid):
            if edge.target_id in subset:
                successors[nid].append(edge.target_id)
                in_degree[edge.target_id] += 1

    layers: Dict[str, int] = {}
    current = 0
    frontier = [nid for nid in ids if in_degree[nid] == 0]

    while frontier:
        next_frontier = []
        for nid in frontier:
            layers[nid] = current
            for succ in successors[nid]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    next_frontier.append(succ)
        frontier = next_frontier
        current += 1

    remaining = [nid for nid in ids if nid not in layers]
    cyclic: List[str] = []
    if remaining:
        for nid in remaining:
            layers[nid] = current
        for group in _cycle_groups(graph, remaining):
            graph.diagnostics.record_cycle(group, source="layer assignment")
            cyclic.extend(group)
        logger.info(
            f"[QUERY] layering v{graph.version}: {len(remaining)} unresolved "
            f"subject(s) placed in trailing layer {current}"
        )

    return LayerAssignment(
        layers=layers,
        trailing=tuple(remaining),
        diagnostics=Diagnostics(cycles_detected=tuple(sorted(cyclic))),
    )


def _cycle_groups(graph, node_ids: List[str]) -> List[List[str]]:
    """Strongly connected groups (size > 1) among `node_ids`, members sorted."""
    sub = graph.digraph.subgraph([graph.index_of(nid) for nid in node_ids])
    groups = [
        sorted(sub[idx].id for idx in component)
        for component in rx.strongly_connected_components(sub)
        if len(component) > 1
    ]
    return sorted(groups)
