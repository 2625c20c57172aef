"""
FOCUS / HIGHLIGHT VIEW - Read-only views over the ancestor closure

- focus_subgraph: "show only this subject's chain" (the subject, all its
  ancestors, and every edge among them)
- highlight_set: the hover set; consumers dim everything outside it

Both are pure functions of the snapshot's cached closure. highlight_set
fires on every pointer move, so it returns a cached frozenset.
"""
from typing import FrozenSet, Optional, Tuple

import msgspec

from core.schemas import PrerequisiteEdge


class FocusSubgraph(msgspec.Struct, kw_only=True, frozen=True):
    """A subject and everything it transitively depends on."""
    root_id: str
    node_ids: FrozenSet[str]
    edges: Tuple[PrerequisiteEdge, ...] = ()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.node_ids


def focus_subgraph(graph, node_id: str) -> FocusSubgraph:
    """
    Restrict the graph to `node_id` and its ancestors.

    Edges keep snapshot load order.

    Raises:
        UnknownNodeError: If `node_id` is not in the snapshot
    """
    members = graph.ancestors.inclusive(node_id)
    edges = tuple(
        e for e in graph.get_all_edges()
        if e.source_id in members and e.target_id in members
    )
    return FocusSubgraph(root_id=node_id, node_ids=members, edges=edges)


def highlight_set(graph, hovered_id: Optional[str]) -> Optional[FrozenSet[str]]:
    """
    Ids to keep undimmed while `hovered_id` is hovered.

    Returns None when nothing is hovered (meaning "dim nothing").

    Raises:
        UnknownNodeError: If `hovered_id` is not in the snapshot
    """
    if hovered_id is None:
        return None
    return graph.ancestors.inclusive(hovered_id)
