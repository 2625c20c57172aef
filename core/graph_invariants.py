"""
GRAPH INVARIANTS - Strict DAG checks for the catalog

The query engines tolerate cycles. These checks do not: they exist for
authoring flows that must keep the catalog a DAG.

- validate_dag: whole-graph check returning one concrete cycle path
- would_create_cycle: would a proposed prerequisite edge close a cycle?
- topological_order: prerequisite-first order, failing on a cycle

Checks are O(V+E) using rustworkx primitives.
"""
from typing import List, Tuple

import msgspec
import rustworkx as rx

from core.graph_db import GraphInvariantError


class DagValidation(msgspec.Struct, kw_only=True, frozen=True):
    """Outcome of a full-graph DAG check."""
    is_valid: bool
    # Closed walk in prerequisite direction, e.g. ("a", "b", "c", "a")
    cycle_path: Tuple[str, ...] = ()


def validate_dag(graph) -> DagValidation:
    """
    Check the whole snapshot for prerequisite cycles.

    Returns:
        DagValidation with one cycle path when the graph is not a DAG
    """
    digraph = graph.digraph
    if rx.is_directed_acyclic_graph(digraph):
        return DagValidation(is_valid=True)

    for component in rx.strongly_connected_components(digraph):
        if len(component) < 2:
            continue
        cycle_edges = list(rx.digraph_find_cycle(digraph, component[0]))
        if cycle_edges:
            path = [graph.id_of(src) for src, _ in cycle_edges]
            path.append(graph.id_of(cycle_edges[-1][1]))
            return DagValidation(is_valid=False, cycle_path=tuple(path))

    # Not reached for graphs without self-loops, which load() rejects
    return DagValidation(is_valid=False)


def would_create_cycle(graph, subject_id: str, prerequisite_id: str) -> bool:
    """
    Would "prerequisite_id must precede subject_id" create a cycle?

    True when the two are the same subject or when `subject_id` already
    (transitively) precedes `prerequisite_id`.

    Raises:
        UnknownNodeError: If either id is not in the snapshot
    """
    graph.require(subject_id, prerequisite_id)
    if subject_id == prerequisite_id:
        return True
    return subject_id in graph.ancestors_of(prerequisite_id)


def topological_order(graph) -> List[str]:
    """
    All subject ids, prerequisites first; ties broken by subject code.

    Raises:
        GraphInvariantError: If the graph has a cycle
    """
    try:
        order = rx.lexicographical_topological_sort(
            graph.digraph, key=lambda node: f"{node.code}\x00{node.id}"
        )
    except rx.DAGHasCycle:
        raise GraphInvariantError("Cannot order prerequisites: graph has cycles")
    return [node.id for node in order]
