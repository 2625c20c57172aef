"""
PREREQUISITE CORE - Central exports for the catalog graph engine.

This module provides access to:
- Graph store (load, PrerequisiteGraph) and the error taxonomy
- Ancestor closure, conflict detection, layering, focus/highlight views
- Strict DAG checks and the atomic snapshot holder
"""

from core.ontology import PrerequisiteKind
from core.schemas import (
    Diagnostics,
    PrerequisiteEdge,
    SubjectNode,
    SubjectSummary,
)
from core.graph_db import (
    CycleDetectedWarning,
    GraphError,
    GraphInvariantError,
    MalformedGraphError,
    PrerequisiteGraph,
    UnknownNodeError,
    load,
    load_json,
)
from core.closure import AncestorClosure
from core.conflicts import ConflictEntry, ConflictReport, detect_conflicts, union_missing_ids
from core.layering import LayerAssignment, assign_layers
from core.focus import FocusSubgraph, focus_subgraph, highlight_set
from core.graph_invariants import DagValidation, topological_order, validate_dag, would_create_cycle
from core.catalog import CatalogGraph

__all__ = [
    # Vocabulary and data
    "PrerequisiteKind",
    "Diagnostics",
    "PrerequisiteEdge",
    "SubjectNode",
    "SubjectSummary",
    # Graph store and errors
    "CycleDetectedWarning",
    "GraphError",
    "GraphInvariantError",
    "MalformedGraphError",
    "PrerequisiteGraph",
    "UnknownNodeError",
    "load",
    "load_json",
    # Engines
    "AncestorClosure",
    "ConflictEntry",
    "ConflictReport",
    "detect_conflicts",
    "union_missing_ids",
    "LayerAssignment",
    "assign_layers",
    "FocusSubgraph",
    "focus_subgraph",
    "highlight_set",
    "DagValidation",
    "topological_order",
    "validate_dag",
    "would_create_cycle",
    "CatalogGraph",
]
