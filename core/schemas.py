"""
PREREQUISITE SCHEMAS - The Grammar of the Catalog Graph

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the data structures that flow through the engine:
- SubjectNode: The payload attached to every graph node (a subject)
- PrerequisiteEdge: The payload attached to every graph edge
- SubjectSummary: The lightweight (id, code, name) view the UI renders
- SubjectRecord / PrerequisiteRecord / FullDAGPayload: the wire shape
  returned by the subject service's "full DAG" endpoint
- Serialization helpers

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. FROZEN: Nodes and edges never change once loaded into a snapshot
3. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
4. WIRE SEPARATE FROM DOMAIN: snake_case API records are converted,
   not used directly, so the engine never depends on transport naming
"""
import msgspec
from typing import Any, List, Optional, Tuple

from core.ontology import PrerequisiteKind


# =============================================================================
# DOMAIN STRUCTS
# =============================================================================

class SubjectNode(msgspec.Struct, kw_only=True, frozen=True):
    """
    A subject in the catalog.

    Identity is by `id`. Two SubjectNodes with the same id in one load()
    call are a malformed graph, not a merge.
    """
    id: str
    code: str                      # Short human label, e.g. "CS101"
    name: str
    credits: int                   # Positive
    department_id: str = ""
    active: bool = True
    description: str = ""
    weekly_hours: int = 0

    def summary(self) -> "SubjectSummary":
        """The (id, code, name) view used in reports."""
        return SubjectSummary(id=self.id, code=self.code, name=self.name)

    @classmethod
    def create(cls, id: str, code: str, name: str = "", credits: int = 3, **kwargs) -> "SubjectNode":
        """Factory with catalog-friendly defaults (name falls back to code)."""
        return cls(id=id, code=code, name=name or code, credits=credits, **kwargs)


class PrerequisiteEdge(msgspec.Struct, kw_only=True, frozen=True):
    """
    A directed prerequisite relation.

    `source_id` must be completed before `target_id`. Priority is an
    ordering hint for the UI only; closure and conflict logic ignore it.
    """
    source_id: str                 # The prerequisite
    target_id: str                 # The dependent subject
    kind: PrerequisiteKind = PrerequisiteKind.HARD
    priority: Optional[int] = None

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.source_id, self.target_id)

    @property
    def is_hard(self) -> bool:
        return self.kind == PrerequisiteKind.HARD

    def __str__(self) -> str:
        return f"{self.source_id} -> {self.target_id} ({self.kind.value})"

    @classmethod
    def hard(cls, source_id: str, target_id: str, **kwargs) -> "PrerequisiteEdge":
        """Create a HARD edge (source must be completed before target)."""
        return cls(source_id=source_id, target_id=target_id, kind=PrerequisiteKind.HARD, **kwargs)

    @classmethod
    def soft(cls, source_id: str, target_id: str, **kwargs) -> "PrerequisiteEdge":
        """Create a SOFT edge (source is recommended before target)."""
        return cls(source_id=source_id, target_id=target_id, kind=PrerequisiteKind.SOFT, **kwargs)


class SubjectSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Lightweight subject view so the UI never needs a second lookup."""
    id: str
    code: str
    name: str


class Diagnostics(msgspec.Struct, kw_only=True, frozen=True):
    """
    Non-fatal findings attached to a query result.

    Callers decide whether to surface or ignore them; the result value
    itself is always usable.
    """
    cycles_detected: Tuple[str, ...] = ()      # Node ids involved in a cycle

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles_detected)


# =============================================================================
# WIRE RECORDS (Full-DAG payload from the subject service)
# =============================================================================

class SubjectRecord(msgspec.Struct, kw_only=True):
    """Subject as serialized by the subject service. Unknown fields are ignored."""
    id: str
    code: str
    name: str
    credits: int
    department_id: str = ""
    description: str = ""
    weekly_hours: int = 0
    is_active: bool = True

    def to_node(self) -> SubjectNode:
        return SubjectNode(
            id=self.id,
            code=self.code,
            name=self.name,
            credits=self.credits,
            department_id=self.department_id,
            active=self.is_active,
            description=self.description,
            weekly_hours=self.weekly_hours,
        )


class PrerequisiteRecord(msgspec.Struct, kw_only=True):
    """
    Prerequisite as serialized by the subject service.

    Note the direction: `subject_id` depends on `prerequisite_id`, so the
    graph edge runs prerequisite_id -> subject_id.
    """
    subject_id: str
    prerequisite_id: str
    prerequisite_type: str = PrerequisiteKind.HARD.value
    priority: Optional[int] = None

    def to_edge(self) -> PrerequisiteEdge:
        """
        Convert to a domain edge.

        Raises:
            ValueError: If prerequisite_type is not 'hard' or 'soft'
        """
        return PrerequisiteEdge(
            source_id=self.prerequisite_id,
            target_id=self.subject_id,
            kind=PrerequisiteKind.parse(self.prerequisite_type),
            priority=self.priority,
        )


class FullDAGPayload(msgspec.Struct, kw_only=True):
    """All subjects and all prerequisite edges, fetched in one call."""
    subjects: List[SubjectRecord] = msgspec.field(default_factory=list)
    prerequisites: List[PrerequisiteRecord] = msgspec.field(default_factory=list)


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoders/decoders; reuse to avoid recompilation costs
_json_encoder = msgspec.json.Encoder()
_payload_decoder = msgspec.json.Decoder(type=FullDAGPayload)
_node_list_decoder = msgspec.json.Decoder(type=List[SubjectNode])
_edge_list_decoder = msgspec.json.Decoder(type=List[PrerequisiteEdge])


def decode_full_dag(data: bytes) -> FullDAGPayload:
    """
    Decode the subject service's full-DAG JSON payload.

    Raises:
        msgspec.DecodeError: On malformed JSON or wrong field types
    """
    return _payload_decoder.decode(data)


def encode_json(obj: Any) -> bytes:
    """Encode any struct (node, edge, report) to JSON bytes."""
    return _json_encoder.encode(obj)


def serialize_nodes(nodes: List[SubjectNode]) -> bytes:
    """Serialize a list of SubjectNode to JSON bytes."""
    return _json_encoder.encode(nodes)


def deserialize_nodes(data: bytes) -> List[SubjectNode]:
    """Deserialize JSON bytes to a list of SubjectNode."""
    return _node_list_decoder.decode(data)


def serialize_edges(edges: List[PrerequisiteEdge]) -> bytes:
    """Serialize a list of PrerequisiteEdge to JSON bytes."""
    return _json_encoder.encode(edges)


def deserialize_edges(data: bytes) -> List[PrerequisiteEdge]:
    """Deserialize JSON bytes to a list of PrerequisiteEdge."""
    return _edge_list_decoder.decode(data)
