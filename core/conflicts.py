"""
CONFLICT DETECTOR - "Which required prerequisites are missing from this set?"

Given a candidate set of subjects (e.g. the subjects tentatively offered
this semester), report for each subject the hard prerequisites, direct or
transitive, that are absent from the set.

Rules:
- A hard ancestor is any subject with at least one all-HARD path to the
  subject. A path through a SOFT edge does not count, but another all-hard
  path to the same subject still does.
- SOFT prerequisites are advisory and never produce a conflict.
- Unknown candidate ids are an error; ignoring them would make the report
  falsely optimistic.
- Entries carry (id, code, name) summaries so the UI needs no second lookup.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import msgspec

from core.graph_db import UnknownNodeError
from core.schemas import Diagnostics, SubjectSummary

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

class ConflictEntry(msgspec.Struct, kw_only=True, frozen=True):
    """One subject with unmet hard prerequisites."""
    subject: SubjectSummary
    missing: Tuple[SubjectSummary, ...]

    @property
    def subject_id(self) -> str:
        return self.subject.id

    @property
    def missing_ids(self) -> Tuple[str, ...]:
        return tuple(m.id for m in self.missing)


class ConflictReport(msgspec.Struct, kw_only=True, frozen=True):
    """
    Conflicts for one candidate set.

    `entries` is sorted by subject code; subjects with nothing missing are
    omitted. `diagnostics` lists members of hard-edge cycles among the
    candidates' hard ancestors; it depends only on the snapshot and the
    candidate set.
    """
    entries: Tuple[ConflictEntry, ...] = ()
    diagnostics: Diagnostics = msgspec.field(default_factory=Diagnostics)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.entries)

    @property
    def subject_ids(self) -> Tuple[str, ...]:
        return tuple(e.subject.id for e in self.entries)

    def for_subject(self, subject_id: str) -> Optional[ConflictEntry]:
        for entry in self.entries:
            if entry.subject.id == subject_id:
                return entry
        return None

    def missing_ids(self) -> List[str]:
        """Deduplicated union of missing ids across all entries."""
        return union_missing_ids(self.entries)

    def missing_summaries(self) -> List[SubjectSummary]:
        """Deduplicated union of missing subjects across all entries."""
        seen: set = set()
        result = []
        for entry in self.entries:
            for summary in entry.missing:
                if summary.id not in seen:
                    seen.add(summary.id)
                    result.append(summary)
        return result


# =============================================================================
# DETECTION
# =============================================================================

def _sort_key(summary: SubjectSummary) -> Tuple[str, str]:
    return (summary.code, summary.id)


def _ordered_unique(ids: Iterable[str]) -> List[str]:
    if isinstance(ids, str):
        raise TypeError("expected an iterable of subject ids, got a single string")
    seen: set = set()
    ordered = []
    for node_id in ids:
        if node_id not in seen:
            seen.add(node_id)
            ordered.append(node_id)
    return ordered


def detect_conflicts(graph, candidate_ids: Iterable[str]) -> ConflictReport:
    """
    Report missing hard prerequisites for every subject in `candidate_ids`.

    Args:
        graph: PrerequisiteGraph snapshot
        candidate_ids: Subject ids in the candidate set

    Returns:
        ConflictReport (empty when every hard ancestor is present)

    Raises:
        UnknownNodeError: If any candidate id is not in the snapshot
        TypeError: If a bare string is passed instead of a collection
    """
    candidates = _ordered_unique(candidate_ids)
    unknown = [cid for cid in candidates if not graph.has_node(cid)]
    if unknown:
        raise UnknownNodeError(unknown)

    candidate_set = frozenset(candidates)
    entries: List[ConflictEntry] = []
    touched: set = set()

    for subject_id in candidates:
        hard = graph.hard_ancestors_of(subject_id)
        touched.update(hard)
        missing = hard - candidate_set
        if not missing:
            continue
        entries.append(ConflictEntry(
            subject=graph.summary(subject_id),
            missing=tuple(sorted((graph.summary(m) for m in missing), key=_sort_key)),
        ))

    entries.sort(key=lambda e: _sort_key(e.subject))

    # Cycles found by the hard closure this query resolved; any cycle member
    # that is a hard ancestor of a candidate drags its whole group into `touched`
    involved = sorted({
        n for members in graph.hard_ancestors.cycles for n in members if n in touched
    })

    if entries:
        logger.debug(
            f"[QUERY] conflicts v{graph.version}: {len(entries)} of "
            f"{len(candidates)} subjects have missing hard prerequisites"
        )

    return ConflictReport(
        entries=tuple(entries),
        diagnostics=Diagnostics(cycles_detected=tuple(involved)),
    )


def union_missing_ids(entries: Sequence[ConflictEntry]) -> List[str]:
    """
    Missing prerequisite ids across entries, each id once, first-seen order.

    This backs the "add all missing prerequisites" action: a prerequisite
    shared by two flagged subjects is added once.
    """
    seen: set = set()
    result = []
    for entry in entries:
        for summary in entry.missing:
            if summary.id not in seen:
                seen.add(summary.id)
                result.append(summary.id)
    return result
