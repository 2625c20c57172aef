"""
PREREQUISITE ONTOLOGY - The Dictionary of the Catalog Graph

If schemas.py is the Grammar (how we structure subjects and edges),
ontology.py is the Dictionary (the words we can use).

This module defines:
- PrerequisiteKind: hard (blocking) vs soft (advisory) edges

DESIGN PHILOSOPHY (Physics vs Policy):
- PHYSICS: An edge cannot reference a subject that was never loaded
- PHYSICS: A subject cannot be its own prerequisite
- POLICY: A soft prerequisite is a recommendation, never a conflict

This module encodes the vocabulary. Physics is enforced by graph_db.load().
"""
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class PrerequisiteKind(str, Enum):
    """Kinds of prerequisite edges."""
    HARD = "hard"    # Must be completed first; absence is a conflict
    SOFT = "soft"    # Recommended only; never produces a conflict

    @classmethod
    def parse(cls, value: str) -> "PrerequisiteKind":
        """
        Parse a kind string, accepting any letter case.

        Raises:
            ValueError: If the value is not 'hard' or 'soft'
        """
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            raise ValueError(
                f"invalid prerequisite type: {value!r} (must be 'hard' or 'soft')"
            )

