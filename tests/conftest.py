"""
Pytest configuration and shared fixtures for the prerequisite engine tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root (packages) and tests dir (builders) to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from catalog_builders import hard, random_dag, subjects  # noqa: E402
from core.graph_db import load  # noqa: E402


@pytest.fixture
def chain_graph():
    """Scenario A: A -> B -> C, all hard."""
    return load(subjects("A", "B", "C"), [hard("A", "B"), hard("B", "C")])


@pytest.fixture
def diamond_graph():
    """Scenario C: A -> B, A -> C, B -> D, C -> D, all hard."""
    return load(
        subjects("A", "B", "C", "D"),
        [hard("A", "B"), hard("A", "C"), hard("B", "D"), hard("C", "D")],
    )


@pytest.fixture
def two_cycle_graph():
    """A <-> B, with Z feeding A and D depending on B."""
    return load(
        subjects("Z", "A", "B", "D"),
        [hard("Z", "A"), hard("A", "B"), hard("B", "A"), hard("B", "D")],
    )


@pytest.fixture
def three_cycle_graph():
    """A -> B -> C -> A."""
    return load(subjects("A", "B", "C"), [hard("A", "B"), hard("B", "C"), hard("C", "A")])


@pytest.fixture(params=[1, 7, 42, 2024])
def random_catalog(request):
    """Random acyclic catalog (nodes, edges) across several seeds."""
    return random_dag(request.param)
