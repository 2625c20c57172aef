"""
Strict DAG checks for the catalog (authoring-time invariants)

Tests:
1. validate_dag: acyclic catalogs pass, cyclic ones return a closed cycle path
2. would_create_cycle: proposed edges that would close a loop
3. topological_order: prerequisite-first order with code tie-breaks

The query engines tolerate cycles; these checks are the strict counterpart.
"""
import unittest

from catalog_builders import hard, random_dag, soft, subject, subjects
from core.graph_db import GraphInvariantError, UnknownNodeError, create_empty_graph, load
from core.graph_invariants import DagValidation, validate_dag


# =============================================================================
# TEST DAG VALIDATION
# =============================================================================

class TestValidateDag(unittest.TestCase):
    """Tests for whole-graph DAG validation."""

    def test_empty_graph_valid(self):
        """Empty catalog is a DAG."""
        result = validate_dag(create_empty_graph())
        self.assertTrue(result.is_valid)
        self.assertEqual(result.cycle_path, ())

    def test_diamond_valid(self):
        graph = load(
            subjects("A", "B", "C", "D"),
            [hard("A", "B"), hard("A", "C"), hard("B", "D"), hard("C", "D")],
        )
        self.assertEqual(graph.validate_dag(), DagValidation(is_valid=True))

    def test_random_dags_valid(self):
        for seed in (3, 11, 99):
            nodes, edges = random_dag(seed)
            self.assertTrue(load(nodes, edges).validate_dag().is_valid)

    def test_cycle_path_is_closed_walk(self):
        """
        Z -> A -> B -> C -> A.

        The reported path starts and ends on the same subject and every
        consecutive pair is an edge of the catalog.
        """
        graph = load(
            subjects("Z", "A", "B", "C"),
            [hard("Z", "A"), hard("A", "B"), hard("B", "C"), hard("C", "A")],
        )

        result = graph.validate_dag()

        self.assertFalse(result.is_valid)
        path = result.cycle_path
        self.assertEqual(path[0], path[-1])
        self.assertEqual(set(path), {"A", "B", "C"})
        for source_id, target_id in zip(path, path[1:]):
            self.assertIsNotNone(graph.get_edge(source_id, target_id))

    def test_soft_cycle_still_invalid(self):
        """Edge kind does not matter for DAG validity."""
        graph = load(subjects("A", "B"), [soft("A", "B"), soft("B", "A")])
        self.assertFalse(graph.validate_dag().is_valid)


# =============================================================================
# TEST CYCLE PREVENTION
# =============================================================================

class TestWouldCreateCycle(unittest.TestCase):
    """Tests for checking a proposed prerequisite before it is added."""

    def setUp(self):
        # A -> B -> C
        self.graph = load(subjects("A", "B", "C", "X"), [hard("A", "B"), hard("B", "C")])

    def test_closing_edge_detected(self):
        """Making C a prerequisite of A would close A -> B -> C -> A."""
        self.assertTrue(self.graph.would_create_cycle("A", "C"))

    def test_direct_back_edge_detected(self):
        self.assertTrue(self.graph.would_create_cycle("A", "B"))

    def test_self_prerequisite_detected(self):
        self.assertTrue(self.graph.would_create_cycle("B", "B"))

    def test_forward_edges_allowed(self):
        self.assertFalse(self.graph.would_create_cycle("C", "A"))
        self.assertFalse(self.graph.would_create_cycle("X", "C"))
        self.assertFalse(self.graph.would_create_cycle("C", "X"))

    def test_unknown_ids_raise(self):
        with self.assertRaises(UnknownNodeError) as ctx:
            self.graph.would_create_cycle("A", "ghost")
        self.assertEqual(ctx.exception.node_ids, ("ghost",))


# =============================================================================
# TEST TOPOLOGICAL ORDER
# =============================================================================

class TestTopologicalOrder(unittest.TestCase):
    """Tests for prerequisite-first ordering."""

    def test_chain_order(self):
        graph = load(subjects("C", "B", "A"), [hard("A", "B"), hard("B", "C")])
        self.assertEqual(graph.topological_order(), ["A", "B", "C"])

    def test_ties_broken_by_code(self):
        nodes = [
            subject("s1", code="MATH101"),
            subject("s2", code="CS101"),
            subject("s3", code="CS201"),
        ]
        graph = load(nodes, [hard("s2", "s3")])
        self.assertEqual(graph.topological_order(), ["s2", "s3", "s1"])

    def test_order_respects_every_edge(self):
        nodes, edges = random_dag(5)
        graph = load(nodes, edges)

        position = {nid: i for i, nid in enumerate(graph.topological_order())}

        self.assertEqual(len(position), len(nodes))
        for edge in edges:
            self.assertLess(position[edge.source_id], position[edge.target_id])

    def test_cycle_raises(self):
        graph = load(subjects("A", "B"), [hard("A", "B"), hard("B", "A")])
        with self.assertRaises(GraphInvariantError):
            graph.topological_order()


if __name__ == "__main__":
    unittest.main()
