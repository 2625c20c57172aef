"""
PREREQUISITE ENGINE PERFORMANCE SUITE
=====================================

Interactive queries run on every selection change and pointer move, so
they must stay well inside a frame budget for catalogs of a few thousand
subjects.

Performance Targets (generous, CI machines vary):
- Full closure precompute on 3000 subjects < 5000ms
- Cached hover (highlight_set) < 1ms mean
- detect_conflicts on 200 candidates < 1000ms (warm caches)
- assign_layers on 3000 subjects < 500ms

Run with: pytest tests/performance/test_query_speed.py -v
"""
import statistics
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple

import pytest

from catalog_builders import random_dag
from core.graph_db import load


# =============================================================================
# BENCHMARK UTILITIES
# =============================================================================

@dataclass
class BenchmarkResult:
    """Result of a performance benchmark."""
    name: str
    target_ms: float
    actual_ms: float
    std_dev_ms: float
    iterations: int
    scale: int

    @property
    def passed(self) -> bool:
        return self.actual_ms < self.target_ms

    def __str__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return (
            f"[{status}] {self.name} (n={self.scale})\n"
            f"       Target: <{self.target_ms:.1f}ms | "
            f"Actual: {self.actual_ms:.2f}ms +/- {self.std_dev_ms:.2f}ms | "
            f"Iterations: {self.iterations}"
        )


def benchmark(func: Callable[[], Any], iterations: int = 10, warmup: int = 2) -> Tuple[float, float]:
    """Run `func` repeatedly and return (mean_ms, std_ms)."""
    for _ in range(warmup):
        func()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        func()
        times.append((time.perf_counter() - start) * 1000)

    return statistics.mean(times), statistics.stdev(times) if len(times) > 1 else 0.0


@pytest.fixture(scope="module")
def large_catalog():
    """3000 subjects, about 2 prerequisites each."""
    return random_dag(seed=2024, size=3000, density=0.0015)


# =============================================================================
# QUERY SPEED
# =============================================================================

def test_closure_precompute_speed(large_catalog):
    nodes, edges = large_catalog

    def run():
        load(nodes, edges).ancestors.precompute()

    mean, std = benchmark(run, iterations=2, warmup=0)
    result = BenchmarkResult("closure precompute", 5000, mean, std, 2, len(nodes))
    print(f"\n{result}")
    assert result.passed, str(result)


def test_cached_hover_speed(large_catalog):
    nodes, edges = large_catalog
    graph = load(nodes, edges)
    ids = [n.id for n in nodes[:500]]
    for nid in ids:
        graph.highlight_set(nid)

    def run():
        for nid in ids:
            graph.highlight_set(nid)

    mean, std = benchmark(run, iterations=10)
    result = BenchmarkResult("cached highlight_set", 1.0, mean / len(ids), std / len(ids), 10, len(ids))
    print(f"\n{result}")
    assert result.passed, str(result)


def test_conflict_detection_speed(large_catalog):
    nodes, edges = large_catalog
    graph = load(nodes, edges)
    graph.hard_ancestors.precompute()
    candidates = [n.id for n in nodes[::15]]

    mean, std = benchmark(lambda: graph.detect_conflicts(candidates))
    result = BenchmarkResult("detect_conflicts", 1000, mean, std, 10, len(candidates))
    print(f"\n{result}")
    assert result.passed, str(result)


def test_layering_speed(large_catalog):
    nodes, edges = large_catalog
    graph = load(nodes, edges)

    mean, std = benchmark(graph.assign_layers, iterations=5)
    result = BenchmarkResult("assign_layers", 500, mean, std, 5, len(nodes))
    print(f"\n{result}")
    assert result.passed, str(result)
