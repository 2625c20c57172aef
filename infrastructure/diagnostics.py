"""
ENGINE DIAGNOSTICS - Logging setup and query timing

Fast diagnosis of runtime behaviour:
- configure_logging: one-call stdlib logging setup
- QueryDiagnostics: per-operation timings for engine queries
- Snapshot state lines with [CLEAN] / [WARN] markers (cycles present?)

Usage:
    from infrastructure.diagnostics import QueryDiagnostics, configure_logging

    configure_logging("INFO")
    dx = QueryDiagnostics()

    with dx.query("detect_conflicts"):
        report = graph.detect_conflicts(selected)

    dx.log_summary()
"""
import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_FORMAT) -> None:
    """
    Configure root logging for the engine.

    Unknown level names fall back to INFO.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=fmt)
    logging.getLogger("core").setLevel(numeric)
    logging.getLogger("infrastructure").setLevel(numeric)


# =============================================================================
# STATE MARKERS
# =============================================================================

class StateMarker:
    """Visual markers for diagnostic output."""
    CLEAN = "\033[92m[CLEAN]\033[0m"      # Green
    WARN = "\033[91m[WARN]\033[0m"        # Red

    # Non-colored versions for logs
    CLEAN_PLAIN = "[CLEAN]"
    WARN_PLAIN = "[WARN]"


# =============================================================================
# QUERY METRICS
# =============================================================================

@dataclass
class QueryMetric:
    """Timing for a single engine query."""
    name: str
    start_time: float
    end_time: Optional[float] = None
    success: bool = False
    error: Optional[str] = None
    snapshot_version: Optional[int] = None

    @property
    def duration_ms(self) -> float:
        if self.end_time is None:
            return 0
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.name,
            "duration_ms": round(self.duration_ms, 3),
            "success": self.success,
            "error": self.error,
            "snapshot_version": self.snapshot_version,
        }


@dataclass
class QueryStats:
    """Aggregate timings for one query name."""
    count: int = 0
    failures: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    samples: List[float] = field(default_factory=list)

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0


class QueryDiagnostics:
    """
    Collects per-query timings.

    Not a global: the owner (usually a CatalogGraph) creates one and
    discards it with itself.
    """

    def __init__(self, max_samples: int = 1000):
        self._lock = threading.Lock()
        self._stats: Dict[str, QueryStats] = {}
        self._max_samples = max_samples

    @contextmanager
    def query(self, name: str, snapshot_version: Optional[int] = None) -> Iterator[QueryMetric]:
        """
        Time a query. Exceptions are recorded and re-raised.

        Usage:
            with dx.query("ancestors_of", graph.version):
                graph.ancestors_of(node_id)
        """
        metric = QueryMetric(name=name, start_time=time.perf_counter(), snapshot_version=snapshot_version)
        try:
            yield metric
            metric.success = True
        except Exception as e:
            metric.error = f"{type(e).__name__}: {e}"
            raise
        finally:
            metric.end_time = time.perf_counter()
            self._record(metric)

    def _record(self, metric: QueryMetric) -> None:
        with self._lock:
            stats = self._stats.setdefault(metric.name, QueryStats())
            stats.count += 1
            stats.total_ms += metric.duration_ms
            stats.max_ms = max(stats.max_ms, metric.duration_ms)
            if not metric.success:
                stats.failures += 1
            if len(stats.samples) < self._max_samples:
                stats.samples.append(metric.duration_ms)

        if not metric.success:
            logger.warning(f"[QUERY] {metric.name}: {metric.duration_ms:.2f}ms [FAIL] - {metric.error}")
        else:
            logger.debug(f"[QUERY] {metric.name}: {metric.duration_ms:.3f}ms [OK]")

    def stats(self, name: str) -> QueryStats:
        with self._lock:
            return self._stats.get(name, QueryStats())

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """Aggregate stats per query name."""
        with self._lock:
            return {
                name: {
                    "count": s.count,
                    "failures": s.failures,
                    "mean_ms": round(s.mean_ms, 3),
                    "max_ms": round(s.max_ms, 3),
                }
                for name, s in self._stats.items()
            }

    def log_summary(self) -> None:
        for name, s in self.summary().items():
            logger.info(
                f"[QUERY] {name}: n={s['count']} mean={s['mean_ms']}ms "
                f"max={s['max_ms']}ms failures={s['failures']}"
            )

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


# =============================================================================
# SNAPSHOT STATE
# =============================================================================

def describe_snapshot(graph, use_color: bool = False) -> str:
    """One-line state of a snapshot, flagged [WARN] when cycles were seen."""
    cycles = graph.diagnostics.cycles
    if cycles:
        marker = StateMarker.WARN if use_color else StateMarker.WARN_PLAIN
        detail = f"{len(cycles)} cycle(s): " + "; ".join(" ".join(c) for c in cycles[:5])
    else:
        marker = StateMarker.CLEAN if use_color else StateMarker.CLEAN_PLAIN
        detail = "no cycles seen"
    return (
        f"{marker} snapshot v{graph.version}: {graph.node_count} subjects, "
        f"{graph.edge_count} prerequisites, {detail}"
    )
