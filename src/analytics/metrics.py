"""Analytics operation metrics — runs, latency, degraded results, failures.

Counters accumulate during runtime and are read by the health route.
"""

import time
from dataclasses import dataclass, field
from threading import Lock


@dataclass
class OperationMetrics:
    """Metrics for a single public operation."""

    total_runs: int = 0
    total_latency_ms: float = 0.0
    max_latency_ms: float = 0.0
    cached: int = 0
    degraded: int = 0
    failures: dict[str, int] = field(default_factory=dict)  # error class → count

    @property
    def avg_latency_ms(self) -> float:
        if self.total_runs == 0:
            return 0.0
        return self.total_latency_ms / self.total_runs

    @property
    def total_failures(self) -> int:
        return sum(self.failures.values())


class AnalyticsMetrics:
    """Global metrics accumulator for the analytics service.

    Guarded by a lock because the health route may read while requests write.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._operations: dict[str, OperationMetrics] = {}
        self._start_time: float = time.monotonic()

    def _get_operation(self, name: str) -> OperationMetrics:
        if name not in self._operations:
            self._operations[name] = OperationMetrics()
        return self._operations[name]

    def record_run(
        self,
        operation: str,
        latency_ms: float,
        *,
        cached: bool = False,
        degraded: bool = False,
    ) -> None:
        """Record a completed operation."""
        with self._lock:
            om = self._get_operation(operation)
            om.total_runs += 1
            om.total_latency_ms += latency_ms
            if latency_ms > om.max_latency_ms:
                om.max_latency_ms = latency_ms
            if cached:
                om.cached += 1
            if degraded:
                om.degraded += 1

    def record_failure(self, operation: str, error: BaseException) -> None:
        with self._lock:
            om = self._get_operation(operation)
            name = type(error).__name__
            om.failures[name] = om.failures.get(name, 0) + 1

    def get_summary(self) -> dict:
        """Return a snapshot of all metrics."""
        with self._lock:
            summary: dict = {
                "uptime_sec": round(time.monotonic() - self._start_time),
                "operations": {},
            }
            for name, om in self._operations.items():
                summary["operations"][name] = {
                    "runs": om.total_runs,
                    "avg_latency_ms": round(om.avg_latency_ms),
                    "max_latency_ms": round(om.max_latency_ms),
                    "cached": om.cached,
                    "degraded": om.degraded,
                    "failures": dict(om.failures),
                }
            return summary

    def format_stats_line(self) -> str:
        """One-line summary for periodic logging."""
        with self._lock:
            runs = sum(om.total_runs for om in self._operations.values())
            failures = sum(om.total_failures for om in self._operations.values())
            degraded = sum(om.degraded for om in self._operations.values())
            return f"runs={runs} degraded={degraded} failures={failures}"


# Global singleton, shared by the service and the health route
metrics = AnalyticsMetrics()
