"""
Metrics Aggregator

Maintains per-run latency and throughput statistics from the stream of
``RequestResult``s. Results may arrive out of order; latencies and timestamps
are kept sorted so each update is an insertion plus a linear summary.
"""

import bisect
import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Dict, Iterable, List, Optional

from stressbench.config import settings
from stressbench.models import RequestResult, TestMetrics

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_TYPE = "Unknown Error"
PERCENTILES = (50, 90, 95, 99)


def percentile(sorted_values: List[float], p: float) -> float:
    """
    Nearest-rank percentile of an ascending list.

    Uses index ``floor(p / 100 * n)`` clamped to ``n - 1``.
    """
    if not sorted_values:
        return 0.0
    n = len(sorted_values)
    idx = min(math.floor(p / 100 * n), n - 1)
    return float(sorted_values[idx])


def _epoch_ms(ts: datetime) -> float:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.timestamp() * 1000.0


@dataclass
class _RunAccumulator:
    latencies: List[float] = field(default_factory=list)
    timestamps_ms: List[float] = field(default_factory=list)
    successful: int = 0
    failed: int = 0
    errors_by_type: Dict[str, int] = field(default_factory=dict)

    def add(self, result: RequestResult) -> None:
        bisect.insort(self.latencies, float(result.duration_ms))
        bisect.insort(self.timestamps_ms, _epoch_ms(result.timestamp))
        if result.success:
            self.successful += 1
        else:
            self.failed += 1
            key = result.error or UNKNOWN_ERROR_TYPE
            self.errors_by_type[key] = self.errors_by_type.get(key, 0) + 1

    def snapshot(self, now: datetime, window_ms: float) -> Optional[TestMetrics]:
        total = len(self.latencies)
        if total == 0:
            return None

        now_ms = _epoch_ms(now)
        in_window = len(self.timestamps_ms) - bisect.bisect_left(
            self.timestamps_ms, now_ms - window_ms
        )

        return TestMetrics(
            total_requests=total,
            successful_requests=self.successful,
            failed_requests=self.failed,
            average_response_time_ms=math.fsum(self.latencies) / total,
            p50=percentile(self.latencies, 50),
            p90=percentile(self.latencies, 90),
            p95=percentile(self.latencies, 95),
            p99=percentile(self.latencies, 99),
            max_response_time_ms=self.latencies[-1],
            min_response_time_ms=self.latencies[0],
            current_rps=in_window * 1000.0 / window_ms,
            total_duration_ms=(
                self.timestamps_ms[-1] - self.timestamps_ms[0] if total > 1 else 0.0
            ),
            errors_by_type=dict(self.errors_by_type),
        )


class MetricsAggregator:
    """
    Incremental per-run metrics.

    ``on_result`` produces exactly what ``compute_metrics`` would produce from
    scratch over the same results.
    """

    def __init__(self, window_ms: Optional[float] = None):
        """
        Args:
            window_ms: Trailing window for ``current_rps`` (defaults to
                ``settings.RPS_WINDOW_MS``)
        """
        self.window_ms = float(window_ms or settings.RPS_WINDOW_MS)
        self._runs: Dict[str, _RunAccumulator] = {}
        self._latest: Dict[str, TestMetrics] = {}

    def on_result(
        self, run_id: str, result: RequestResult, now: Optional[datetime] = None
    ) -> TestMetrics:
        acc = self._runs.setdefault(run_id, _RunAccumulator())
        acc.add(result)
        metrics = acc.snapshot(now or datetime.now(UTC), self.window_ms)
        self._latest[run_id] = metrics
        return metrics

    def compute_metrics(
        self, results: Iterable[RequestResult], now: Optional[datetime] = None
    ) -> Optional[TestMetrics]:
        """Compute metrics from scratch; None for an empty result set."""
        acc = _RunAccumulator()
        for result in results:
            acc.add(result)
        return acc.snapshot(now or datetime.now(UTC), self.window_ms)

    def get_metrics(self, run_id: str) -> Optional[TestMetrics]:
        return self._latest.get(run_id)

    def clear(self, run_id: str) -> None:
        self._runs.pop(run_id, None)
        self._latest.pop(run_id, None)
