"""
Results Store

Keeps test runs, their request results and derived metrics for one
application session, and publishes change payloads to subscriber queues.

All mutating methods are synchronous so each append and metrics update is
atomic with respect to the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from stressbench.config import settings
from stressbench.core.metrics_aggregator import MetricsAggregator
from stressbench.models import RequestResult, TestMetrics, TestRun, TestStatus

logger = logging.getLogger(__name__)


class ResultStore:
    """In-memory store of test runs, results and metrics."""

    def __init__(
        self,
        aggregator: Optional[MetricsAggregator] = None,
        *,
        queue_size: Optional[int] = None,
    ) -> None:
        self._aggregator = aggregator or MetricsAggregator()
        self._queue_size = queue_size or settings.SUBSCRIBER_QUEUE_SIZE
        self._runs: dict[str, TestRun] = {}
        self._results: dict[str, list[RequestResult]] = {}
        # Queue -> run id filter (None receives every run).
        self._subscribers: dict[asyncio.Queue, Optional[str]] = {}

    # Runs

    def add_test_run(self, run: TestRun) -> TestRun:
        if run.id in self._runs:
            raise ValueError(f"Test run {run.id} already exists")
        self._runs[run.id] = run
        self._results[run.id] = []
        logger.info("Test run %s (%s) added", run.id, run.name)
        self._publish(run.id, {"kind": "run_added", "run": self._dump(run)})
        return run

    def update_test_run(
        self,
        run_id: str,
        status: TestStatus,
        *,
        failure_reason: Optional[str] = None,
    ) -> TestRun:
        """
        Move a run to a terminal status.

        Raises:
            KeyError: Unknown run id
            RunStateError: The run already finished
        """
        run = self._require(run_id)
        updated = run.finished(status, failure_reason=failure_reason)
        self._runs[run_id] = updated
        logger.info("Test run %s -> %s", run_id, updated.status)
        self._publish(run_id, {"kind": "run_updated", "run": self._dump(updated)})
        return updated

    def remove_test_run(self, run_id: str) -> TestRun:
        run = self._require(run_id)
        del self._runs[run_id]
        self._results.pop(run_id, None)
        self._aggregator.clear(run_id)
        self._publish(run_id, {"kind": "run_removed"})
        return run

    def get_run(self, run_id: str) -> Optional[TestRun]:
        return self._runs.get(run_id)

    def list_runs(self) -> list[TestRun]:
        return sorted(self._runs.values(), key=lambda r: r.start_time, reverse=True)

    # Results

    def add_result(self, run_id: str, result: RequestResult) -> TestMetrics:
        results = self._results.get(run_id)
        if results is None:
            raise KeyError(run_id)
        results.append(result)
        metrics = self._aggregator.on_result(run_id, result)
        self._publish(
            run_id,
            {
                "kind": "result_added",
                "result": result.model_dump(mode="json", by_alias=True),
                "metrics": metrics.to_payload(),
            },
        )
        return metrics

    def clear_results(self, run_id: str) -> None:
        self._require(run_id)
        self._results[run_id] = []
        self._aggregator.clear(run_id)
        self._publish(run_id, {"kind": "results_cleared"})

    def get_results(self, run_id: str) -> list[RequestResult]:
        return list(self._results.get(run_id, []))

    def get_metrics(self, run_id: str) -> Optional[TestMetrics]:
        return self._aggregator.get_metrics(run_id)

    # Change notification

    def subscribe(self, run_id: Optional[str] = None) -> asyncio.Queue:
        """
        Register a bounded queue for change payloads.

        Args:
            run_id: Only receive payloads for this run (None for all runs)
        """
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers[q] = run_id
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.pop(q, None)

    def _publish(self, run_id: str, payload: dict[str, Any]) -> None:
        payload = {"run_id": run_id, **payload}
        for q, wanted in list(self._subscribers.items()):
            if wanted is not None and wanted != run_id:
                continue
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                # Drop if a subscriber can't keep up.
                continue

    def _require(self, run_id: str) -> TestRun:
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(run_id)
        return run

    @staticmethod
    def _dump(run: TestRun) -> dict[str, Any]:
        return run.model_dump(mode="json", by_alias=True)
