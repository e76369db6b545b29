"""
Metrics Models

Defines the Pydantic model for per-run aggregate statistics.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TestMetrics(BaseModel):
    """
    Aggregate statistics for one test run.

    Derived from the run's accumulated results; recomputed on every new
    result and never stored independently of its run.
    """

    __test__ = False

    total_requests: int = Field(0, description="Total requests")
    successful_requests: int = Field(0, description="Successful requests")
    failed_requests: int = Field(0, description="Failed requests")

    average_response_time_ms: float = Field(0.0, description="Mean latency (ms)")
    p50: float = Field(0.0, description="50th percentile (nearest rank)")
    p90: float = Field(0.0, description="90th percentile (nearest rank)")
    p95: float = Field(0.0, description="95th percentile (nearest rank)")
    p99: float = Field(0.0, description="99th percentile (nearest rank)")
    max_response_time_ms: float = Field(0.0, description="Max latency (ms)")
    min_response_time_ms: float = Field(0.0, description="Min latency (ms)")

    current_rps: float = Field(0.0, description="Results in the trailing window")
    total_duration_ms: float = Field(0.0, description="Last minus first timestamp")

    errors_by_type: Dict[str, int] = Field(
        default_factory=dict, description="Failed results grouped by error"
    )

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def success_rate(self) -> float:
        """Calculate overall success rate (0.0-1.0)."""
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests

    @property
    def error_rate(self) -> float:
        """Calculate overall error rate (0.0-1.0)."""
        if self.total_requests == 0:
            return 0.0
        return self.failed_requests / self.total_requests

    def to_payload(self) -> Dict[str, Any]:
        """
        Convert metrics to a compact payload for subscribers.
        """
        return {
            "requests": {
                "total": self.total_requests,
                "successful": self.successful_requests,
                "failed": self.failed_requests,
                "current_per_sec": self.current_rps,
            },
            "latency": {
                "avg": self.average_response_time_ms,
                "p50": self.p50,
                "p90": self.p90,
                "p95": self.p95,
                "p99": self.p99,
                "min": self.min_response_time_ms,
                "max": self.max_response_time_ms,
            },
            "errors": {
                "count": self.failed_requests,
                "rate": self.error_rate,
                "by_type": dict(self.errors_by_type),
            },
            "duration_ms": self.total_duration_ms,
        }
