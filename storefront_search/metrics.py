"""
In-process request metrics for the search API.

Tracks:
- Latency percentiles (p50, p95, p99) per endpoint
- Result cache hit rate
- Request and error counts per endpoint
"""

import statistics
import threading
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Deque, Dict, Optional


class MetricsCollector:
    """
    Sliding-window metrics collector.

    Percentiles are computed over the last ``window_size`` samples of each
    endpoint and need at least ``min_samples`` to be reported.
    """

    def __init__(self, window_size: int = 1000, min_samples: int = 10):
        self.window_size = window_size
        self.min_samples = min_samples
        self._lock = threading.Lock()

        self.latencies: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=window_size))
        self.cache_hits = 0
        self.cache_misses = 0
        self.request_counts: Dict[str, int] = defaultdict(int)
        self.error_counts: Dict[str, int] = defaultdict(int)

        self.start_time = datetime.now(timezone.utc)
        self.last_reset = self.start_time

    def record_latency(self, endpoint: str, latency_ms: float):
        """Record a latency sample for an endpoint."""
        with self._lock:
            self.latencies[endpoint].append(latency_ms)
            self.request_counts[endpoint] += 1

    def record_cache_hit(self):
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self):
        with self._lock:
            self.cache_misses += 1

    def record_error(self, endpoint: str):
        with self._lock:
            self.error_counts[endpoint] += 1

    def get_percentile(self, endpoint: str, percentile: float) -> Optional[float]:
        """
        Get a latency percentile for an endpoint.

        Args:
            endpoint: Endpoint name
            percentile: Percentile (0-100)

        Returns:
            Latency in ms, or None if insufficient data
        """
        samples = self.latencies.get(endpoint)
        if not samples or len(samples) < self.min_samples:
            return None
        values = sorted(samples)
        index = min(int(len(values) * (percentile / 100.0)), len(values) - 1)
        return values[index]

    def get_cache_hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return (self.cache_hits / total) * 100.0

    def get_error_rate(self, endpoint: str) -> float:
        total_requests = self.request_counts.get(endpoint, 0)
        if total_requests == 0:
            return 0.0
        return (self.error_counts.get(endpoint, 0) / total_requests) * 100.0

    def get_summary(self) -> Dict:
        """Summary of all metrics, keyed by endpoint."""
        uptime_seconds = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        summary = {
            "uptime_seconds": uptime_seconds,
            "cache": {
                "hit_rate_pct": round(self.get_cache_hit_rate(), 2),
                "total_hits": self.cache_hits,
                "total_misses": self.cache_misses,
            },
            "endpoints": {},
        }

        for endpoint in list(self.request_counts.keys()):
            endpoint_metrics = {
                "total_requests": self.request_counts[endpoint],
                "total_errors": self.error_counts.get(endpoint, 0),
                "error_rate_pct": round(self.get_error_rate(endpoint), 2),
            }
            for label, pct in (("p50", 50), ("p95", 95), ("p99", 99)):
                value = self.get_percentile(endpoint, pct)
                if value is not None:
                    endpoint_metrics[f"latency_{label}_ms"] = round(value, 2)
            if self.latencies[endpoint]:
                endpoint_metrics["latency_avg_ms"] = round(statistics.mean(self.latencies[endpoint]), 2)
            summary["endpoints"][endpoint] = endpoint_metrics

        return summary

    def reset(self):
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.latencies.clear()
            self.cache_hits = 0
            self.cache_misses = 0
            self.request_counts.clear()
            self.error_counts.clear()
            self.last_reset = datetime.now(timezone.utc)


# Global metrics collector instance
metrics_collector = MetricsCollector()


def record_request_metrics(
    endpoint: str,
    latency_ms: float,
    cache_hit: Optional[bool] = None,
    is_error: bool = False,
):
    """
    Record all metrics for one request.

    Args:
        endpoint: Endpoint name (e.g. "search_products")
        latency_ms: Total request latency in milliseconds
        cache_hit: True/False when the result cache was consulted, None otherwise
        is_error: Whether this request resulted in an error
    """
    metrics_collector.record_latency(endpoint, latency_ms)
    if cache_hit is True:
        metrics_collector.record_cache_hit()
    elif cache_hit is False:
        metrics_collector.record_cache_miss()
    if is_error:
        metrics_collector.record_error(endpoint)
