"""Tests for the in-process metrics collector."""

from storefront_search.metrics import MetricsCollector


class TestMetricsCollector:

    def test_percentiles_need_enough_samples(self):
        metrics = MetricsCollector(min_samples=10)
        for ms in range(5):
            metrics.record_latency("search_products", float(ms))
        assert metrics.get_percentile("search_products", 50) is None

    def test_percentiles(self):
        metrics = MetricsCollector()
        for ms in range(1, 101):
            metrics.record_latency("search_products", float(ms))
        assert metrics.get_percentile("search_products", 50) == 51.0
        assert metrics.get_percentile("search_products", 99) == 100.0

    def test_window_drops_old_samples(self):
        metrics = MetricsCollector(window_size=10, min_samples=1)
        for ms in range(100):
            metrics.record_latency("search_products", float(ms))
        assert len(metrics.latencies["search_products"]) == 10
        assert metrics.request_counts["search_products"] == 100

    def test_cache_hit_rate(self):
        metrics = MetricsCollector()
        assert metrics.get_cache_hit_rate() == 0.0
        metrics.record_cache_hit()
        metrics.record_cache_hit()
        metrics.record_cache_miss()
        metrics.record_cache_hit()
        assert metrics.get_cache_hit_rate() == 75.0

    def test_summary(self):
        metrics = MetricsCollector(min_samples=1)
        metrics.record_latency("search_products", 12.0)
        metrics.record_error("search_products")
        summary = metrics.get_summary()
        endpoint = summary["endpoints"]["search_products"]
        assert endpoint["total_requests"] == 1
        assert endpoint["error_rate_pct"] == 100.0
        assert endpoint["latency_p50_ms"] == 12.0
        assert summary["cache"]["hit_rate_pct"] == 0.0

    def test_reset(self):
        metrics = MetricsCollector()
        metrics.record_latency("search_products", 1.0)
        metrics.record_cache_hit()
        metrics.reset()
        assert metrics.get_summary()["endpoints"] == {}
        assert metrics.cache_hits == 0
