"""Tests for Prometheus metrics."""

from listings.observability.metrics import MetricsMiddleware, MetricsRegistry, NoOpMetric


class TestNoOpMetric:
    """Tests for disabled metrics."""

    def test_chaining(self) -> None:
        metric = NoOpMetric()
        assert metric.labels(category="search_results") is metric
        metric.inc()
        metric.observe(0.1)

    def test_uninitialized_registry_is_noop(self) -> None:
        registry = MetricsRegistry()
        assert isinstance(registry.cache_hits_total, NoOpMetric)
        assert registry.generate_latest() == b"# Metrics disabled\n"


class TestPathNormalization:
    """Tests for low-cardinality path labels."""

    def setup_method(self) -> None:
        self.middleware = MetricsMiddleware.__new__(MetricsMiddleware)

    def test_property_ids_collapsed(self) -> None:
        path = self.middleware._normalize_path("/api/properties/PROP0042")
        assert path == "/api/properties/{property_id}"

    def test_user_ids_collapsed(self) -> None:
        path = self.middleware._normalize_path("/api/properties/user/64f1c0ffee")
        assert path == "/api/properties/user/{user_id}"

    def test_static_paths_kept(self) -> None:
        assert self.middleware._normalize_path("/api/properties/search") == "/api/properties/search"


class TestInitializedRegistry:
    """Tests for a live registry."""

    def test_exposes_cache_counters(self) -> None:
        """Each registry owns its collectors, so several can coexist."""
        first, second = MetricsRegistry(), MetricsRegistry()
        first.initialize()
        second.initialize()

        first.cache_hits_total.labels(category="property_detail").inc()
        output = first.generate_latest().decode()

        assert 'listings_cache_hits_total{category="property_detail"} 1.0' in output
        assert "listings_cache_hits_total{" not in second.generate_latest().decode()

    def test_initialize_is_idempotent(self) -> None:
        registry = MetricsRegistry()
        registry.initialize()
        counter = registry.cache_misses_total
        registry.initialize()
        assert registry.cache_misses_total is counter
