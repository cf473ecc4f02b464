"""Prometheus metrics for tenant resolution and routing."""

from prometheus_client import Counter, Gauge, Histogram

tenant_resolutions_total = Counter(
    "tenant_resolutions_total",
    "Tenant pipeline outcomes",
    ["outcome"],
)

tenant_cache_lookups_total = Counter(
    "tenant_cache_lookups_total",
    "Tenant directory cache lookups",
    ["result"],
)

tenant_binding_seconds = Histogram(
    "tenant_binding_seconds",
    "Time a request spent bound to a tenant database",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)

tenant_pool_engines = Gauge(
    "tenant_pool_engines",
    "Live per-tenant database engines",
)


class PrometheusTenancyMetrics:
    """Prometheus-based tenancy metrics implementation."""

    def inc_outcome(self, outcome: str) -> None:
        """Increment pipeline outcome counter."""
        tenant_resolutions_total.labels(outcome=outcome).inc()

    def inc_cache_lookup(self, result: str) -> None:
        """Increment cache lookup counter (hit, negative_hit, miss, error)."""
        tenant_cache_lookups_total.labels(result=result).inc()

    def observe_binding(self, seconds: float) -> None:
        """Record time spent tenant-bound."""
        tenant_binding_seconds.observe(seconds)

    def set_pool_size(self, size: int) -> None:
        """Record number of pooled tenant engines."""
        tenant_pool_engines.set(size)
