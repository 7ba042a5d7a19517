"""
Prometheus Metrics

Counters and timings for scheduled actions and product sync batches.
"""

from contextlib import contextmanager
import time

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


# Singleton metrics instance
_metrics: "Metrics | None" = None


class Metrics:
    """
    Prometheus metrics for the jobs worker.

    Tracks:
    - Actions executed / failed per hook
    - Actions rescheduled after a sync failure
    - Products synced / rejected
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        registry = registry or REGISTRY

        self.actions_total = Counter(
            "gla_actions_total",
            "Total scheduled actions executed",
            ["hook", "status"],
            registry=registry,
        )

        self.action_duration_seconds = Histogram(
            "gla_action_duration_seconds",
            "Scheduled action duration in seconds",
            ["hook"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
            registry=registry,
        )

        self.actions_rescheduled_total = Counter(
            "gla_actions_rescheduled_total",
            "Actions rescheduled after a failed run",
            ["hook"],
            registry=registry,
        )

        self.products_synced_total = Counter(
            "gla_products_synced_total",
            "Products sent to Merchant Center",
            ["status"],
            registry=registry,
        )

    def track_action(self, hook: str, status: str, duration: float) -> None:
        self.actions_total.labels(hook=hook, status=status).inc()
        self.action_duration_seconds.labels(hook=hook).observe(duration)

    def track_reschedule(self, hook: str) -> None:
        self.actions_rescheduled_total.labels(hook=hook).inc()

    def track_products(self, status: str, count: int) -> None:
        if count:
            self.products_synced_total.labels(status=status).inc(count)

    @contextmanager
    def time_action(self, hook: str):
        """Time an action; records `failed` if the body raises."""
        start = time.perf_counter()
        status = "complete"
        try:
            yield
        except Exception:
            status = "failed"
            raise
        finally:
            self.track_action(hook, status, time.perf_counter() - start)


def get_metrics() -> Metrics:
    """Get or create the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
