"""
Prometheus metrics support for rate limit stores.

Tracks store operation counts and latency, refresh outcomes and corrupt
entries so the cost of refresh-on-read is visible in production.
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)


class StoreMetrics:
    """
    Prometheus metrics collector for rate limit stores.

    Usage:
        from prometheus_client import generate_latest
        from ratestore import RedisStore, StoreConfig
        from ratestore.metrics import StoreMetrics

        metrics = StoreMetrics()
        store = await RedisStore.from_config(StoreConfig(), metrics=metrics)

        # Expose generate_latest() from your metrics endpoint
    """

    def __init__(
        self,
        namespace: str = "ratestore",
        enabled: bool = True,
        registry: Optional[CollectorRegistry] = None,
    ):
        """
        Initialize metrics collector.

        Args:
            namespace: Prometheus namespace for metrics
            enabled: Whether metrics collection is enabled
            registry: Registry to register with (defaults to the global one)
        """
        self.namespace = namespace
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        if not self.enabled:
            logger.info("Store metrics disabled by configuration")
            return

        self._init_metrics()
        logger.info(f"Store metrics initialized with namespace '{namespace}'")

    def _init_metrics(self) -> None:
        """Initialize Prometheus metrics."""
        self.operations_total = Counter(
            f"{self.namespace}_store_operations_total",
            "Total number of store operations",
            ["operation", "status"],  # status: success, error
            registry=self.registry,
        )

        self.operation_duration = Histogram(
            f"{self.namespace}_store_operation_duration_seconds",
            "Time spent on store operations",
            ["operation"],
            buckets=(0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
            registry=self.registry,
        )

        self.refresh_total = Counter(
            f"{self.namespace}_store_refresh_total",
            "Outcomes of the refresh performed after a successful read",
            ["result"],  # result: written, skipped, conflict
            registry=self.registry,
        )

        self.corrupt_entries_total = Counter(
            f"{self.namespace}_store_corrupt_entries_total",
            "Total number of stored entries that failed to decode",
            registry=self.registry,
        )

    @contextmanager
    def track_operation(self, operation: str) -> Generator[None, None, None]:
        """
        Context manager to track store operation duration and status.

        Args:
            operation: Operation name ("get", "put" or "reset")

        Usage:
            with metrics.track_operation("get"):
                record = await store.get("1.2.3.4")
        """
        if not self.enabled:
            yield
            return

        start_time = time.perf_counter()
        status = "success"
        try:
            yield
        except Exception:
            status = "error"
            raise
        finally:
            duration = time.perf_counter() - start_time
            self.operations_total.labels(operation=operation, status=status).inc()
            self.operation_duration.labels(operation=operation).observe(duration)

    def record_refresh(self, result: str) -> None:
        """
        Record the outcome of a read refresh.

        Args:
            result: "written", "skipped" (refresh disabled) or "conflict"
                    (compare-and-swap lost to a concurrent writer)
        """
        if not self.enabled:
            return

        self.refresh_total.labels(result=result).inc()

    def record_corrupt_entry(self) -> None:
        """Record a stored entry that failed to decode."""
        if not self.enabled:
            return

        self.corrupt_entries_total.inc()


@contextmanager
def track(metrics: Optional[StoreMetrics], operation: str) -> Generator[None, None, None]:
    """Track ``operation`` on ``metrics`` when a collector is configured."""
    if metrics is None:
        yield
        return

    with metrics.track_operation(operation):
        yield
