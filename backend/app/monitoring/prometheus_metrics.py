"""
Prometheus metrics for the practice space booking core.

Service timings come from the @measure_operation decorator on BaseService;
domain counters are bumped by the services at their state transitions.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

# Custom registry so tests and workers don't collide with the default one
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "practice_space_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "practice_space_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "practice_space_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

credit_ledger_entries_total = Counter(
    "practice_space_credit_ledger_entries_total",
    "Ledger entries written, by credit type and source",
    ["credit_type", "source"],
    registry=REGISTRY,
)

reservations_total = Counter(
    "practice_space_reservations_total",
    "Reservation lifecycle transitions",
    ["action"],  # created | updated | confirmed | cancelled
    registry=REGISTRY,
)

series_occurrences_total = Counter(
    "practice_space_series_occurrences_total",
    "Recurring series occurrences processed by materialization",
    ["outcome"],  # created | skipped
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records metrics and renders the exposition payload."""

    _lock: Lock = Lock()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'CreditService')
            operation: Operation name (e.g., 'spend')
            duration: Operation duration in seconds
            status: 'success' or 'error'
            error_type: Exception class name when status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_ledger_entry(credit_type: str, source: str) -> None:
        credit_ledger_entries_total.labels(credit_type=credit_type, source=source).inc()

    @staticmethod
    def inc_reservation(action: str) -> None:
        reservations_total.labels(action=action).inc()

    @staticmethod
    def inc_series_occurrences(outcome: str, count: int = 1) -> None:
        if count > 0:
            series_occurrences_total.labels(outcome=outcome).inc(count)

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
