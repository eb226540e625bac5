"""
Prometheus metrics module for the studio booking engine.

Service timings come from the @measure_operation decorator; the booking
counters are fed directly by the ledger and the conflict detector.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "studio_engine_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "studio_engine_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "studio_engine_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain counters
bookings_total = Counter(
    "studio_engine_bookings_total",
    "Class registrations created, by resulting status",
    ["status"],  # booked | waitlist
    registry=REGISTRY,
)

waitlist_promotions_total = Counter(
    "studio_engine_waitlist_promotions_total",
    "Waitlisted registrations promoted to booked",
    registry=REGISTRY,
)

conflicts_detected_total = Counter(
    "studio_engine_conflicts_detected_total",
    "Overlapping bookings reported by the conflict detector",
    ["kind"],  # individual | class
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

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
            service: Service name (e.g., 'BookingLedger')
            operation: Operation/method name (e.g., 'create_registration')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def inc_booking(status: str) -> None:
        bookings_total.labels(status=status).inc()

    @staticmethod
    def inc_waitlist_promotion() -> None:
        waitlist_promotions_total.inc()

    @staticmethod
    def inc_conflict(kind: str) -> None:
        conflicts_detected_total.labels(kind=kind).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
