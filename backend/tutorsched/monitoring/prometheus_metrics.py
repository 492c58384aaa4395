"""
Prometheus metrics for the scheduling engine.

Service timings come from the @measure_operation decorator; the domain
counters below are incremented by the generation, reset and bulk services.
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
    "tutorsched_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_operations_total = Counter(
    "tutorsched_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorsched_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

sessions_committed_total = Counter(
    "tutorsched_sessions_committed_total",
    "Sessions handled by the commit engine",
    ["outcome"],  # created | skipped
    registry=REGISTRY,
)

commit_shortfall_total = Counter(
    "tutorsched_commit_shortfall_total",
    "Rows reclassified from created to skipped after a concurrent insert",
    registry=REGISTRY,
)

batch_conflicts_total = Counter(
    "tutorsched_batch_conflicts_total",
    "In-batch overlaps between recurrence rules",
    registry=REGISTRY,
)

sessions_deleted_total = Counter(
    "tutorsched_sessions_deleted_total",
    "Sessions removed by scoped resets",
    registry=REGISTRY,
)

sessions_transitioned_total = Counter(
    "tutorsched_sessions_transitioned_total",
    "Sessions moved by bulk transitions",
    ["reason_code"],
    registry=REGISTRY,
)

safety_gate_denials_total = Counter(
    "tutorsched_safety_gate_denials_total",
    "Requests rejected by the safety gate",
    ["environment", "reason"],
    registry=REGISTRY,
)

audit_writes_total = Counter(
    "tutorsched_audit_writes_total",
    "Audit rows persisted",
    ["action", "result"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Thin facade so callers do not depend on individual metric objects."""

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
            service: Service name (e.g., 'ScheduleGenerationService')
            operation: Operation/method name (e.g., 'generate_schedule')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(duration)
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_commit(created: int, skipped: int, shortfall: int, conflicts: int) -> None:
        sessions_committed_total.labels(outcome="created").inc(created)
        sessions_committed_total.labels(outcome="skipped").inc(skipped)
        if shortfall:
            commit_shortfall_total.inc(shortfall)
        if conflicts:
            batch_conflicts_total.inc(conflicts)

    @staticmethod
    def record_reset(deleted: int) -> None:
        sessions_deleted_total.inc(deleted)

    @staticmethod
    def record_transition(reason_code: str, count: int) -> None:
        sessions_transitioned_total.labels(reason_code=reason_code).inc(count)

    @staticmethod
    def record_gate_denial(environment: str, reason: str) -> None:
        safety_gate_denials_total.labels(environment=environment, reason=reason).inc()

    @staticmethod
    def record_audit_write(action: str, result: str) -> None:
        audit_writes_total.labels(action=action, result=result).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
