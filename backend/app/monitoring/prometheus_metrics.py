"""
Prometheus metrics for the BookOn settlement backend.

Service timings come from the @measure_operation decorator. Settlement
counters track money movement (refunds, credits) and the TFC sweep so
dashboards can alert on spikes in auto-cancellations or failed refunds.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry so tests can import the module repeatedly
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "bookon_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

service_operation_duration_seconds = Histogram(
    "bookon_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "bookon_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "bookon_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Settlement counters
refunds_total = Counter(
    "bookon_refunds_total",
    "Cash refunds by terminal status",
    ["status"],  # pending | processed | failed
    registry=REGISTRY,
)

credits_issued_pence_total = Counter(
    "bookon_credits_issued_pence_total",
    "Wallet credit issued, in pence",
    ["source"],
    registry=REGISTRY,
)

credits_used_pence_total = Counter(
    "bookon_credits_used_pence_total",
    "Wallet credit consumed, in pence",
    registry=REGISTRY,
)

credits_expired_total = Counter(
    "bookon_credits_expired_total",
    "Wallet credits flipped to expired by the sweep",
    registry=REGISTRY,
)

tfc_transitions_total = Counter(
    "bookon_tfc_transitions_total",
    "TFC payment status transitions",
    ["to_status", "trigger"],  # trigger: admin | deadline
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        PrometheusMetrics._invalidate_cache()

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
            service: Service name (e.g., 'WalletService')
            operation: Operation/method name (e.g., 'use_credits')
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
        PrometheusMetrics._invalidate_cache()

    # Domain helpers
    @staticmethod
    def inc_refund(status: str) -> None:
        refunds_total.labels(status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def add_credits_issued(source: str, amount_pence: int) -> None:
        if amount_pence > 0:
            credits_issued_pence_total.labels(source=source).inc(amount_pence)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def add_credits_used(amount_pence: int) -> None:
        if amount_pence > 0:
            credits_used_pence_total.inc(amount_pence)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_credits_expired(count: int) -> None:
        if count > 0:
            credits_expired_total.inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_tfc_transition(to_status: str, trigger: str) -> None:
        """Count a TFC booking leaving pending_payment."""
        tfc_transitions_total.labels(to_status=to_status, trigger=trigger).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > PrometheusMetrics._cache_ttl_seconds:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
