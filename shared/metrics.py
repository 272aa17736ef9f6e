"""
Shared metrics configuration for the PoP Access service.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns a registry unless one is supplied, so several
    application instances (for example one per test) can coexist in a
    single process without duplicate-registration errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "pop_auth":
            self._setup_pop_auth_metrics()

    def _setup_pop_auth_metrics(self):
        """Set up PoP authentication metrics."""
        self._metrics["pop_auth_decisions_total"] = Counter(
            "pop_auth_decisions_total",
            "Total PoP authentication decisions",
            ["outcome"],
            registry=self.registry
        )

        # Kept apart from the decision counter so replays can be alerted on directly.
        self._metrics["pop_replays_detected_total"] = Counter(
            "pop_replays_detected_total",
            "Total PoP tokens rejected as replays",
            registry=self.registry
        )

        self._metrics["pop_verification_duration_seconds"] = Histogram(
            "pop_verification_duration_seconds",
            "PoP token authentication duration in seconds",
            registry=self.registry
        )

        self._metrics["pop_nonce_registry_size"] = Gauge(
            "pop_nonce_registry_size",
            "Number of nonces currently held by the replay guard",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_auth_decision(self, outcome: str, nonce_registry_size: Optional[int] = None):
        """Record the outcome of one PoP authentication attempt."""
        self._metrics["pop_auth_decisions_total"].labels(outcome=outcome).inc()
        if outcome == "REPLAY_DETECTED":
            self._metrics["pop_replays_detected_total"].inc()
        if nonce_registry_size is not None:
            self._metrics["pop_nonce_registry_size"].set(nonce_registry_size)

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            metric = self._metrics.get(operation_name)
            if metric is not None:
                (metric.labels(**labels) if labels else metric).observe(duration)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
