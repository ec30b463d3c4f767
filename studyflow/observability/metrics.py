"""
Metrics Collection with Prometheus.

Exposes progression and service metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from studyflow.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class StudyFlowMetrics:
    """
    Centralized metrics for the progression API.

    Covers:
    - HTTP requests (rate, duration)
    - Sessions and XP awarded, level ups
    - Purchases by outcome
    - Chat gate decisions
    - Database operations and persistence failures
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info("studyflow_service", "Service information")
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "studyflow_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "studyflow_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )

        self.http_requests_in_progress = Gauge(
            "studyflow_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Progression Metrics
        # ====================================================================
        self.sessions_completed_total = Counter(
            "studyflow_sessions_completed_total",
            "Focus sessions applied to a ledger",
        )

        self.xp_awarded = Histogram(
            "studyflow_xp_awarded",
            "XP awarded per session",
            buckets=(10, 50, 100, 250, 300, 500, 675, 1000, 2500),
        )

        self.level_ups_total = Counter(
            "studyflow_level_ups_total",
            "Sessions that crossed a level boundary",
        )

        self.purchases_total = Counter(
            "studyflow_purchases_total",
            "Store purchase attempts by outcome",
            [MetricLabels.OUTCOME],
        )

        self.chat_gate_checks_total = Counter(
            "studyflow_chat_gate_checks_total",
            "Daily chat quota checks",
            ["allowed", "privileged"],
        )

        self.profiles_created_total = Counter(
            "studyflow_profiles_created_total",
            "Default profiles created for new users",
        )

        # ====================================================================
        # Database Metrics
        # ====================================================================
        self.db_queries_total = Counter(
            "studyflow_db_queries_total",
            "Total database queries",
            [MetricLabels.OPERATION, "success"],
        )

        self.db_query_duration_seconds = Histogram(
            "studyflow_db_query_duration_seconds",
            "Database query duration in seconds",
            [MetricLabels.OPERATION],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
        )

        self.persistence_failures_total = Counter(
            "studyflow_persistence_failures_total",
            "Writes that failed after an optimistic ledger update",
            [MetricLabels.OPERATION],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "studyflow_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_session(self, xp_awarded: int, leveled_up: bool) -> None:
        """Record a completed session."""
        self.sessions_completed_total.inc()
        self.xp_awarded.observe(xp_awarded)
        if leveled_up:
            self.level_ups_total.inc()

    def record_purchase(self, outcome: str) -> None:
        """Record a purchase attempt (success, already_owned, insufficient_funds)."""
        self.purchases_total.labels(outcome=outcome).inc()

    def record_chat_gate(self, allowed: bool, privileged: bool) -> None:
        """Record a chat quota decision."""
        self.chat_gate_checks_total.labels(
            allowed=str(allowed), privileged=str(privileged)
        ).inc()

    def record_db_query(self, operation: str, success: bool, duration: float) -> None:
        """Record database query metrics."""
        self.db_queries_total.labels(operation=operation, success=str(success)).inc()
        self.db_query_duration_seconds.labels(operation=operation).observe(duration)

    def record_persistence_failure(self, operation: str) -> None:
        """Record a failed write that was not rolled back."""
        self.persistence_failures_total.labels(operation=operation).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = StudyFlowMetrics()
