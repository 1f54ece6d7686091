"""
Prometheus metrics for the health sync service.

Everything is registered on ``app_registry``, which ``/metrics/`` exports.
"""
import logging
import time

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

logger = logging.getLogger(__name__)

app_registry = CollectorRegistry()

# Sync runs
SYNC_OPERATIONS_TOTAL = Counter(
    "hs_sync_operations_total",
    "Sync runs and provider reads by outcome",
    ["provider", "operation_type", "status"],
    registry=app_registry,
)

SYNC_DURATION = Histogram(
    "hs_sync_duration_seconds",
    "Wall time of sync runs and provider reads",
    ["provider", "operation_type"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
    registry=app_registry,
)

DATA_POINTS_UPLOADED = Counter(
    "hs_data_points_uploaded_total",
    "Observations accepted by the FHIR server",
    ["kind", "source"],
    registry=app_registry,
)

AUTO_SYNC_RUNS_TOTAL = Counter(
    "hs_auto_sync_runs_total",
    "Scheduled auto-sync firings by status",
    ["status"],
    registry=app_registry,
)

# FHIR server
FHIR_OPERATIONS_TOTAL = Counter(
    "hs_fhir_operations_total",
    "Requests sent to the FHIR server",
    ["operation", "resource_type", "status"],
    registry=app_registry,
)

FHIR_RESPONSE_TIME = Histogram(
    "hs_fhir_response_time_seconds",
    "FHIR server response times",
    ["operation", "resource_type"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=app_registry,
)

UPLOAD_CHUNKS_FAILED = Counter(
    "hs_upload_chunks_failed_total",
    "Transaction chunks rejected by or not delivered to the FHIR server",
    registry=app_registry,
)

# Record provider
PROVIDER_API_ERRORS = Counter(
    "hs_provider_api_errors_total",
    "Record provider failures by error type",
    ["provider", "error_type"],
    registry=app_registry,
)

PROVIDER_API_RATE_LIMITS = Counter(
    "hs_provider_api_rate_limits_total",
    "Record provider rate limit responses",
    ["provider"],
    registry=app_registry,
)

MALFORMED_RECORDS_SKIPPED = Counter(
    "hs_malformed_records_skipped_total",
    "Provider records dropped because their payload could not be parsed",
    ["kind"],
    registry=app_registry,
)

# Local store
SYNCED_RECORDS = Gauge(
    "hs_synced_records",
    "Dedup marks currently stored",
    registry=app_registry,
)

SYNCED_RECORDS_PURGED = Counter(
    "hs_synced_records_purged_total",
    "Dedup marks removed by cleanup",
    registry=app_registry,
)

HUEY_QUEUE_SIZE = Gauge(
    "hs_huey_queue_size",
    "Tasks waiting in the Huey queue",
    registry=app_registry,
)

# HTTP API
API_REQUESTS_TOTAL = Counter(
    "hs_api_requests_total",
    "API requests by endpoint and status code",
    ["method", "endpoint", "status_code"],
    registry=app_registry,
)

API_REQUEST_DURATION = Histogram(
    "hs_api_request_duration_seconds",
    "API request duration",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
    registry=app_registry,
)

APPLICATION_INFO = Info(
    "hs_application_info",
    "Application information",
    registry=app_registry,
)


class MetricsCollector:
    """Single entry point the rest of the code records metrics through."""

    def __init__(self):
        self.start_time = time.time()

    def record_sync_operation(self, provider: str, operation_type: str, status: str, duration: float | None = None):
        SYNC_OPERATIONS_TOTAL.labels(provider=provider, operation_type=operation_type, status=status).inc()
        if duration:
            SYNC_DURATION.labels(provider=provider, operation_type=operation_type).observe(duration)

    def record_data_points(self, kind: str, source: str, count: int):
        """Observations accepted by the FHIR server for one sync."""
        DATA_POINTS_UPLOADED.labels(kind=kind, source=source).inc(count)

    def record_auto_sync_run(self, status: str):
        AUTO_SYNC_RUNS_TOTAL.labels(status=status).inc()

    def record_fhir_operation(self, operation: str, resource_type: str, status: str, duration: float | None = None):
        FHIR_OPERATIONS_TOTAL.labels(operation=operation, resource_type=resource_type, status=status).inc()
        if duration:
            FHIR_RESPONSE_TIME.labels(operation=operation, resource_type=resource_type).observe(duration)

    def record_failed_chunk(self):
        UPLOAD_CHUNKS_FAILED.inc()

    def record_provider_api_error(self, provider: str, error_type: str):
        PROVIDER_API_ERRORS.labels(provider=provider, error_type=error_type).inc()

    def record_rate_limit(self, provider: str):
        PROVIDER_API_RATE_LIMITS.labels(provider=provider).inc()

    def record_malformed_record(self, kind: str):
        MALFORMED_RECORDS_SKIPPED.labels(kind=kind).inc()

    def record_purged_marks(self, count: int):
        SYNCED_RECORDS_PURGED.inc(count)

    def record_api_request(self, method: str, endpoint: str, status_code: int, duration: float | None = None):
        API_REQUESTS_TOTAL.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        if duration:
            API_REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    def update_system_metrics(self):
        """Refresh the gauges read from the database and the Huey storage."""
        from django.conf import settings

        from base.models import SyncedRecord

        try:
            SYNCED_RECORDS.set(SyncedRecord.objects.count())
        except Exception as e:
            logger.warning(f"Failed to count synced records: {e}")

        try:
            HUEY_QUEUE_SIZE.set(settings.HUEY.pending_count())
        except Exception as e:
            logger.warning(f"Failed to read Huey queue size: {e}")


metrics = MetricsCollector()


def initialize_metrics():
    """Publish static application info."""
    from django.conf import settings

    APPLICATION_INFO.info({
        "version": getattr(settings, "APPLICATION_VERSION", "unknown"),
        "environment": getattr(settings, "ENVIRONMENT", "development"),
        "debug": str(getattr(settings, "DEBUG", False)),
    })
    logger.info("Metrics collection initialized")


def get_registry():
    return app_registry
