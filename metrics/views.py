"""
Prometheus scrape endpoint and deployment probes.
"""

import logging
import time
from collections.abc import Callable

from django.conf import settings
from django.db import connection
from django.http import HttpResponse, JsonResponse
from django.views import View
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from publishers.fhir.client import FHIRClient

from .collectors import get_registry, metrics

logger = logging.getLogger(__name__)


def check_database() -> bool:
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
    return True


def check_fhir_server() -> bool:
    return FHIRClient().is_reachable()


def check_huey() -> bool:
    settings.HUEY.pending_count()
    return True


def run_check(name: str, check: Callable[[], bool]) -> dict:
    """Run one probe; failures are reported, never raised"""
    started = time.time()
    try:
        ok = check()
        result = {"status": "healthy" if ok else "unreachable"}
    except Exception as e:
        logger.warning(f"{name} check failed: {e}")
        result = {"status": "unhealthy", "error": str(e)}

    result["response_time_ms"] = round((time.time() - started) * 1000, 2)
    return result


class MetricsView(View):
    """Prometheus metrics endpoint."""

    def get(self, request):
        try:
            metrics.update_system_metrics()
            data = generate_latest(get_registry())
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return HttpResponse("Error generating metrics", status=500)

        return HttpResponse(data, content_type=CONTENT_TYPE_LATEST)


class HealthCheckView(View):
    """
    Health of the service and its dependencies

    Only the database decides the status code. An unreachable FHIR server
    just means auto-sync waits, and Huey only matters to the consumer.
    """

    def get(self, request):
        started = time.time()
        checks = {
            "database": run_check("Database", check_database),
            "fhir": run_check("FHIR server", check_fhir_server),
            "huey": run_check("Huey", check_huey),
        }
        healthy = checks["database"]["status"] == "healthy"

        body = {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": int(time.time()),
            "checks": checks,
            "response_time_ms": round((time.time() - started) * 1000, 2),
        }
        return JsonResponse(body, status=200 if healthy else 503)


class ReadinessCheckView(View):
    """Ready to serve API traffic once the database answers."""

    def get(self, request):
        ready = run_check("Readiness database", check_database)["status"] == "healthy"
        return JsonResponse({"ready": ready, "checks": {"database": ready}}, status=200 if ready else 503)


class LivenessCheckView(View):
    def get(self, request):
        return JsonResponse({"alive": True, "timestamp": int(time.time())})
