"""
Request metrics middleware.
"""

import logging
import re
import time

from .collectors import metrics

logger = logging.getLogger(__name__)

# Path segments that are identifiers rather than routes
_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-f-]{32,36})$")


def endpoint_pattern(path: str) -> str:
    """Low-cardinality endpoint label, e.g. ``/api/sync/manual/`` -> ``api/sync/manual``"""
    segments = [segment for segment in path.strip("/").split("/") if segment]
    if not segments:
        return "root"
    return "/".join(":id" if _ID_SEGMENT.match(segment) else segment for segment in segments[:3])


class MetricsMiddleware:
    """Counts and times every request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        start_time = time.time()
        response = self.get_response(request)
        self._record(request, response.status_code, time.time() - start_time)
        return response

    def _record(self, request, status_code: int, duration: float | None) -> None:
        try:
            metrics.record_api_request(
                method=request.method,
                endpoint=endpoint_pattern(request.path),
                status_code=status_code,
                duration=duration,
            )
        except Exception as e:
            logger.warning(f"Failed to record API metrics: {e}")
