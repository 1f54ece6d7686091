"""
Prometheus scrape and probe endpoints.
"""

from django.urls import path

from .views import HealthCheckView, LivenessCheckView, MetricsView, ReadinessCheckView

app_name = "metrics"

urlpatterns = [
    path("metrics/", MetricsView.as_view(), name="metrics"),
    path("health/", HealthCheckView.as_view(), name="health"),
    path("ready/", ReadinessCheckView.as_view(), name="ready"),
    path("live/", LivenessCheckView.as_view(), name="live"),
]
