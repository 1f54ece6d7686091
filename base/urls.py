from django.urls import include, path
from rest_framework import routers

from base.views import HealthSyncViewSet, PatientView, SyncSettingsView

# API router for ViewSets
router = routers.DefaultRouter()
router.register(r"sync", HealthSyncViewSet, basename="health-sync")

urlpatterns = [
    path("", include(router.urls)),
    path("settings/", SyncSettingsView.as_view(), name="sync-settings"),
    path("patient/", PatientView.as_view(), name="patient"),
]
