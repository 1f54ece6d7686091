import logging

from django.utils import timezone
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle, ScopedRateThrottle
from rest_framework.views import APIView

from base.preferences import PatientPreferences, SyncPreferences
from base.serializers import (
    HistoryRecordSerializer,
    ManualSyncRequestSerializer,
    PatientSerializer,
    SyncOutcomeSerializer,
    SyncSettingsSerializer,
)
from ingestors.api_clients import HealthRecordsClient
from ingestors.error_handling import HealthDataError
from ingestors.health_data_constants import MANUAL_SYNC_PERIOD_LABELS, ManualSyncPeriod, SyncOutcome
from ingestors.health_data_service import HealthDataSyncService
from ingestors.health_data_tasks import sync_kind_in_background
from ingestors.sync_history import SyncHistoryLog

logger = logging.getLogger(__name__)


def format_sync_message(outcome: SyncOutcome, period: ManualSyncPeriod) -> str:
    """Human-readable summary of a manual sync"""
    period_text = (
        f"{MANUAL_SYNC_PERIOD_LABELS[period]} "
        f"({outcome.start.strftime('%Y-%m-%d')} to {outcome.end.strftime('%Y-%m-%d')})"
    )
    details = f"Type: {outcome.kind.label}\nRecords sent: {outcome.uploaded_count}\nPeriod: {period_text}"

    if outcome.success:
        return f"Data sent to server successfully\n{details}"
    return f"Failed to send data: {'; '.join(outcome.errors)}\n{details}"


class HealthSyncViewSet(viewsets.ViewSet):
    """
    ViewSet for health data synchronization operations.
    Provides manual sync and sync history.
    """

    permission_classes = [AllowAny]
    throttle_classes = [AnonRateThrottle]
    throttle_scope = "manual_sync"

    @action(detail=False, methods=["post"], throttle_classes=[ScopedRateThrottle])
    def manual(self, request):
        """Sync one record kind over a preset period"""
        serializer = ManualSyncRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        kind = serializer.validated_data["kind"]
        period = ManualSyncPeriod(serializer.validated_data["period"])

        try:
            permitted = HealthRecordsClient().has_read_permission(kind)
        except HealthDataError as e:
            logger.error(f"Could not verify read permission for {kind.value}: {e}")
            return Response({"error": f"Permission check failed: {e}"}, status=status.HTTP_502_BAD_GATEWAY)

        if not permitted:
            return Response(
                {"error": f"Read permission for {kind.label} has not been granted"},
                status=status.HTTP_403_FORBIDDEN,
            )

        if serializer.validated_data["background"]:
            sync_kind_in_background(kind.value, period.value)
            return Response({"queued": True, "kind": kind.value, "period": period.value}, status=status.HTTP_202_ACCEPTED)

        outcome = HealthDataSyncService().sync_manual(kind, period)
        body = {**SyncOutcomeSerializer(outcome).data, "message": format_sync_message(outcome, period)}

        if outcome.lock_contended:
            return Response(body, status=status.HTTP_409_CONFLICT)
        if not outcome.success:
            return Response(body, status=status.HTTP_502_BAD_GATEWAY)
        return Response(body)

    @action(detail=False, methods=["get", "delete"])
    def history(self, request):
        """Sync history grouped by recency (GET) or cleared (DELETE)"""
        history = SyncHistoryLog()

        if request.method == "DELETE":
            deleted = history.clear()
            return Response({"deleted": deleted})

        grouped = history.grouped(timezone.now())
        return Response({
            group: HistoryRecordSerializer(entries, many=True).data
            for group, entries in grouped.items()
        })


class SyncSettingsView(APIView):
    """Read and update the sync preferences"""

    permission_classes = [AllowAny]
    throttle_classes = [AnonRateThrottle]

    def get(self, request):
        return Response(self._current(SyncPreferences()))

    def put(self, request):
        serializer = SyncSettingsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        preferences = SyncPreferences()

        if "allow_duplicates" in data:
            preferences.set_allow_duplicates(data["allow_duplicates"])
        if "cleanup_age_days" in data:
            preferences.set_cleanup_age_days(data["cleanup_age_days"])
        if "auto_sync_kinds" in data:
            preferences.set_auto_sync_kinds(data["auto_sync_kinds"])
        if "auto_sync_frequency" in data:
            preferences.set_auto_sync_frequency(data["auto_sync_frequency"])

        return Response(self._current(preferences))

    def _current(self, preferences: SyncPreferences) -> dict:
        return {
            "allow_duplicates": preferences.get_allow_duplicates(),
            "cleanup_age_days": preferences.get_cleanup_age_days(),
            "auto_sync_frequency": int(preferences.get_auto_sync_frequency()),
            "auto_sync_kinds": preferences.get_auto_sync_kinds(),
        }


class PatientView(APIView):
    """Read and rename the local patient profile"""

    permission_classes = [AllowAny]
    throttle_classes = [AnonRateThrottle]

    def get(self, request):
        return Response(self._current(PatientPreferences()))

    def put(self, request):
        serializer = PatientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        preferences = PatientPreferences()
        preferences.set_name(serializer.validated_data["given_name"], serializer.validated_data["family_name"])
        return Response(self._current(preferences))

    def _current(self, preferences: PatientPreferences) -> dict:
        given_name, family_name = preferences.get_name()
        return {"given_name": given_name, "family_name": family_name, "remote_id": preferences.get_remote_id()}
