"""
API tests for manual sync, history, settings and patient endpoints
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from rest_framework.test import APIClient

from base.preferences import PatientPreferences, SyncPreferences
from base.views import format_sync_message
from ingestors.error_handling import ErrorType, HealthDataError
from ingestors.health_data_constants import ManualSyncPeriod, RecordKind, SyncFrequency, SyncOutcome, SyncSource
from ingestors.sync_history import SyncHistoryLog

START = datetime(2024, 6, 8, 12, tzinfo=timezone.utc)
END = datetime(2024, 6, 15, 12, tzinfo=timezone.utc)


def make_outcome(**kwargs):
    values = {"kind": RecordKind.STEPS, "source": SyncSource.MANUAL, "start": START, "end": END}
    values.update(kwargs)
    return SyncOutcome(**values)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def granted():
    with patch("base.views.HealthRecordsClient") as client_class:
        client_class.return_value.has_read_permission.return_value = True
        yield client_class.return_value


class TestFormatSyncMessage:
    """Test the manual sync summary"""

    def test_success(self):
        outcome = make_outcome(uploaded_count=42, success=True)

        message = format_sync_message(outcome, ManualSyncPeriod.LAST_WEEK)

        assert message == (
            "Data sent to server successfully\n"
            "Type: Steps\n"
            "Records sent: 42\n"
            "Period: Last week (2024-06-08 to 2024-06-15)"
        )

    def test_failure(self):
        outcome = make_outcome(uploaded_count=500, errors=["Chunk 2/3 failed"])

        message = format_sync_message(outcome, ManualSyncPeriod.LAST_WEEK)

        assert message.startswith("Failed to send data: Chunk 2/3 failed\n")
        assert "Records sent: 500" in message


@pytest.mark.django_db
class TestManualSyncEndpoint:
    """Test POST /api/sync/manual/"""

    def test_manual_sync(self, api_client, granted):
        with patch("base.views.HealthDataSyncService") as service_class:
            service_class.return_value.sync_manual.return_value = make_outcome(uploaded_count=3, success=True)

            response = api_client.post("/api/sync/manual/", {"kind": "Steps", "period": "last_week"}, format="json")

        assert response.status_code == 200
        assert response.data["uploaded_count"] == 3
        assert response.data["message"].startswith("Data sent to server successfully")
        service_class.return_value.sync_manual.assert_called_once_with(RecordKind.STEPS, ManualSyncPeriod.LAST_WEEK)

    def test_permission_denied(self, api_client, granted):
        granted.has_read_permission.return_value = False

        with patch("base.views.HealthDataSyncService") as service_class:
            response = api_client.post("/api/sync/manual/", {"kind": "sleep"}, format="json")

        assert response.status_code == 403
        service_class.return_value.sync_manual.assert_not_called()

    def test_permission_check_failure(self, api_client, granted):
        granted.has_read_permission.side_effect = HealthDataError("provider down", ErrorType.NETWORK_ERROR)

        response = api_client.post("/api/sync/manual/", {"kind": "sleep"}, format="json")

        assert response.status_code == 502

    def test_invalid_kind(self, api_client, granted):
        response = api_client.post("/api/sync/manual/", {"kind": "blood_glucose"}, format="json")

        assert response.status_code == 400
        assert "kind" in response.data

    def test_failed_sync(self, api_client, granted):
        with patch("base.views.HealthDataSyncService") as service_class:
            service_class.return_value.sync_manual.return_value = make_outcome(
                uploaded_count=500, truncated=True, errors=["Chunk 2/3 failed"]
            )

            response = api_client.post("/api/sync/manual/", {"kind": "steps"}, format="json")

        assert response.status_code == 502
        assert response.data["uploaded_count"] == 500
        assert response.data["message"].startswith("Failed to send data")

    def test_sync_in_progress(self, api_client, granted):
        with patch("base.views.HealthDataSyncService") as service_class:
            service_class.return_value.sync_manual.return_value = make_outcome(
                lock_contended=True, errors=["Another sync is already in progress"]
            )

            response = api_client.post("/api/sync/manual/", {"kind": "steps"}, format="json")

        assert response.status_code == 409

    def test_background_sync(self, api_client, granted):
        with patch("base.views.sync_kind_in_background") as task:
            response = api_client.post(
                "/api/sync/manual/", {"kind": "steps", "period": "last_month", "background": True}, format="json"
            )

        assert response.status_code == 202
        task.assert_called_once_with("steps", "last_month")


@pytest.mark.django_db
class TestHistoryEndpoint:
    """Test GET/DELETE /api/sync/history/"""

    def test_grouped_history(self, api_client):
        history = SyncHistoryLog()
        now = datetime.now(timezone.utc)
        history.append(RecordKind.STEPS, 5, START, END, SyncSource.MANUAL, timestamp=now - timedelta(hours=1))
        history.append(RecordKind.SLEEP, 7, START, END, SyncSource.AUTO, timestamp=now - timedelta(days=30))

        response = api_client.get("/api/sync/history/")

        assert response.status_code == 200
        assert list(response.data) == ["Last 24 Hours", "Older"]
        assert response.data["Last 24 Hours"][0]["data_type"] == "steps"
        assert response.data["Older"][0]["source"] == "auto"

    def test_clear_history(self, api_client):
        SyncHistoryLog().append(RecordKind.STEPS, 5, START, END, SyncSource.MANUAL)

        response = api_client.delete("/api/sync/history/")

        assert response.status_code == 200
        assert response.data == {"deleted": 1}
        assert SyncHistoryLog().all() == []


@pytest.mark.django_db
class TestSettingsEndpoints:
    """Test /api/settings/ and /api/patient/"""

    def test_get_settings(self, api_client):
        response = api_client.get("/api/settings/")

        assert response.status_code == 200
        assert response.data == {
            "allow_duplicates": False,
            "cleanup_age_days": 0,
            "auto_sync_frequency": 0,
            "auto_sync_kinds": [],
        }

    def test_update_settings(self, api_client):
        with patch("ingestors.scheduler.AutoSyncScheduler.apply_frequency") as apply_frequency:
            response = api_client.put(
                "/api/settings/",
                {"allow_duplicates": True, "auto_sync_frequency": 3, "auto_sync_kinds": ["Steps", "sleep"]},
                format="json",
            )

        assert response.status_code == 200
        assert response.data["auto_sync_kinds"] == ["sleep", "steps"]
        preferences = SyncPreferences()
        assert preferences.get_allow_duplicates() is True
        assert preferences.get_auto_sync_frequency() == SyncFrequency.DAILY
        apply_frequency.assert_called_once()

    def test_reject_negative_cleanup_age(self, api_client):
        response = api_client.put("/api/settings/", {"cleanup_age_days": -1}, format="json")

        assert response.status_code == 400

    def test_rename_patient(self, api_client):
        PatientPreferences().set_remote_id("patient-1")

        response = api_client.put("/api/patient/", {"given_name": "Ada", "family_name": "Lovelace"}, format="json")

        assert response.status_code == 200
        assert response.data == {"given_name": "Ada", "family_name": "Lovelace", "remote_id": None}
