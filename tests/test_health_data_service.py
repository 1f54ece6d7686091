"""
Unit tests for the health data sync pipeline
"""
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
import requests
from huey import MemoryHuey

from base.models import HistoryRecord, SyncedRecord
from base.preferences import SyncPreferences
from ingestors.error_handling import ErrorType, HealthDataError
from ingestors.health_data_constants import ManualSyncPeriod, RecordKind, SyncSource
from ingestors.health_data_reader import HealthRecordReader
from ingestors.health_data_service import HealthDataSyncService, default_sync_lock
from ingestors.health_records import HeartRateRecord, HeartRateSample, StepsRecord
from publishers.fhir.health_data_publisher import HealthDataPublisher
from publishers.fhir.patient_publisher import PatientPublisher

T0 = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


def steps(record_id, offset_minutes=0):
    start = T0 + timedelta(minutes=offset_minutes)
    return StepsRecord(record_id=record_id, start_time=start, end_time=start + timedelta(minutes=1), count=10)


@pytest.fixture
def mock_reader():
    return Mock(spec=HealthRecordReader)


@pytest.fixture
def mock_patient_publisher():
    patient_publisher = Mock(spec=PatientPublisher)
    patient_publisher.get_or_create_patient_id.return_value = "patient-1"
    return patient_publisher


@pytest.fixture
def sync_service(mock_reader, mock_fhir_client, mock_patient_publisher, no_lock):
    return HealthDataSyncService(
        reader=mock_reader,
        publisher=HealthDataPublisher(fhir_client=mock_fhir_client),
        patient_publisher=mock_patient_publisher,
        lock_factory=no_lock,
    )


def run_sync(service, **kwargs):
    return service.sync_kind(RecordKind.STEPS, T0 - timedelta(days=1), T0 + timedelta(days=1), **kwargs)


@pytest.mark.django_db
class TestHealthDataSyncService:
    """Test HealthDataSyncService"""

    def test_sync_uploads_marks_and_logs_history(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = [steps("a"), steps("b", 1)]

        outcome = run_sync(sync_service)

        assert outcome.success is True
        assert outcome.records_fetched == 2
        assert outcome.uploaded_count == 2
        assert outcome.records_marked == 2
        assert set(SyncedRecord.objects.values_list("record_id", flat=True)) == {"a", "b"}
        entry = HistoryRecord.objects.get()
        assert entry.data_type == "steps"
        assert entry.data_point_count == 2
        assert entry.source == "manual"
        bundle = mock_fhir_client.transaction.call_args.args[0]
        assert bundle["entry"][0]["resource"]["subject"] == {"reference": "Patient/patient-1"}

    def test_second_run_uploads_nothing(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = [steps("a"), steps("b", 1)]

        run_sync(sync_service)
        second = run_sync(sync_service)

        assert second.success is True
        assert second.records_new == 0
        assert second.uploaded_count == 0
        assert mock_fhir_client.transaction.call_count == 1
        assert HistoryRecord.objects.count() == 1

    def test_record_repeated_across_pages_uploads_once(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = [steps("abc"), steps("abc")]

        outcome = run_sync(sync_service)

        assert outcome.records_fetched == 2
        assert outcome.records_new == 1
        assert outcome.uploaded_count == 1
        assert len(mock_fhir_client.transaction.call_args.args[0]["entry"]) == 1
        assert SyncedRecord.objects.count() == 1

    def test_allow_duplicates_reuploads(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = [steps("a")]

        run_sync(sync_service)
        second = run_sync(sync_service, allow_duplicates=True)

        assert second.uploaded_count == 1
        assert mock_fhir_client.transaction.call_count == 2
        assert HistoryRecord.objects.count() == 2

    def test_empty_window_writes_no_history(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = []

        outcome = run_sync(sync_service)

        assert outcome.success is True
        assert outcome.uploaded_count == 0
        mock_fhir_client.transaction.assert_not_called()
        assert HistoryRecord.objects.count() == 0

    def test_records_without_id_are_dropped(self, sync_service, mock_reader, mock_fhir_client):
        mock_reader.get_interval_records.return_value = [steps(None)]

        outcome = run_sync(sync_service)

        assert outcome.records_fetched == 1
        assert outcome.records_new == 0
        mock_fhir_client.transaction.assert_not_called()

    def test_failed_chunk_marks_only_uploaded_records(self, sync_service, mock_reader, mock_fhir_client, settings):
        """With chunk 2 of 3 failing, only chunk 1's records are marked and counted"""
        settings.BATCH_SIZES = {"PUBLISHER": 2}
        mock_reader.get_interval_records.return_value = [steps(f"r{i}", i) for i in range(6)]
        mock_fhir_client.transaction.side_effect = [
            {"entry": [{"response": {"status": "201 Created"}}] * 2},
            requests.exceptions.ConnectionError("connection reset"),
        ]

        outcome = run_sync(sync_service)

        assert outcome.success is False
        assert outcome.truncated is True
        assert outcome.uploaded_count == 2
        assert outcome.records_marked == 2
        assert mock_fhir_client.transaction.call_count == 2
        assert set(SyncedRecord.objects.values_list("record_id", flat=True)) == {"r0", "r1"}
        assert HistoryRecord.objects.get().data_point_count == 2

    def test_record_split_across_chunks_is_marked_once_complete(
        self, sync_service, mock_reader, mock_fhir_client, settings
    ):
        """A record whose observations straddle a failed chunk stays unmarked"""
        settings.BATCH_SIZES = {"PUBLISHER": 2}
        heart_rate = HeartRateRecord(
            record_id="hr",
            start_time=T0,
            end_time=T0 + timedelta(minutes=3),
            samples=tuple(HeartRateSample(T0 + timedelta(minutes=i), 60 + i) for i in range(3)),
        )
        mock_reader.get_interval_records.return_value = [heart_rate]
        mock_fhir_client.transaction.side_effect = [
            {"entry": [{"response": {"status": "201 Created"}}] * 2},
            requests.exceptions.Timeout("read timed out"),
        ]

        outcome = sync_service.sync_kind(RecordKind.HEART_RATE, T0, T0 + timedelta(hours=1))

        assert outcome.uploaded_count == 2
        assert outcome.records_marked == 0
        assert SyncedRecord.objects.count() == 0

    def test_reader_failure_is_reported(self, sync_service, mock_reader):
        mock_reader.get_interval_records.side_effect = HealthDataError(
            "Authentication failed for health_connect", ErrorType.AUTH_ERROR
        )

        outcome = run_sync(sync_service)

        assert outcome.success is False
        assert outcome.truncated is True
        assert "Authentication failed" in outcome.errors[0]
        assert HistoryRecord.objects.count() == 0

    def test_patient_failure_is_reported(self, sync_service, mock_reader, mock_patient_publisher):
        mock_patient_publisher.get_or_create_patient_id.side_effect = requests.exceptions.ConnectionError("down")

        outcome = run_sync(sync_service)

        assert outcome.success is False
        mock_reader.get_interval_records.assert_not_called()

    def test_invalid_kind_is_a_failed_outcome(self, sync_service, mock_reader, mock_patient_publisher):
        outcome = sync_service.sync_kind("blood_glucose", T0, T0)

        assert outcome.success is False
        assert outcome.kind == "blood_glucose"
        assert "blood_glucose" in outcome.errors[0]
        assert outcome.to_dict()["kind"] == "blood_glucose"
        mock_patient_publisher.get_or_create_patient_id.assert_not_called()
        mock_reader.get_interval_records.assert_not_called()

    def test_kind_label_is_parsed(self, sync_service, mock_reader):
        mock_reader.get_interval_records.return_value = []

        outcome = sync_service.sync_kind("Steps", T0, T0)

        assert outcome.success is True
        assert outcome.kind is RecordKind.STEPS

    def test_lock_contention(self, mock_reader, mock_fhir_client, mock_patient_publisher):
        huey = MemoryHuey("test-sync-lock")
        service = HealthDataSyncService(
            reader=mock_reader,
            publisher=HealthDataPublisher(fhir_client=mock_fhir_client),
            patient_publisher=mock_patient_publisher,
            lock_factory=lambda: huey.lock_task("sync"),
        )

        with huey.lock_task("sync"):
            outcome = run_sync(service)

        assert outcome.success is False
        assert outcome.lock_contended is True
        mock_reader.get_interval_records.assert_not_called()

    def test_lock_is_released_after_sync(self, mock_reader, mock_fhir_client, mock_patient_publisher):
        huey = MemoryHuey("test-sync-release")
        mock_reader.get_interval_records.return_value = []
        service = HealthDataSyncService(
            reader=mock_reader,
            publisher=HealthDataPublisher(fhir_client=mock_fhir_client),
            patient_publisher=mock_patient_publisher,
            lock_factory=lambda: huey.lock_task("sync"),
        )

        first = run_sync(service)
        second = run_sync(service)

        assert first.success is True
        assert second.success is True

    def test_lock_left_by_killed_process_expires(self, settings, mock_reader, mock_fhir_client, mock_patient_publisher):
        settings.HUEY = MemoryHuey("test-stale-lock")
        settings.SYNC_LOCK_TTL = 0.5
        mock_reader.get_interval_records.return_value = []
        service = HealthDataSyncService(
            reader=mock_reader,
            publisher=HealthDataPublisher(fhir_client=mock_fhir_client),
            patient_publisher=mock_patient_publisher,
        )

        # Acquired and never released, as by a process killed mid-sync
        default_sync_lock().acquire()
        blocked = run_sync(service)
        time.sleep(0.6)
        recovered = run_sync(service)

        assert blocked.lock_contended is True
        assert recovered.success is True
        assert recovered.lock_contended is False

    def test_sync_manual_uses_period_and_preferences(self, sync_service, mock_reader, now):
        SyncPreferences().set_allow_duplicates(True)
        mock_reader.get_interval_records.return_value = []

        outcome = sync_service.sync_manual("Steps", ManualSyncPeriod.LAST_24_HOURS, now=now)

        assert outcome.source == SyncSource.MANUAL
        assert outcome.start == now - timedelta(days=1)
        assert outcome.end == now

    def test_cleanup_synced_records(self, sync_service, now):
        SyncPreferences().set_cleanup_age_days(7)
        SyncedRecord.objects.create(record_id="old", measured_at=0)

        assert sync_service.cleanup_synced_records(now) == 1
