"""
Health data synchronization service

Runs one record kind over one time window through
fetch -> patient -> dedup filter -> map -> chunked upload with marking -> history.
"""
import logging
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any

from django.conf import settings
from django.utils import timezone
from huey.exceptions import TaskLockedException

from base.preferences import SyncPreferences
from metrics.collectors import metrics
from publishers.fhir.health_data_publisher import HealthDataPublisher
from publishers.fhir.patient_publisher import PatientPublisher
from transformers.health_data_transformers import HealthRecordTransformer

from .error_handling import InvalidKindError
from .health_data_constants import ManualSyncPeriod, RecordKind, SyncOutcome, SyncSource
from .health_data_reader import HealthRecordReader
from .health_records import HealthRecord
from .health_sync_strategies import SyncStrategyFactory
from .record_syncer import SyncedRecordTracker
from .sync_history import SyncHistoryLog


logger = logging.getLogger(__name__)


def default_sync_lock() -> AbstractContextManager:
    """
    Process-wide single-flight lock held in the Huey storage

    The lock expires after ``SYNC_LOCK_TTL`` seconds, so a process killed
    mid-sync cannot block every later sync.
    """
    return settings.HUEY.lock_task(settings.SYNC_LOCK_NAME, ttl=settings.SYNC_LOCK_TTL)


class _LockstepMarker:
    """
    Marks records once every observation they produced has been uploaded

    Records are kept in upload order, so the records covered by an accepted
    prefix of observations are always a prefix of the records.
    """

    def __init__(self, tracker: SyncedRecordTracker, groups: list[tuple[HealthRecord, int]]):
        self.tracker = tracker
        self.records = [record for record, _ in groups]
        self.end_offsets = []
        offset = 0
        for _, observation_count in groups:
            offset += observation_count
            self.end_offsets.append(offset)
        self.next_index = 0
        self.marked_count = 0

    def __call__(self, uploaded_count: int) -> None:
        covered = self.next_index
        while covered < len(self.records) and self.end_offsets[covered] <= uploaded_count:
            covered += 1

        if covered == self.next_index:
            return

        marks = self.tracker.mark_synced(self.records[self.next_index:covered])
        self.marked_count += len(marks)
        self.next_index = covered


class HealthDataSyncService:
    """Main health data synchronization service"""

    def __init__(
        self,
        reader: HealthRecordReader | None = None,
        tracker: SyncedRecordTracker | None = None,
        transformer: HealthRecordTransformer | None = None,
        publisher: HealthDataPublisher | None = None,
        patient_publisher: PatientPublisher | None = None,
        history: SyncHistoryLog | None = None,
        preferences: SyncPreferences | None = None,
        lock_factory: Callable[[], AbstractContextManager] | None = None,
    ):
        self.reader = reader or HealthRecordReader()
        self.tracker = tracker or SyncedRecordTracker()
        self.transformer = transformer or HealthRecordTransformer()
        self.publisher = publisher or HealthDataPublisher()
        self.patient_publisher = patient_publisher or PatientPublisher(fhir_client=self.publisher.fhir_client)
        self.history = history or SyncHistoryLog()
        self.preferences = preferences or SyncPreferences()
        self.lock_factory = lock_factory or default_sync_lock
        self.logger = logging.getLogger(f"{__name__}.HealthDataSyncService")

    def sync_kind(
        self,
        kind: RecordKind | str,
        start: datetime,
        end: datetime,
        allow_duplicates: bool = False,
        source: SyncSource = SyncSource.MANUAL,
    ) -> SyncOutcome:
        """
        Synchronize one record kind over ``start``..``end``

        Failures are reported in the returned outcome and never raised. Only
        one sync runs at a time; a call made while another holds the sync
        lock returns a failed outcome without doing any work.

        Args:
            kind: Record kind (value or label)
            start: Window start
            end: Window end
            allow_duplicates: Upload records even if they were uploaded before
            source: Who started this sync, recorded in the history

        Returns:
            SyncOutcome with the number of observations actually uploaded.
            An unknown ``kind`` gives a failed outcome carrying the raw value.
        """
        start_time = time.time()
        outcome = SyncOutcome(kind=kind, source=source, start=start, end=end)

        try:
            outcome.kind = RecordKind.parse(kind)
            with self.lock_factory():
                self._sync(outcome, allow_duplicates)

        except InvalidKindError as e:
            self.logger.warning(f"Skipping sync: {e}")
            outcome.errors.append(str(e))

        except TaskLockedException:
            error_msg = "Another sync is already in progress"
            self.logger.warning(f"{error_msg}, skipping {outcome.kind} sync")
            outcome.errors.append(error_msg)
            outcome.lock_contended = True

        except Exception as e:
            error_msg = f"Unexpected error in {outcome.kind} sync: {e}"
            self.logger.error(error_msg, exc_info=True)
            outcome.errors.append(error_msg)
            outcome.truncated = True

        outcome.success = not outcome.errors and not outcome.truncated
        outcome.processing_time_ms = int((time.time() - start_time) * 1000)

        metrics.record_sync_operation(
            provider="health_connect",
            operation_type=f"sync_{source.value}",
            status="success" if outcome.success else "error",
            duration=outcome.processing_time_ms / 1000,
        )

        self.logger.info(
            f"{outcome.kind} sync completed: "
            f"{outcome.records_fetched} fetched, "
            f"{outcome.records_new} new, "
            f"{outcome.observations_mapped} mapped, "
            f"{outcome.uploaded_count} uploaded, "
            f"{len(outcome.errors)} errors, "
            f"{outcome.processing_time_ms}ms",
            extra={"kind": str(outcome.kind), "source": source.value, "duration": outcome.processing_time_ms / 1000},
        )

        return outcome

    def _sync(self, outcome: SyncOutcome, allow_duplicates: bool) -> None:
        kind = outcome.kind

        # 1. Resolve the remote patient
        patient_id = self.patient_publisher.get_or_create_patient_id()

        # 2. Fetch records
        records = self.reader.get_interval_records(kind, outcome.start, outcome.end)
        outcome.records_fetched = len(records)

        # 3. Drop records uploaded before
        records = self.tracker.filter_new(records, allow_duplicates)
        outcome.records_new = len(records)

        if not records:
            self.logger.info(f"No new {kind.value} records between {outcome.start} and {outcome.end}")
            return

        # 4. Map, keeping which observations came from which record
        observations: list[dict[str, Any]] = []
        groups: list[tuple[HealthRecord, int]] = []
        for record in records:
            mapped = self.transformer.transform(patient_id, kind, record)
            if mapped:
                observations.extend(mapped)
                groups.append((record, len(mapped)))
        outcome.observations_mapped = len(observations)

        if not observations:
            self.logger.warning(f"No FHIR observations created from {len(records)} {kind.value} records")
            return

        # 5. Upload chunk by chunk, marking the records each accepted chunk completes
        marker = _LockstepMarker(self.tracker, groups)
        upload_result = self.publisher.upload_observations(observations, on_chunk_uploaded=marker)

        outcome.uploaded_count = upload_result.uploaded_count
        outcome.records_marked = marker.marked_count
        outcome.truncated = upload_result.truncated
        outcome.errors.extend(upload_result.errors)

        # 6. Log history for anything that reached the server
        if outcome.uploaded_count > 0:
            metrics.record_data_points(kind.value, outcome.source.value, outcome.uploaded_count)
            self.history.append(kind, outcome.uploaded_count, outcome.start, outcome.end, outcome.source)

    def sync_manual(
        self,
        kind: RecordKind | str,
        period: ManualSyncPeriod | str = ManualSyncPeriod.LAST_WEEK,
        now: datetime | None = None,
    ) -> SyncOutcome:
        """Manual sync of one kind over a preset period, honoring allow_duplicates"""
        date_range = SyncStrategyFactory.create_manual_sync(ManualSyncPeriod(period)).get_date_range(now)

        return self.sync_kind(
            kind,
            date_range.start,
            date_range.end,
            allow_duplicates=self.preferences.get_allow_duplicates(),
            source=SyncSource.MANUAL,
        )

    def cleanup_synced_records(self, now: datetime | None = None) -> int:
        """Purge dedup marks older than the configured cleanup age"""
        return self.tracker.purge_expired(self.preferences.get_cleanup_age_days(), now or timezone.now())
