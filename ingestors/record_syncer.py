"""
Dedup tracking of provider records that were already uploaded
"""
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from django.utils import timezone

from base.models import SyncedRecord
from metrics.collectors import metrics

from .health_data_constants import epoch_millis
from .health_records import HealthRecord

logger = logging.getLogger(__name__)


class SyncedRecordTracker:
    """Filters, marks and purges dedup marks in the ``synced_records`` table"""

    def filter_new(self, records: list[HealthRecord], allow_duplicates: bool) -> list[HealthRecord]:
        """
        Records that have not been uploaded yet

        With ``allow_duplicates`` the records are returned unchanged. Otherwise
        records without a record id are dropped, since they can never be
        tracked, and a record id repeated within ``records`` keeps only its
        first occurrence.
        """
        if allow_duplicates:
            return records

        ids = {record.record_id for record in records if record.record_id}
        # Seeded with the stored ids, then grows as records are accepted
        seen = set(
            SyncedRecord.objects.filter(record_id__in=ids).values_list("record_id", flat=True)
        ) if ids else set()

        new_records = []
        for record in records:
            if record.record_id and record.record_id not in seen:
                seen.add(record.record_id)
                new_records.append(record)

        skipped_without_id = sum(1 for record in records if not record.record_id)
        if skipped_without_id:
            logger.warning(f"Dropped {skipped_without_id} records without a record id")

        logger.debug(f"{len(new_records)} of {len(records)} records are new")
        return new_records

    def mark_synced(self, records: Iterable[HealthRecord]) -> list[SyncedRecord]:
        """
        Insert dedup marks for the given records

        Records without an id or a derivable measurement time get no mark.
        Marks that already exist are left untouched.

        Returns:
            The marks that were constructed
        """
        marks = []
        for record in records:
            measured_at = record.measured_at
            if not record.record_id or measured_at is None:
                continue
            marks.append(SyncedRecord(record_id=record.record_id, measured_at=epoch_millis(measured_at)))

        if marks:
            SyncedRecord.objects.bulk_create(marks, ignore_conflicts=True)

        return marks

    def purge_older_than(self, threshold_millis: int) -> int:
        """Delete marks measured strictly before ``threshold_millis``"""
        deleted, _ = SyncedRecord.objects.filter(measured_at__lt=threshold_millis).delete()

        if deleted:
            metrics.record_purged_marks(deleted)
            logger.info(f"Purged {deleted} synced record marks older than {threshold_millis}")

        return deleted

    def purge_expired(self, cleanup_age_days: int, now: datetime | None = None) -> int:
        """Purge marks older than ``cleanup_age_days``; 0 disables cleanup"""
        if cleanup_age_days <= 0:
            return 0

        now = now or timezone.now()
        return self.purge_older_than(epoch_millis(now - timedelta(days=cleanup_age_days)))
