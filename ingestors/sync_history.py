"""
Append-only history of completed sync runs
"""
import logging
from datetime import datetime, timedelta

from django.utils import timezone

from base.models import HistoryRecord

from .health_data_constants import RecordKind, SyncSource, epoch_millis, from_epoch_millis

logger = logging.getLogger(__name__)

HISTORY_GROUPS = ("Last 24 Hours", "Last Week", "Older")


class SyncHistoryLog:
    """Writes and reads ``history_records``"""

    def append(
        self,
        kind: RecordKind,
        data_point_count: int,
        period_start: datetime,
        period_end: datetime,
        source: SyncSource,
        timestamp: datetime | None = None,
    ) -> HistoryRecord:
        entry = HistoryRecord.objects.create(
            timestamp=epoch_millis(timestamp or timezone.now()),
            data_type=kind.value,
            data_point_count=data_point_count,
            period_start=epoch_millis(period_start),
            period_end=epoch_millis(period_end),
            source=source.value,
        )
        logger.info(f"History: {data_point_count} {kind.value} points sent ({source.value})")
        return entry

    def all(self) -> list[HistoryRecord]:
        """All entries, newest first"""
        return list(HistoryRecord.objects.order_by("-timestamp", "-id"))

    def grouped(self, now: datetime | None = None) -> dict[str, list[HistoryRecord]]:
        """
        Entries grouped by age: at most one day, at most seven days, older

        Empty groups are left out; each group is newest first.
        """
        now = now or timezone.now()
        groups: dict[str, list[HistoryRecord]] = {name: [] for name in HISTORY_GROUPS}

        for entry in self.all():
            age = now - from_epoch_millis(entry.timestamp)
            if age <= timedelta(days=1):
                groups["Last 24 Hours"].append(entry)
            elif age <= timedelta(days=7):
                groups["Last Week"].append(entry)
            else:
                groups["Older"].append(entry)

        return {name: entries for name, entries in groups.items() if entries}

    def clear(self) -> int:
        deleted, _ = HistoryRecord.objects.all().delete()
        logger.info(f"Cleared {deleted} history entries")
        return deleted
