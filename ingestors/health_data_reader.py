"""
Paginated reader of health records from the record provider
"""
import logging
from datetime import datetime

from django.conf import settings

from metrics.collectors import metrics

from .api_clients import HealthRecordsClient, RecordProvider
from .error_handling import HealthDataError
from .health_data_constants import DateRange, RecordKind
from .health_records import HealthRecord, parse_health_record

logger = logging.getLogger(__name__)


class HealthRecordReader:
    """Reads every record of a kind in a time window, following page tokens"""

    def __init__(self, provider: RecordProvider | None = None, page_size: int | None = None):
        self.provider = provider or HealthRecordsClient()
        self.page_size = page_size or settings.HEALTH_RECORDS_PAGE_SIZE

    def get_interval_records(self, kind: RecordKind | str, start: datetime, end: datetime) -> list[HealthRecord]:
        """
        Read all records of ``kind`` between ``start`` and ``end``

        Pages are requested until the provider returns an empty page or no
        further page token. A payload that cannot be parsed is logged and
        skipped. Permission errors from the provider propagate.

        Raises:
            InvalidKindError: if ``kind`` is not a known record kind
            ValueError: if ``start`` is after ``end``
        """
        kind = RecordKind.parse(kind)
        date_range = DateRange(start, end)

        records: list[HealthRecord] = []
        page_token: str | None = None
        page_number = 0

        while True:
            page = self.provider.read_records(
                kind, date_range.start, date_range.end, self.page_size, page_token
            )
            page_number += 1

            if not page.records:
                break

            for payload in page.records:
                try:
                    records.append(parse_health_record(kind, payload))
                except HealthDataError as e:
                    metrics.record_malformed_record(kind.value)
                    logger.warning(f"Skipping {kind.value} record: {e}", extra={"kind": kind.value})

            page_token = page.page_token
            if not page_token:
                break

        logger.info(f"Read {len(records)} {kind.value} records in {page_number} page(s)")
        return records
