"""
Sync window strategies for manual and scheduled syncs
"""
import calendar
import logging
from typing import Protocol
from datetime import datetime, timedelta
from abc import ABC, abstractmethod

from django.utils import timezone

from .health_data_constants import (
    DateRange, ManualSyncPeriod, SyncFrequency, SyncSource
)


logger = logging.getLogger(__name__)


class SyncStrategy(Protocol):
    """Protocol for sync window strategies"""

    source: SyncSource

    def get_date_range(self, now: datetime | None = None) -> DateRange:
        """Get date range for this sync strategy"""
        ...


def subtract_months(value: datetime, months: int) -> datetime:
    """Same wall-clock time ``months`` calendar months earlier, clamping the day"""
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


class BaseSyncStrategy(ABC):
    """Base class for sync strategies"""

    def __init__(self, source: SyncSource):
        self.source = source
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    def get_window_start(self, end: datetime) -> datetime:
        """Start of the window ending at ``end``"""
        pass

    def get_date_range(self, now: datetime | None = None) -> DateRange:
        """Window ending now"""
        end_date = now or timezone.now()
        start_date = self.get_window_start(end_date)

        self.logger.debug(f"{self.source.value} sync date range: {start_date} to {end_date}")

        return DateRange(start_date, end_date)


class ManualSyncStrategy(BaseSyncStrategy):
    """Strategy for user-triggered manual sync over a preset period"""

    def __init__(self, period: ManualSyncPeriod = ManualSyncPeriod.LAST_WEEK):
        super().__init__(SyncSource.MANUAL)
        self.period = period

    def get_window_start(self, end: datetime) -> datetime:
        return end - self.period.lookback


class AutoSyncStrategy(BaseSyncStrategy):
    """Strategy for scheduled sync; the window grows with the frequency"""

    def __init__(self, frequency: SyncFrequency):
        super().__init__(SyncSource.AUTO)
        if frequency == SyncFrequency.DISABLED:
            raise ValueError("Auto-sync is disabled, there is no sync window")
        self.frequency = frequency

    def get_window_start(self, end: datetime) -> datetime:
        match self.frequency:
            case SyncFrequency.EVERY_15_MINUTES:
                return end - timedelta(minutes=15)
            case SyncFrequency.HOURLY:
                return end - timedelta(hours=2)
            case SyncFrequency.DAILY:
                return end - timedelta(days=2)
            case SyncFrequency.WEEKLY:
                return end - timedelta(weeks=2)
            case SyncFrequency.MONTHLY:
                return subtract_months(end, 2)
            case _:
                raise ValueError(f"Unsupported sync frequency: {self.frequency}")


class SyncStrategyFactory:
    """Factory for creating sync strategies"""

    @classmethod
    def create_manual_sync(cls, period: ManualSyncPeriod = ManualSyncPeriod.LAST_WEEK) -> ManualSyncStrategy:
        """Create manual sync strategy"""
        return ManualSyncStrategy(period)

    @classmethod
    def create_auto_sync(cls, frequency: SyncFrequency) -> AutoSyncStrategy:
        """Create scheduled sync strategy"""
        return AutoSyncStrategy(frequency)
