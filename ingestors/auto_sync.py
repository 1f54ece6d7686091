"""
Body of one scheduled auto-sync firing
"""
import logging
from datetime import datetime

from base.preferences import SyncPreferences
from metrics.collectors import metrics

from .error_handling import InvalidKindError
from .health_data_constants import AutoSyncRunResult, AutoSyncStatus, RecordKind, SyncFrequency, SyncSource
from .health_data_service import HealthDataSyncService
from .health_sync_strategies import SyncStrategyFactory

logger = logging.getLogger(__name__)


class AutoSyncRunner:
    """
    Syncs every configured kind, one after another, over the frequency's window

    Host independent: whatever fires the periodic slot just calls ``run``.
    """

    def __init__(
        self,
        sync_service: HealthDataSyncService | None = None,
        preferences: SyncPreferences | None = None,
    ):
        self.preferences = preferences or SyncPreferences()
        self._sync_service = sync_service

    @property
    def sync_service(self) -> HealthDataSyncService:
        if self._sync_service is None:
            self._sync_service = HealthDataSyncService(preferences=self.preferences)
        return self._sync_service

    def run(self, now: datetime | None = None) -> AutoSyncRunResult:
        """
        Run one firing

        Returns SKIPPED when auto-sync is disabled or no kinds are selected.
        The first kind that fails or is cut short ends the run as FAILED;
        remaining kinds wait for the next firing.
        """
        frequency = self.preferences.get_auto_sync_frequency()
        kinds = self._configured_kinds()

        if frequency == SyncFrequency.DISABLED or not kinds:
            logger.info(f"Auto-sync skipped (frequency {frequency.name}, {len(kinds)} kinds)")
            return self._finish(AutoSyncRunResult(status=AutoSyncStatus.SKIPPED, frequency=frequency))

        result = AutoSyncRunResult(status=AutoSyncStatus.SUCCESS, frequency=frequency)
        date_range = SyncStrategyFactory.create_auto_sync(frequency).get_date_range(now)
        allow_duplicates = self.preferences.get_allow_duplicates()

        for kind in kinds:
            try:
                outcome = self.sync_service.sync_kind(
                    kind, date_range.start, date_range.end,
                    allow_duplicates=allow_duplicates, source=SyncSource.AUTO,
                )
            except Exception as e:
                error_msg = f"Auto-sync of {kind.value} raised: {e}"
                logger.error(error_msg, exc_info=True)
                result.errors.append(error_msg)
                result.status = AutoSyncStatus.FAILED
                break

            result.outcomes.append(outcome)
            if not outcome.success:
                result.errors.extend(outcome.errors)
                result.status = AutoSyncStatus.FAILED
                logger.warning(f"Auto-sync stopped at {kind.value}: {outcome.errors}")
                break

        return self._finish(result)

    def _configured_kinds(self) -> list[RecordKind]:
        kinds = []
        for value in self.preferences.get_auto_sync_kinds():
            try:
                kinds.append(RecordKind.parse(value))
            except InvalidKindError:
                logger.warning(f"Ignoring unknown auto-sync kind {value}")
        return kinds

    def _finish(self, result: AutoSyncRunResult) -> AutoSyncRunResult:
        metrics.record_auto_sync_run(result.status.value)
        logger.info(
            f"Auto-sync run {result.status.value}: {result.uploaded_count} observations uploaded "
            f"across {len(result.outcomes)} kind(s)"
        )
        return result
