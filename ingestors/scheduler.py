"""
Auto-sync scheduling

A single named periodic slot is (re)registered whenever the auto-sync
frequency changes. A frequent host tick asks the scheduler to fire the slot
when it is due and the FHIR server is reachable.
"""
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from django.db import transaction
from django.utils import timezone

from base.models import ScheduledSyncSlot

from .auto_sync import AutoSyncRunner
from .health_data_constants import AUTO_SYNC_INTERVALS, AUTO_SYNC_SLOT_NAME, AutoSyncRunResult, SyncFrequency

logger = logging.getLogger(__name__)

# Ticks run on a fixed cron and drift by a few milliseconds either way
CLAIM_GRACE = timedelta(minutes=1)


def _is_due(slot: ScheduledSyncSlot, now: datetime) -> bool:
    return slot.next_run_at <= now + CLAIM_GRACE


class PeriodicJobRegistrar(Protocol):
    """Where named periodic slots are registered"""

    def register(self, name: str, interval: timedelta, first_run_at: datetime) -> None:
        """Register ``name``, replacing any earlier registration"""
        ...

    def cancel(self, name: str) -> None:
        ...

    def claim_due(self, name: str, now: datetime, can_run: Callable[[], bool]) -> bool:
        """Advance a due slot to its next period and report whether it was due"""
        ...


class DatabaseJobRegistrar:
    """Slots stored in ``scheduled_sync_slots``"""

    def register(self, name: str, interval: timedelta, first_run_at: datetime) -> None:
        ScheduledSyncSlot.objects.update_or_create(
            name=name,
            defaults={
                "interval_seconds": int(interval.total_seconds()),
                "next_run_at": first_run_at,
                "requires_network": True,
            },
        )

    def cancel(self, name: str) -> None:
        ScheduledSyncSlot.objects.filter(name=name).delete()

    def get(self, name: str) -> ScheduledSyncSlot | None:
        return ScheduledSyncSlot.objects.filter(name=name).first()

    def claim_due(self, name: str, now: datetime, can_run: Callable[[], bool]) -> bool:
        """
        A slot counts as due up to ``CLAIM_GRACE`` before its ``next_run_at``,
        so a tick running slightly early does not skip a whole period. The
        network precondition is checked before the row is locked.
        """
        slot = self.get(name)
        if slot is None or not _is_due(slot, now):
            return False

        if slot.requires_network and not can_run():
            logger.info(f"Slot {name} is due but the network precondition is not met")
            return False

        with transaction.atomic():
            slot = ScheduledSyncSlot.objects.select_for_update().filter(name=name).first()
            # Claimed by a concurrent tick in the meantime
            if slot is None or not _is_due(slot, now):
                return False

            slot.last_run_at = now
            slot.next_run_at = now + timedelta(seconds=slot.interval_seconds)
            slot.save(update_fields=["last_run_at", "next_run_at"])
            return True


class AutoSyncScheduler:
    """Keeps the auto-sync slot in line with the configured frequency and fires it"""

    def __init__(
        self,
        registrar: PeriodicJobRegistrar | None = None,
        runner_factory: Callable[[], AutoSyncRunner] | None = None,
    ):
        self.registrar = registrar or DatabaseJobRegistrar()
        self.runner_factory = runner_factory or AutoSyncRunner

    def apply_frequency(self, frequency: SyncFrequency | int, now: datetime | None = None) -> None:
        """
        Register the slot for ``frequency``, or cancel it when disabled

        A new registration replaces the previous one and is due right away.
        """
        frequency = SyncFrequency(frequency)

        if frequency == SyncFrequency.DISABLED:
            self.registrar.cancel(AUTO_SYNC_SLOT_NAME)
            logger.info("Auto-sync disabled, periodic slot cancelled")
            return

        interval = AUTO_SYNC_INTERVALS[frequency]
        self.registrar.register(AUTO_SYNC_SLOT_NAME, interval, now or timezone.now())
        logger.info(f"Auto-sync slot registered every {interval} ({frequency.name})")

    def fire_if_due(
        self,
        is_connected: Callable[[], bool],
        now: datetime | None = None,
    ) -> AutoSyncRunResult | None:
        """
        Run the auto-sync job if its slot is due and ``is_connected()`` holds

        Returns:
            The run result, or None when nothing was fired
        """
        now = now or timezone.now()

        if not self.registrar.claim_due(AUTO_SYNC_SLOT_NAME, now, is_connected):
            return None

        return self.runner_factory().run(now)


def on_sync_frequency_changed(sender, frequency: SyncFrequency, **kwargs) -> None:
    """Signal receiver for ``base.preferences.sync_frequency_changed``"""
    AutoSyncScheduler().apply_frequency(frequency)
