"""
Typed getters and setters over the persisted sync and patient preferences

Changing the auto-sync frequency sends ``sync_frequency_changed`` so the
scheduler can re-register its periodic slot.
"""
import logging

from django.dispatch import Signal

from base.models import PatientProfile, SyncSettings
from ingestors.health_data_constants import RecordKind, SyncFrequency

logger = logging.getLogger(__name__)

# Sent with ``frequency`` (SyncFrequency) whenever the stored frequency changes
sync_frequency_changed = Signal()


class SyncPreferences:
    """Sync configuration surface"""

    def _load(self) -> SyncSettings:
        return SyncSettings.load()

    def get_allow_duplicates(self) -> bool:
        return self._load().allow_duplicates

    def set_allow_duplicates(self, allow: bool) -> None:
        settings_row = self._load()
        settings_row.allow_duplicates = allow
        settings_row.save(update_fields=["allow_duplicates"])

    def get_cleanup_age_days(self) -> int:
        return self._load().cleanup_age_days

    def set_cleanup_age_days(self, days: int) -> None:
        if days < 0:
            raise ValueError("Cleanup age must not be negative")
        settings_row = self._load()
        settings_row.cleanup_age_days = days
        settings_row.save(update_fields=["cleanup_age_days"])

    def get_auto_sync_frequency(self) -> SyncFrequency:
        return SyncFrequency(self._load().auto_sync_frequency)

    def set_auto_sync_frequency(self, frequency: SyncFrequency | int) -> None:
        frequency = SyncFrequency(frequency)
        settings_row = self._load()
        if settings_row.auto_sync_frequency == frequency:
            return

        settings_row.auto_sync_frequency = int(frequency)
        settings_row.save(update_fields=["auto_sync_frequency"])

        logger.info(f"Auto-sync frequency changed to {frequency.name}")
        sync_frequency_changed.send(sender=self.__class__, frequency=frequency)

    def get_auto_sync_kinds(self) -> list[str]:
        """Stored kind values; may contain values no longer known"""
        return list(self._load().auto_sync_kinds)

    def set_auto_sync_kinds(self, kinds: list[RecordKind | str]) -> None:
        values = sorted({RecordKind.parse(kind).value for kind in kinds})
        settings_row = self._load()
        settings_row.auto_sync_kinds = values
        settings_row.save(update_fields=["auto_sync_kinds"])


class PatientPreferences:
    """Locally stored patient identity"""

    def _load(self) -> PatientProfile:
        return PatientProfile.load()

    def get_name(self) -> tuple[str, str]:
        profile = self._load()
        return profile.given_name, profile.family_name

    def set_name(self, given_name: str, family_name: str) -> None:
        """Store a new name; the next sync creates a new remote Patient"""
        profile = self._load()
        if (profile.given_name, profile.family_name) == (given_name, family_name):
            return

        profile.given_name = given_name
        profile.family_name = family_name
        profile.remote_id = None
        profile.save()

    def get_remote_id(self) -> str | None:
        return self._load().remote_id or None

    def set_remote_id(self, remote_id: str) -> None:
        profile = self._load()
        profile.remote_id = remote_id
        profile.save(update_fields=["remote_id"])

    def clear_remote_id(self) -> None:
        profile = self._load()
        profile.remote_id = None
        profile.save(update_fields=["remote_id"])
