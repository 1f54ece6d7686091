from django.db import models


class SyncedRecord(models.Model):
    """
    Dedup mark: the provider record with this id has been uploaded.
    """

    record_id: str = models.CharField(primary_key=True, max_length=255, db_column="recordId")  # type: ignore[assignment]
    measured_at: int = models.BigIntegerField(
        db_column="measuredAt", db_index=True, help_text="Measurement time in epoch milliseconds"
    )  # type: ignore[assignment]

    class Meta:
        db_table = "synced_records"

    def __str__(self):
        return f"{self.record_id} @ {self.measured_at}"


class HistoryRecord(models.Model):
    """
    Append-only log of completed sync runs.
    """

    SOURCE_CHOICES = [
        ("manual", "Manual"),
        ("auto", "Auto-Sync"),
    ]

    timestamp: int = models.BigIntegerField(help_text="Completion time in epoch milliseconds")  # type: ignore[assignment]
    data_type: str = models.CharField(max_length=64, db_column="dataType")  # type: ignore[assignment]
    data_point_count: int = models.IntegerField(db_column="dataPointCount")  # type: ignore[assignment]
    period_start: int = models.BigIntegerField(db_column="periodStart")  # type: ignore[assignment]
    period_end: int = models.BigIntegerField(db_column="periodEnd")  # type: ignore[assignment]
    source: str = models.CharField(max_length=16, choices=SOURCE_CHOICES)  # type: ignore[assignment]

    class Meta:
        db_table = "history_records"
        ordering = ["-timestamp"]

    def __str__(self):
        return f"{self.data_type}: {self.data_point_count} points ({self.source})"


class SingletonModel(models.Model):
    """A table holding exactly one row (pk=1)."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        instance, _ = cls.objects.get_or_create(pk=1)
        return instance


class SyncSettings(SingletonModel):
    allow_duplicates: bool = models.BooleanField(default=False)  # type: ignore[assignment]
    cleanup_age_days: int = models.PositiveIntegerField(
        default=0, help_text="Purge dedup marks older than this many days (0 disables cleanup)"
    )  # type: ignore[assignment]
    auto_sync_frequency: int = models.PositiveSmallIntegerField(
        default=0, help_text="0 disabled, 1 every 15 minutes, 2 hourly, 3 daily, 4 weekly, 5 monthly"
    )  # type: ignore[assignment]
    auto_sync_kinds: list = models.JSONField(default=list, blank=True)  # type: ignore[assignment]

    class Meta:
        db_table = "sync_settings"


class PatientProfile(SingletonModel):
    given_name: str = models.CharField(max_length=255, default="Test")  # type: ignore[assignment]
    family_name: str = models.CharField(max_length=255, default="Patient")  # type: ignore[assignment]
    remote_id: str = models.CharField(
        max_length=255, blank=True, null=True, help_text="Patient id assigned by the FHIR server"
    )  # type: ignore[assignment]

    class Meta:
        db_table = "patient_profile"

    def __str__(self):
        return f"{self.given_name} {self.family_name}"


class ScheduledSyncSlot(models.Model):
    """
    Named periodic job registration, fired by the scheduler tick when due.
    """

    name: str = models.CharField(max_length=64, unique=True)  # type: ignore[assignment]
    interval_seconds: int = models.PositiveIntegerField()  # type: ignore[assignment]
    next_run_at: models.DateTimeField = models.DateTimeField()
    last_run_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    requires_network: bool = models.BooleanField(default=True)  # type: ignore[assignment]
    registered_at: models.DateTimeField = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "scheduled_sync_slots"

    def __str__(self):
        return f"{self.name} every {self.interval_seconds}s"
