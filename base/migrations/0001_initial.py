from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SyncedRecord",
            fields=[
                (
                    "record_id",
                    models.CharField(db_column="recordId", max_length=255, primary_key=True, serialize=False),
                ),
                (
                    "measured_at",
                    models.BigIntegerField(
                        db_column="measuredAt", db_index=True, help_text="Measurement time in epoch milliseconds"
                    ),
                ),
            ],
            options={
                "db_table": "synced_records",
            },
        ),
        migrations.CreateModel(
            name="HistoryRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.BigIntegerField(help_text="Completion time in epoch milliseconds")),
                ("data_type", models.CharField(db_column="dataType", max_length=64)),
                ("data_point_count", models.IntegerField(db_column="dataPointCount")),
                ("period_start", models.BigIntegerField(db_column="periodStart")),
                ("period_end", models.BigIntegerField(db_column="periodEnd")),
                (
                    "source",
                    models.CharField(choices=[("manual", "Manual"), ("auto", "Auto-Sync")], max_length=16),
                ),
            ],
            options={
                "db_table": "history_records",
                "ordering": ["-timestamp"],
            },
        ),
        migrations.CreateModel(
            name="SyncSettings",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("allow_duplicates", models.BooleanField(default=False)),
                (
                    "cleanup_age_days",
                    models.PositiveIntegerField(
                        default=0, help_text="Purge dedup marks older than this many days (0 disables cleanup)"
                    ),
                ),
                (
                    "auto_sync_frequency",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="0 disabled, 1 every 15 minutes, 2 hourly, 3 daily, 4 weekly, 5 monthly"
                    ),
                ),
                ("auto_sync_kinds", models.JSONField(blank=True, default=list)),
            ],
            options={
                "db_table": "sync_settings",
            },
        ),
        migrations.CreateModel(
            name="PatientProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("given_name", models.CharField(default="Test", max_length=255)),
                ("family_name", models.CharField(default="Patient", max_length=255)),
                (
                    "remote_id",
                    models.CharField(
                        blank=True, help_text="Patient id assigned by the FHIR server", max_length=255, null=True
                    ),
                ),
            ],
            options={
                "db_table": "patient_profile",
            },
        ),
        migrations.CreateModel(
            name="ScheduledSyncSlot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=64, unique=True)),
                ("interval_seconds", models.PositiveIntegerField()),
                ("next_run_at", models.DateTimeField()),
                ("last_run_at", models.DateTimeField(blank=True, null=True)),
                ("requires_network", models.BooleanField(default=True)),
                ("registered_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "scheduled_sync_slots",
            },
        ),
    ]
