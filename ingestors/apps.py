from django.apps import AppConfig


class IngestorsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ingestors"
    label = "ingestors"

    def ready(self):
        """Register Huey tasks and the scheduler's frequency-change receiver"""
        from base.preferences import sync_frequency_changed

        from . import health_data_tasks  # noqa: F401
        from .scheduler import on_sync_frequency_changed

        sync_frequency_changed.connect(on_sync_frequency_changed, dispatch_uid="auto-sync-scheduler")
