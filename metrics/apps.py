from django.apps import AppConfig


class MetricsConfig(AppConfig):
    name = "metrics"
    verbose_name = "Sync metrics"

    def ready(self):
        """Publish application info once the registry is loaded"""
        from .collectors import initialize_metrics

        initialize_metrics()
