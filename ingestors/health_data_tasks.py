"""
Huey tasks for health data synchronization

The tasks only adapt the Huey consumer to the scheduler, runner and service;
all sync behavior lives in those classes.
"""
import logging
from typing import Any

from huey import crontab
from health_sync.settings import HUEY

from publishers.fhir.client import FHIRClient

from .health_data_constants import ManualSyncPeriod
from .health_data_service import HealthDataSyncService
from .scheduler import AutoSyncScheduler


logger = logging.getLogger(__name__)


@HUEY.periodic_task(crontab(minute="*/15"), priority=2)  # Finest auto-sync granularity
def auto_sync_tick() -> dict[str, Any] | None:
    """Fire the auto-sync slot when it is due and the FHIR server is reachable"""
    try:
        fhir_client = FHIRClient()
        result = AutoSyncScheduler().fire_if_due(is_connected=fhir_client.is_reachable)
    except Exception as e:
        logger.error(f"Auto-sync tick failed: {e}", exc_info=True)
        return {"error": str(e), "success": False}

    if result is None:
        return None

    return {
        "status": result.status.value,
        "frequency": result.frequency.name,
        "uploaded_count": result.uploaded_count,
        "outcomes": [outcome.to_dict() for outcome in result.outcomes],
        "errors": result.errors,
    }


@HUEY.periodic_task(crontab(hour="3", minute="0"), priority=5)  # Nightly cleanup at 3 AM
def cleanup_synced_records() -> dict[str, Any]:
    """Purge dedup marks older than the configured cleanup age"""
    try:
        deleted = HealthDataSyncService().cleanup_synced_records()
    except Exception as e:
        logger.error(f"Synced record cleanup failed: {e}", exc_info=True)
        return {"error": str(e), "success": False}

    return {"deleted": deleted, "success": True}


@HUEY.on_startup()
def cleanup_on_startup() -> None:
    """Run the cleanup once when a consumer starts"""
    result = cleanup_synced_records.call_local()
    logger.info(f"Startup cleanup: {result}")


@HUEY.task(priority=1)  # High priority for user-triggered sync
def sync_kind_in_background(kind: str, period: str = ManualSyncPeriod.LAST_WEEK.value) -> dict[str, Any]:
    """
    Manual sync of one kind, queued instead of run inside the request

    Args:
        kind: Record kind value or label
        period: ManualSyncPeriod value

    Returns:
        Sync outcome dictionary
    """
    logger.info(f"Starting background manual sync of {kind} over {period}")

    try:
        outcome = HealthDataSyncService().sync_manual(kind, ManualSyncPeriod(period))
    except Exception as e:
        error_msg = f"Unexpected error in background sync of {kind}: {e}"
        logger.error(error_msg)
        return {"error": error_msg, "success": False}

    return outcome.to_dict()
