"""
Health data constants and models for the sync system
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from enum import IntEnum, StrEnum

from django.utils import timezone

from .error_handling import InvalidKindError


class RecordKind(StrEnum):
    """Kinds of health records we can read and sync"""

    BASAL_BODY_TEMPERATURE = "basal_body_temperature"
    BASAL_METABOLIC_RATE = "basal_metabolic_rate"
    BODY_FAT = "body_fat"
    BODY_TEMPERATURE = "body_temperature"
    DISTANCE = "distance"
    HEART_RATE = "heart_rate"
    HEART_RATE_VARIABILITY = "heart_rate_variability"
    OXYGEN_SATURATION = "oxygen_saturation"
    RESPIRATORY_RATE = "respiratory_rate"
    RESTING_HEART_RATE = "resting_heart_rate"
    SLEEP = "sleep"
    STEPS = "steps"
    VO2_MAX = "vo2_max"

    @property
    def label(self) -> str:
        return RECORD_KIND_LABELS[self]

    @classmethod
    def parse(cls, value: "str | RecordKind") -> "RecordKind":
        """
        Resolve a kind from its value or its human-readable label

        Raises:
            InvalidKindError: if the value names no known kind
        """
        if isinstance(value, cls):
            return value

        normalized = str(value).strip().lower()
        for kind in cls:
            if normalized in (kind.value, kind.label.lower()):
                return kind

        raise InvalidKindError(f"Invalid record kind: {value}")


class ObservationCategory(StrEnum):
    """FHIR observation categories used for health records"""

    VITAL_SIGNS = "vital-signs"
    ACTIVITY = "activity"


class SyncFrequency(IntEnum):
    """How often the automatic sync runs (0 disables it)"""

    DISABLED = 0
    EVERY_15_MINUTES = 1
    HOURLY = 2
    DAILY = 3
    WEEKLY = 4
    MONTHLY = 5


class SyncSource(StrEnum):
    """Who started a sync run"""

    MANUAL = "manual"  # User-triggered
    AUTO = "auto"  # Scheduled auto-sync


class ManualSyncPeriod(StrEnum):
    """Time periods offered for manual syncs"""

    LAST_24_HOURS = "last_24_hours"
    LAST_WEEK = "last_week"
    LAST_MONTH = "last_month"

    @property
    def lookback(self) -> timedelta:
        return MANUAL_SYNC_LOOKBACKS[self]


class AutoSyncStatus(StrEnum):
    """Outcome of one scheduled auto-sync firing"""

    SUCCESS = "success"
    SKIPPED = "skipped"  # Nothing configured to sync
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class DateRange:
    """Date range for record queries (start may equal end)"""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("Start date must not be after end date")


@dataclass(slots=True, frozen=True)
class ObservationCoding:
    """How one record kind is coded as a FHIR Observation"""

    loinc_code: str
    display: str
    unit: str
    category: ObservationCategory


@dataclass(slots=True)
class SyncOutcome:
    """Result of syncing one record kind over one time window"""

    kind: RecordKind | str
    source: SyncSource
    start: datetime
    end: datetime
    records_fetched: int = 0
    records_new: int = 0
    observations_mapped: int = 0
    uploaded_count: int = 0
    records_marked: int = 0
    truncated: bool = False
    lock_contended: bool = False
    errors: list[str] | None = None
    success: bool = False
    sync_timestamp: str | None = None
    processing_time_ms: int = 0

    def __post_init__(self):
        if self.errors is None:
            self.errors = []
        if self.sync_timestamp is None:
            self.sync_timestamp = timezone.now().isoformat()

    def to_dict(self) -> dict:
        return {
            "kind": str(self.kind),
            "source": self.source.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "records_fetched": self.records_fetched,
            "records_new": self.records_new,
            "observations_mapped": self.observations_mapped,
            "uploaded_count": self.uploaded_count,
            "records_marked": self.records_marked,
            "truncated": self.truncated,
            "lock_contended": self.lock_contended,
            "errors": self.errors,
            "success": self.success,
            "sync_timestamp": self.sync_timestamp,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass(slots=True)
class AutoSyncRunResult:
    """Aggregated result of one auto-sync firing"""

    status: AutoSyncStatus
    frequency: SyncFrequency
    outcomes: list[SyncOutcome] | None = None
    errors: list[str] | None = None

    def __post_init__(self):
        if self.outcomes is None:
            self.outcomes = []
        if self.errors is None:
            self.errors = []

    @property
    def uploaded_count(self) -> int:
        return sum(outcome.uploaded_count for outcome in self.outcomes)


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime"""
    return int(value.timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=dt_timezone.utc)


RECORD_KIND_LABELS = {
    RecordKind.BASAL_BODY_TEMPERATURE: "Basal Body Temperature",
    RecordKind.BASAL_METABOLIC_RATE: "Basal Metabolic Rate",
    RecordKind.BODY_FAT: "Body Fat",
    RecordKind.BODY_TEMPERATURE: "Body Temperature",
    RecordKind.DISTANCE: "Distance",
    RecordKind.HEART_RATE: "Heart Rate",
    RecordKind.HEART_RATE_VARIABILITY: "Heart Rate Variability",
    RecordKind.OXYGEN_SATURATION: "Oxygen Saturation",
    RecordKind.RESPIRATORY_RATE: "Respiratory Rate",
    RecordKind.RESTING_HEART_RATE: "Resting Heart Rate",
    RecordKind.SLEEP: "Sleep",
    RecordKind.STEPS: "Steps",
    RecordKind.VO2_MAX: "VO2 Max",
}

# LOINC coding, unit and category per record kind
RECORD_KIND_CODINGS = {
    RecordKind.BASAL_BODY_TEMPERATURE: ObservationCoding(
        "8310-5", "Basal body temperature", "°C", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.BASAL_METABOLIC_RATE: ObservationCoding(
        "69429-9", "Basal metabolic rate", "kcal/day", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.BODY_FAT: ObservationCoding("41982-0", "Body fat", "%", ObservationCategory.VITAL_SIGNS),
    RecordKind.BODY_TEMPERATURE: ObservationCoding(
        "8310-5", "Body temperature", "°C", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.DISTANCE: ObservationCoding("55430-3", "Distance traveled", "meters", ObservationCategory.ACTIVITY),
    RecordKind.HEART_RATE: ObservationCoding("8867-4", "Heart rate", "beats/minute", ObservationCategory.VITAL_SIGNS),
    RecordKind.HEART_RATE_VARIABILITY: ObservationCoding(
        "80404-7", "Heart rate variability", "ms", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.OXYGEN_SATURATION: ObservationCoding(
        "59408-5", "Oxygen saturation", "%", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.RESPIRATORY_RATE: ObservationCoding(
        "9279-1", "Respiratory rate", "breaths/min", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.RESTING_HEART_RATE: ObservationCoding(
        "40443-4", "Resting heart rate", "beats/minute", ObservationCategory.VITAL_SIGNS
    ),
    RecordKind.SLEEP: ObservationCoding("93832-4", "Sleep session", "sleep stage", ObservationCategory.ACTIVITY),
    RecordKind.STEPS: ObservationCoding("55423-8", "Step count", "steps", ObservationCategory.ACTIVITY),
    RecordKind.VO2_MAX: ObservationCoding("60842-2", "VO2 max", "mL/kg/min", ObservationCategory.VITAL_SIGNS),
}

OBSERVATION_CATEGORY_DISPLAY = {
    ObservationCategory.VITAL_SIGNS: "Vital Signs",
    ObservationCategory.ACTIVITY: "Activity",
}

MANUAL_SYNC_LOOKBACKS = {
    ManualSyncPeriod.LAST_24_HOURS: timedelta(days=1),
    ManualSyncPeriod.LAST_WEEK: timedelta(days=7),
    ManualSyncPeriod.LAST_MONTH: timedelta(days=30),
}

MANUAL_SYNC_PERIOD_LABELS = {
    ManualSyncPeriod.LAST_24_HOURS: "Last 24 hours",
    ManualSyncPeriod.LAST_WEEK: "Last week",
    ManualSyncPeriod.LAST_MONTH: "Last month",
}

# Interval between scheduled firings per frequency
AUTO_SYNC_INTERVALS = {
    SyncFrequency.EVERY_15_MINUTES: timedelta(minutes=15),
    SyncFrequency.HOURLY: timedelta(hours=1),
    SyncFrequency.DAILY: timedelta(days=1),
    SyncFrequency.WEEKLY: timedelta(days=7),
    SyncFrequency.MONTHLY: timedelta(days=31),
}

AUTO_SYNC_SLOT_NAME = "auto-sync"
