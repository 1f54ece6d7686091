"""
Typed health records as read from the record provider

One frozen dataclass per record kind. Every record carries the provider's
optional record id and knows the time it was measured at.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .error_handling import ErrorType, HealthDataError
from .health_data_constants import RecordKind


@dataclass(slots=True, frozen=True, kw_only=True)
class HealthRecord:
    """Common base of all provider records"""

    record_id: str | None = None

    @property
    def measured_at(self) -> datetime | None:
        return None


@dataclass(slots=True, frozen=True, kw_only=True)
class InstantRecord(HealthRecord):
    """Record measured at a single instant"""

    time: datetime

    @property
    def measured_at(self) -> datetime | None:
        return self.time


@dataclass(slots=True, frozen=True, kw_only=True)
class IntervalRecord(HealthRecord):
    """Record aggregated over a start/end interval"""

    start_time: datetime
    end_time: datetime

    @property
    def measured_at(self) -> datetime | None:
        return self.start_time


@dataclass(slots=True, frozen=True, kw_only=True)
class BasalBodyTemperatureRecord(InstantRecord):
    temperature_celsius: float


@dataclass(slots=True, frozen=True, kw_only=True)
class BasalMetabolicRateRecord(InstantRecord):
    kilocalories_per_day: float


@dataclass(slots=True, frozen=True, kw_only=True)
class BodyFatRecord(InstantRecord):
    percentage: float


@dataclass(slots=True, frozen=True, kw_only=True)
class BodyTemperatureRecord(InstantRecord):
    temperature_celsius: float


@dataclass(slots=True, frozen=True, kw_only=True)
class DistanceRecord(IntervalRecord):
    distance_meters: float


@dataclass(slots=True, frozen=True)
class HeartRateSample:
    time: datetime
    beats_per_minute: int


@dataclass(slots=True, frozen=True, kw_only=True)
class HeartRateRecord(IntervalRecord):
    samples: tuple[HeartRateSample, ...] = field(default_factory=tuple)

    @property
    def measured_at(self) -> datetime | None:
        # First sample only; a record without samples has no measurement time
        return self.samples[0].time if self.samples else None


@dataclass(slots=True, frozen=True, kw_only=True)
class HeartRateVariabilityRecord(InstantRecord):
    rmssd_millis: float


@dataclass(slots=True, frozen=True, kw_only=True)
class OxygenSaturationRecord(InstantRecord):
    percentage: float


@dataclass(slots=True, frozen=True, kw_only=True)
class RespiratoryRateRecord(InstantRecord):
    rate: float


@dataclass(slots=True, frozen=True, kw_only=True)
class RestingHeartRateRecord(InstantRecord):
    beats_per_minute: int


@dataclass(slots=True, frozen=True)
class SleepStage:
    start_time: datetime
    end_time: datetime
    stage: int


@dataclass(slots=True, frozen=True, kw_only=True)
class SleepSessionRecord(IntervalRecord):
    stages: tuple[SleepStage, ...] = field(default_factory=tuple)

    @property
    def measured_at(self) -> datetime | None:
        return self.stages[0].start_time if self.stages else self.start_time


@dataclass(slots=True, frozen=True, kw_only=True)
class StepsRecord(IntervalRecord):
    count: int


@dataclass(slots=True, frozen=True, kw_only=True)
class Vo2MaxRecord(InstantRecord):
    vo2_milliliters_per_minute_kilogram: float


RECORD_TYPES: dict[RecordKind, type[HealthRecord]] = {
    RecordKind.BASAL_BODY_TEMPERATURE: BasalBodyTemperatureRecord,
    RecordKind.BASAL_METABOLIC_RATE: BasalMetabolicRateRecord,
    RecordKind.BODY_FAT: BodyFatRecord,
    RecordKind.BODY_TEMPERATURE: BodyTemperatureRecord,
    RecordKind.DISTANCE: DistanceRecord,
    RecordKind.HEART_RATE: HeartRateRecord,
    RecordKind.HEART_RATE_VARIABILITY: HeartRateVariabilityRecord,
    RecordKind.OXYGEN_SATURATION: OxygenSaturationRecord,
    RecordKind.RESPIRATORY_RATE: RespiratoryRateRecord,
    RecordKind.RESTING_HEART_RATE: RestingHeartRateRecord,
    RecordKind.SLEEP: SleepSessionRecord,
    RecordKind.STEPS: StepsRecord,
    RecordKind.VO2_MAX: Vo2MaxRecord,
}

# Provider payload key -> dataclass field, per kind
_VALUE_FIELDS: dict[RecordKind, dict[str, str]] = {
    RecordKind.BASAL_BODY_TEMPERATURE: {"temperatureCelsius": "temperature_celsius"},
    RecordKind.BASAL_METABOLIC_RATE: {"kilocaloriesPerDay": "kilocalories_per_day"},
    RecordKind.BODY_FAT: {"percentage": "percentage"},
    RecordKind.BODY_TEMPERATURE: {"temperatureCelsius": "temperature_celsius"},
    RecordKind.DISTANCE: {"distanceMeters": "distance_meters"},
    RecordKind.HEART_RATE_VARIABILITY: {"heartRateVariabilityMillis": "rmssd_millis"},
    RecordKind.OXYGEN_SATURATION: {"percentage": "percentage"},
    RecordKind.RESPIRATORY_RATE: {"rate": "rate"},
    RecordKind.RESTING_HEART_RATE: {"beatsPerMinute": "beats_per_minute"},
    RecordKind.STEPS: {"count": "count"},
    RecordKind.VO2_MAX: {"vo2MillilitersPerMinuteKilogram": "vo2_milliliters_per_minute_kilogram"},
}


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 instant, accepting a trailing Z"""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_health_record(kind: RecordKind, payload: dict[str, Any]) -> HealthRecord:
    """
    Build the typed record for one provider payload

    Args:
        kind: Record kind the payload was requested as
        payload: JSON object returned by the record provider

    Returns:
        The record dataclass for ``kind``

    Raises:
        HealthDataError: if the payload is missing required fields
    """
    record_type = RECORD_TYPES[kind]
    metadata = payload.get("metadata") or {}
    values: dict[str, Any] = {"record_id": metadata.get("id") or payload.get("id")}

    try:
        if issubclass(record_type, InstantRecord):
            values["time"] = parse_timestamp(payload["time"])
        elif issubclass(record_type, IntervalRecord):
            values["start_time"] = parse_timestamp(payload["startTime"])
            values["end_time"] = parse_timestamp(payload["endTime"])

        for payload_key, field_name in _VALUE_FIELDS.get(kind, {}).items():
            values[field_name] = payload[payload_key]

        if kind == RecordKind.HEART_RATE:
            values["samples"] = tuple(
                HeartRateSample(time=parse_timestamp(sample["time"]), beats_per_minute=int(sample["beatsPerMinute"]))
                for sample in payload.get("samples", [])
            )
        elif kind == RecordKind.SLEEP:
            values["stages"] = tuple(
                SleepStage(
                    start_time=parse_timestamp(stage["startTime"]),
                    end_time=parse_timestamp(stage["endTime"]),
                    stage=int(stage["stage"]),
                )
                for stage in payload.get("stages", [])
            )
    except (KeyError, TypeError, ValueError) as e:
        raise HealthDataError(
            f"Malformed {kind.value} record: {e}", ErrorType.VALIDATION_ERROR, provider="health_connect"
        ) from e

    return record_type(**values)
