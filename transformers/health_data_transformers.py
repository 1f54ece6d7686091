"""
FHIR R4 transformers for health records

Each record kind maps to one or more Observation resources. Multi-sample
records (heart rate samples, sleep stages) yield one Observation per sample.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from ingestors.health_data_constants import (
    OBSERVATION_CATEGORY_DISPLAY, RECORD_KIND_CODINGS, ObservationCategory, RecordKind
)
from ingestors.health_records import (
    BasalBodyTemperatureRecord, BasalMetabolicRateRecord, BodyFatRecord, BodyTemperatureRecord,
    DistanceRecord, HealthRecord, HeartRateRecord, HeartRateVariabilityRecord, OxygenSaturationRecord,
    RespiratoryRateRecord, RestingHeartRateRecord, SleepSessionRecord, StepsRecord, Vo2MaxRecord
)
from .base_fhir_transformer import BaseFHIRTransformer


logger = logging.getLogger(__name__)


class HealthRecordTransformer(BaseFHIRTransformer):
    """Transforms health records to FHIR R4 Observation resources"""

    def transform(self, patient_id: str, kind: RecordKind | str, record: HealthRecord) -> list[dict[str, Any]]:
        """
        Map one record of ``kind`` to Observations for ``patient_id``

        A record whose type does not match ``kind``, an unknown kind, or any
        error while mapping yields an empty list. Nothing is raised.
        """
        try:
            observations = self._transform_record(patient_id, RecordKind(kind), record)
        except Exception as e:
            logger.error(f"Failed record mapping for {kind}: {e}")
            return []

        if not observations:
            logger.warning(f"No observations mapped from {type(record).__name__} declared as {kind}")
        else:
            self.log_transformation("Observation", f"{kind} record {record.record_id}")

        return observations

    def _transform_record(self, patient_id: str, kind: RecordKind, record: HealthRecord) -> list[dict[str, Any]]:
        match kind, record:
            case RecordKind.BASAL_BODY_TEMPERATURE, BasalBodyTemperatureRecord():
                return [self._vital(patient_id, kind, record.temperature_celsius, record.time)]
            case RecordKind.BASAL_METABOLIC_RATE, BasalMetabolicRateRecord():
                return [self._vital(patient_id, kind, record.kilocalories_per_day, record.time)]
            case RecordKind.BODY_FAT, BodyFatRecord():
                return [self._vital(patient_id, kind, record.percentage, record.time)]
            case RecordKind.BODY_TEMPERATURE, BodyTemperatureRecord():
                return [self._vital(patient_id, kind, record.temperature_celsius, record.time)]
            case RecordKind.DISTANCE, DistanceRecord():
                return [self._activity(patient_id, kind, record.distance_meters, record.start_time, record.end_time)]
            case RecordKind.HEART_RATE, HeartRateRecord():
                return [
                    self._vital(patient_id, kind, sample.beats_per_minute, sample.time)
                    for sample in record.samples
                ]
            case RecordKind.HEART_RATE_VARIABILITY, HeartRateVariabilityRecord():
                return [self._vital(patient_id, kind, record.rmssd_millis, record.time)]
            case RecordKind.OXYGEN_SATURATION, OxygenSaturationRecord():
                return [self._vital(patient_id, kind, record.percentage, record.time)]
            case RecordKind.RESPIRATORY_RATE, RespiratoryRateRecord():
                return [self._vital(patient_id, kind, record.rate, record.time)]
            case RecordKind.RESTING_HEART_RATE, RestingHeartRateRecord():
                return [self._vital(patient_id, kind, record.beats_per_minute, record.time)]
            case RecordKind.SLEEP, SleepSessionRecord():
                return [
                    self._activity(patient_id, kind, stage.stage, stage.start_time, stage.end_time)
                    for stage in record.stages
                ]
            case RecordKind.STEPS, StepsRecord():
                return [self._activity(patient_id, kind, record.count, record.start_time, record.end_time)]
            case RecordKind.VO2_MAX, Vo2MaxRecord():
                return [self._vital(patient_id, kind, record.vo2_milliliters_per_minute_kilogram, record.time)]
            case _:
                return []

    def _vital(self, patient_id: str, kind: RecordKind, value: float, time: datetime) -> dict[str, Any]:
        """Observation with an instant effective time"""
        observation = self._base_observation(patient_id, kind, value)
        observation["effectiveDateTime"] = self.create_fhir_timestamp(time)
        return observation

    def _activity(
        self, patient_id: str, kind: RecordKind, value: float, start: datetime, end: datetime
    ) -> dict[str, Any]:
        """Observation with a start/end effective period"""
        observation = self._base_observation(patient_id, kind, value)
        observation["effectivePeriod"] = {
            "start": self.create_fhir_timestamp(start),
            "end": self.create_fhir_timestamp(end),
        }
        return observation

    def _base_observation(self, patient_id: str, kind: RecordKind, value: float) -> dict[str, Any]:
        coding = RECORD_KIND_CODINGS[kind]
        category: ObservationCategory = coding.category

        return {
            "resourceType": "Observation",
            "status": "final",
            "category": [{
                "coding": [{
                    "system": self.FHIR_SYSTEMS['OBSERVATION_CATEGORY'],
                    "code": category.value,
                    "display": OBSERVATION_CATEGORY_DISPLAY[category]
                }]
            }],
            "code": self.create_fhir_coding(self.FHIR_SYSTEMS['LOINC'], coding.loinc_code, coding.display),
            "subject": self.create_subject_reference(patient_id),
            "valueQuantity": self.create_quantity(self.safe_convert_value(value), coding.unit),
        }


class HealthDataBundle:
    """Creates FHIR Bundles for health data resources"""

    @staticmethod
    def create_transaction_bundle(observations: list[dict[str, Any]]) -> dict[str, Any]:
        """Create a FHIR transaction bundle that POSTs every observation"""
        entries = []
        for observation in observations:
            entry = {
                "fullUrl": f"urn:uuid:{uuid.uuid4()}",
                "resource": observation,
                "request": {
                    "method": "POST",
                    "url": "Observation"
                }
            }
            entries.append(entry)

        bundle = {
            "resourceType": "Bundle",
            "type": "transaction",
            "timestamp": datetime.now(timezone.utc).replace(tzinfo=None).isoformat() + "Z",
            "entry": entries,
        }

        return bundle
