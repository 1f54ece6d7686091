"""
Base FHIR transformer with the common FHIR structure helpers
"""
import logging
from datetime import datetime, timezone
from typing import Any, Union
from abc import ABC, abstractmethod


logger = logging.getLogger(__name__)


class BaseFHIRTransformer(ABC):
    """
    Base FHIR transformer with shared coding, reference and timestamp helpers
    """

    # Common FHIR system URLs
    FHIR_SYSTEMS = {
        'LOINC': "http://loinc.org",
        'UCUM': "http://unitsofmeasure.org",
        'OBSERVATION_CATEGORY': "http://terminology.hl7.org/CodeSystem/observation-category",
    }

    @abstractmethod
    def transform(self, *args, **kwargs) -> Any:
        """Abstract method for transformation - must be implemented by subclasses"""
        pass

    def create_fhir_coding(self, system: str, code: str, display: str) -> dict[str, Any]:
        """FHIR CodeableConcept with a single coding"""
        return {
            "coding": [{
                "system": system,
                "code": code,
                "display": display
            }],
            "text": display
        }

    def create_subject_reference(self, patient_id: str) -> dict[str, str]:
        return {"reference": f"Patient/{patient_id}"}

    def create_quantity(self, value: float, unit: str) -> dict[str, Any]:
        """
        FHIR Quantity with the unit string used as both unit and UCUM code
        """
        return {
            "value": value,
            "unit": unit,
            "system": self.FHIR_SYSTEMS['UCUM'],
            "code": unit
        }

    def safe_convert_value(self, value: Union[float, str, int], target_type: type = float):
        """
        Safe value conversion

        Raises:
            ValueError: if the value cannot be converted
        """
        if isinstance(value, bool):
            raise ValueError(f"Not a numeric value: {value!r}")
        if isinstance(value, (int, float)):
            return target_type(value)
        if isinstance(value, str):
            return target_type(float(value)) if target_type is int else target_type(value)
        raise ValueError(f"Not a numeric value: {value!r}")

    def create_fhir_timestamp(self, dt: datetime | None = None) -> str:
        """
        FHIR instant in UTC with Z suffix

        Naive datetimes are taken to be UTC already.
        """
        timestamp = dt or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"

    def log_transformation(self, resource_type: str, identifier: str):
        logger.debug(f"Transformed {identifier} to FHIR {resource_type}")
