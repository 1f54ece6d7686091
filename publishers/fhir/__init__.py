"""
FHIR Publishers for managing FHIR resources
"""

from .client import FHIRClient
from .health_data_publisher import HealthDataPublisher, UploadResult
from .patient_publisher import PatientPublisher

__all__ = ["FHIRClient", "HealthDataPublisher", "PatientPublisher", "UploadResult"]
