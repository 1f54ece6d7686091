"""
Patient Publisher: keeps a remote Patient for the local patient profile
"""

import logging

from base.preferences import PatientPreferences

from .client import FHIRClient

logger = logging.getLogger(__name__)


class PatientPublisher:
    """
    Resolves the remote Patient id, creating the Patient when needed

    Not safe for concurrent callers: two calls racing on an empty profile can
    create two Patients. Callers serialize through the sync lock.
    """

    def __init__(self, fhir_client: FHIRClient | None = None, preferences: PatientPreferences | None = None):
        self.fhir_client = fhir_client or FHIRClient()
        self.preferences = preferences or PatientPreferences()

    def get_or_create_patient_id(self) -> str:
        """
        Return the stored Patient id if the server still has it, else create one

        Raises:
            requests.exceptions.RequestException: if the Patient cannot be created
        """
        patient_id = self.preferences.get_remote_id()

        if patient_id:
            try:
                self.fhir_client.get_resource("Patient", patient_id)
                return patient_id
            except Exception as e:
                logger.warning(f"Stored Patient/{patient_id} could not be confirmed, creating a new one: {e}")
                self.preferences.clear_remote_id()

        return self._create_patient()

    def _create_patient(self) -> str:
        given_name, family_name = self.preferences.get_name()
        patient = {
            "resourceType": "Patient",
            "name": [{
                "given": [given_name],
                "family": family_name,
            }],
        }

        created = self.fhir_client.create_resource("Patient", patient)
        patient_id = created.get("id")
        if not patient_id:
            raise ValueError("FHIR server returned a Patient without an id")

        self.preferences.set_remote_id(patient_id)
        logger.info(f"Created Patient/{patient_id} for {given_name} {family_name}")
        return patient_id
