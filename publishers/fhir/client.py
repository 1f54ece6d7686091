"""
FHIR Client for interacting with FHIR server
"""
import logging
import time
import requests
from django.conf import settings
from typing import Dict, Optional

from metrics.collectors import metrics

logger = logging.getLogger(__name__)


class FHIRClient:
    """Client for interacting with FHIR server"""

    def __init__(self, base_url: Optional[str] = None, session: Optional[requests.Session] = None):
        self.base_url = base_url or settings.FHIR_BASE_URL
        self.auth_header = settings.FHIR_AUTH_TOKEN_HEADER
        self.auth_value = settings.FHIR_AUTH_TOKEN_VALUE
        self.timeout = (
            settings.FHIR_CLIENT_CONFIG['CONNECT_TIMEOUT'],
            settings.FHIR_CLIENT_CONFIG['READ_TIMEOUT'],
        )
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("FHIR_BASE_URL not configured")

        # Ensure base_url ends with /
        if not self.base_url.endswith('/'):
            self.base_url += '/'

    def _get_headers(self) -> Dict[str, str]:
        """Get common headers for FHIR requests"""
        headers = {
            'Accept': 'application/fhir+json',
            'Content-Type': 'application/fhir+json',
            'Cache-Control': 'no-cache, no-store, must-revalidate',
        }
        if self.auth_header and self.auth_value:
            headers[self.auth_header] = self.auth_value
        return headers

    def _request(self, method: str, url: str, operation: str, resource_type: str, **kwargs) -> requests.Response:
        """Send one request, recording its outcome and latency"""
        start_time = time.time()
        try:
            response = self.session.request(
                method, url, headers=self._get_headers(), timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except requests.exceptions.RequestException:
            metrics.record_fhir_operation(operation, resource_type, "error", time.time() - start_time)
            raise

        metrics.record_fhir_operation(operation, resource_type, "success", time.time() - start_time)
        return response

    def get_resource(self, resource_type: str, resource_id: str) -> Dict:
        """
        Get a specific FHIR resource by ID

        Args:
            resource_type: Type of FHIR resource
            resource_id: Resource ID

        Returns:
            FHIR resource
        """
        url = f"{self.base_url}{resource_type}/{resource_id}"

        try:
            return self._request("GET", url, "read", resource_type).json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error getting {resource_type}/{resource_id}: {e}")
            raise

    def create_resource(self, resource_type: str, resource_data: Dict) -> Dict:
        """
        Create a new FHIR resource

        Args:
            resource_type: Type of FHIR resource
            resource_data: Resource data in FHIR format

        Returns:
            Created FHIR resource
        """
        url = f"{self.base_url}{resource_type}"

        # Ensure resourceType is set correctly
        resource_data['resourceType'] = resource_type

        try:
            return self._request("POST", url, "create", resource_type, json=resource_data).json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error creating {resource_type}: {e}")
            if e.response is not None and hasattr(e.response, 'text'):
                logger.error(f"Response: {e.response.text}")
            raise

    def transaction(self, bundle: Dict) -> Dict:
        """
        Submit a transaction Bundle; the server accepts or rejects it as a whole

        Args:
            bundle: FHIR Bundle of type transaction

        Returns:
            The transaction-response Bundle
        """
        try:
            return self._request("POST", self.base_url, "transaction", "Bundle", json=bundle).json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error submitting transaction of {len(bundle.get('entry', []))} entries: {e}")
            if e.response is not None and hasattr(e.response, 'text'):
                logger.error(f"Response: {e.response.text}")
            raise

    def is_reachable(self) -> bool:
        """Whether the server answers its capability statement"""
        try:
            self._request("GET", f"{self.base_url}metadata", "capabilities", "CapabilityStatement")
            return True
        except requests.exceptions.RequestException as e:
            logger.warning(f"FHIR server not reachable: {e}")
            return False
