"""
Health Data Publisher: uploads Observations in transaction chunks
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from django.conf import settings

from ingestors.error_handling import FHIRTransactionError
from metrics.collectors import metrics
from transformers.health_data_transformers import HealthDataBundle

from .client import FHIRClient

logger = logging.getLogger(__name__)

# Called after each accepted chunk with the running count of accepted observations
ChunkUploadedCallback = Callable[[int], None]


@dataclass(slots=True)
class UploadResult:
    """Outcome of a chunked upload"""

    total_observations: int
    uploaded_count: int = 0
    chunks_total: int = 0
    chunks_uploaded: int = 0
    failed_chunk: int | None = None
    errors: list[str] | None = None

    def __post_init__(self):
        if self.errors is None:
            self.errors = []

    @property
    def truncated(self) -> bool:
        return self.failed_chunk is not None

    @property
    def success(self) -> bool:
        return not self.truncated


class HealthDataPublisher:
    """Publishes health observations to the FHIR server"""

    def __init__(self, fhir_client: FHIRClient | None = None):
        self.fhir_client = fhir_client or FHIRClient()

    def upload_observations(
        self,
        observations: list[dict[str, Any]],
        on_chunk_uploaded: ChunkUploadedCallback | None = None,
        batch_size: int | None = None,
    ) -> UploadResult:
        """
        Upload observations as ordered transaction bundles of ``batch_size``

        Processing stops at the first chunk that fails: it is not retried and
        later chunks are never sent. ``on_chunk_uploaded`` runs after each
        accepted chunk, before the next one is sent.

        Args:
            observations: FHIR Observation resources, in upload order
            on_chunk_uploaded: Callback receiving the accepted observation count so far
            batch_size: Observations per transaction (defaults to BATCH_SIZES["PUBLISHER"])

        Returns:
            UploadResult with the number of observations actually accepted
        """
        if batch_size is None:
            batch_size = settings.BATCH_SIZES["PUBLISHER"]
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        result = UploadResult(total_observations=len(observations))
        result.chunks_total = (len(observations) + batch_size - 1) // batch_size

        for i in range(0, len(observations), batch_size):
            chunk = observations[i : i + batch_size]
            chunk_number = i // batch_size + 1

            try:
                self._submit_chunk(chunk)
            except Exception as e:
                error_msg = f"Chunk {chunk_number}/{result.chunks_total} of {len(chunk)} observations failed: {e}"
                logger.error(error_msg)
                metrics.record_failed_chunk()
                result.failed_chunk = chunk_number
                result.errors.append(error_msg)
                break

            result.uploaded_count += len(chunk)
            result.chunks_uploaded += 1
            logger.info(f"Chunk {chunk_number}/{result.chunks_total}: {len(chunk)} observations accepted")

            if on_chunk_uploaded is not None:
                try:
                    on_chunk_uploaded(result.uploaded_count)
                except Exception as e:
                    error_msg = f"Post-upload handling of chunk {chunk_number} failed: {e}"
                    logger.error(error_msg)
                    result.failed_chunk = chunk_number
                    result.errors.append(error_msg)
                    break

        logger.info(
            f"Health data publishing completed: {result.uploaded_count} of {result.total_observations} "
            f"observations uploaded in {result.chunks_uploaded} chunk(s)"
        )
        return result

    def _submit_chunk(self, chunk: list[dict[str, Any]]) -> dict[str, Any]:
        """Send one transaction bundle and verify every entry was created"""
        bundle = HealthDataBundle.create_transaction_bundle(chunk)
        response = self.fhir_client.transaction(bundle)

        failed_entries = [
            entry.get("response", {}).get("status", "")
            for entry in response.get("entry", [])
            if not entry.get("response", {}).get("status", "").startswith("2")
        ]
        if failed_entries:
            raise FHIRTransactionError(
                f"Transaction returned {len(failed_entries)} non-success entries: {failed_entries[:3]}"
            )

        return response
