"""
Unit tests for chunked Observation upload
"""
from unittest.mock import Mock

import pytest
import requests

from publishers.fhir.health_data_publisher import HealthDataPublisher, UploadResult


def make_observations(count):
    return [{"resourceType": "Observation", "id": f"obs-{i}"} for i in range(count)]


def accepted(bundle):
    return {"entry": [{"response": {"status": "201 Created"}} for _ in bundle["entry"]]}


@pytest.fixture
def publisher(mock_fhir_client):
    return HealthDataPublisher(fhir_client=mock_fhir_client)


class TestUploadResult:
    """Test UploadResult"""

    def test_defaults(self):
        result = UploadResult(total_observations=3)

        assert result.errors == []
        assert result.truncated is False
        assert result.success is True

    def test_failed_chunk_truncates(self):
        result = UploadResult(total_observations=3, failed_chunk=1)

        assert result.truncated is True
        assert result.success is False


class TestHealthDataPublisher:
    """Test HealthDataPublisher"""

    def test_chunks_in_order(self, publisher, mock_fhir_client):
        """1200 observations go out as 500, 500, 200 in order"""
        observations = make_observations(1200)

        result = publisher.upload_observations(observations, batch_size=500)

        bundles = [call.args[0] for call in mock_fhir_client.transaction.call_args_list]
        assert [len(bundle["entry"]) for bundle in bundles] == [500, 500, 200]
        assert bundles[0]["entry"][0]["resource"]["id"] == "obs-0"
        assert bundles[1]["entry"][0]["resource"]["id"] == "obs-500"
        assert bundles[2]["entry"][-1]["resource"]["id"] == "obs-1199"
        assert result.uploaded_count == 1200
        assert result.chunks_total == 3
        assert result.chunks_uploaded == 3
        assert result.success is True

    def test_default_batch_size_from_settings(self, publisher, mock_fhir_client, settings):
        settings.BATCH_SIZES = {"PUBLISHER": 2}

        result = publisher.upload_observations(make_observations(5))

        assert mock_fhir_client.transaction.call_count == 3
        assert result.uploaded_count == 5

    def test_stops_at_failed_chunk(self, publisher, mock_fhir_client):
        """A failing second chunk leaves 500 uploaded and the third never sent"""
        mock_fhir_client.transaction.side_effect = [
            accepted({"entry": [None] * 500}),
            requests.exceptions.ConnectionError("connection reset"),
            accepted({"entry": [None] * 200}),
        ]
        callback = Mock()

        result = publisher.upload_observations(make_observations(1200), on_chunk_uploaded=callback, batch_size=500)

        assert mock_fhir_client.transaction.call_count == 2
        assert result.uploaded_count == 500
        assert result.failed_chunk == 2
        assert result.truncated is True
        assert len(result.errors) == 1
        callback.assert_called_once_with(500)

    def test_non_success_entries_fail_the_chunk(self, publisher, mock_fhir_client):
        mock_fhir_client.transaction.side_effect = lambda bundle: {
            "entry": [{"response": {"status": "400 Bad Request"}} for _ in bundle["entry"]]
        }

        result = publisher.upload_observations(make_observations(3), batch_size=10)

        assert result.uploaded_count == 0
        assert result.failed_chunk == 1
        assert "non-success" in result.errors[0]

    def test_callback_receives_running_total(self, publisher):
        callback = Mock()

        publisher.upload_observations(make_observations(5), on_chunk_uploaded=callback, batch_size=2)

        assert [call.args[0] for call in callback.call_args_list] == [2, 4, 5]

    def test_callback_failure_stops_upload(self, publisher, mock_fhir_client):
        callback = Mock(side_effect=RuntimeError("database locked"))

        result = publisher.upload_observations(make_observations(4), on_chunk_uploaded=callback, batch_size=2)

        assert mock_fhir_client.transaction.call_count == 1
        assert result.uploaded_count == 2
        assert result.truncated is True

    def test_empty_upload(self, publisher, mock_fhir_client):
        result = publisher.upload_observations([])

        mock_fhir_client.transaction.assert_not_called()
        assert result.uploaded_count == 0
        assert result.chunks_total == 0
        assert result.success is True

    def test_invalid_batch_size(self, publisher):
        with pytest.raises(ValueError):
            publisher.upload_observations(make_observations(1), batch_size=0)
