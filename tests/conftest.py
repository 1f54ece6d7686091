"""
Shared fixtures for the health sync tests
"""
from contextlib import nullcontext
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from django.core.cache import cache

from publishers.fhir.client import FHIRClient


@pytest.fixture(autouse=True)
def clear_cache():
    """Throttle counters live in the cache; start every test from zero"""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    return datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def no_lock():
    """Lock factory that never contends"""
    return nullcontext


@pytest.fixture
def mock_fhir_client():
    """Mock FHIR client accepting every transaction entry"""
    client = Mock(spec=FHIRClient)
    client.create_resource.return_value = {"resourceType": "Patient", "id": "patient-1"}
    client.get_resource.return_value = {"resourceType": "Patient", "id": "patient-1"}
    client.transaction.side_effect = lambda bundle: {
        "resourceType": "Bundle",
        "type": "transaction-response",
        "entry": [{"response": {"status": "201 Created"}} for _ in bundle["entry"]],
    }
    client.is_reachable.return_value = True
    return client
