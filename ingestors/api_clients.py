"""
HTTP client for the health record provider

The provider is a Health Connect bridge exposing paginated record reads and
the set of record kinds the user granted read access to.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import requests
from django.conf import settings

from .error_handling import InvalidKindError, error_handler
from .health_data_constants import RecordKind

logger = logging.getLogger(__name__)

PROVIDER_NAME = "health_connect"


@dataclass(slots=True, frozen=True)
class ReadRecordsResponse:
    """One page of raw records"""
    records: list[dict[str, Any]] = field(default_factory=list)
    page_token: str | None = None


class RecordProvider(Protocol):
    """What the record reader needs from a provider"""

    def read_records(
        self,
        kind: RecordKind,
        start: datetime,
        end: datetime,
        page_size: int,
        page_token: str | None = None,
    ) -> ReadRecordsResponse:
        ...

    def has_read_permission(self, kind: RecordKind) -> bool:
        ...


class HealthRecordsClient:
    """
    Record provider client over HTTP

    Failures are classified, counted and raised as HealthDataError by
    ``error_handler``.
    """

    def __init__(self, base_url: str | None = None, session: requests.Session | None = None) -> None:
        self.base_url = base_url or settings.HEALTH_RECORDS_BASE_URL
        if not self.base_url:
            raise ValueError("HEALTH_RECORDS_BASE_URL not configured")
        if not self.base_url.endswith("/"):
            self.base_url += "/"

        config = settings.HEALTH_RECORDS_CLIENT_CONFIG
        self.timeout = (config["CONNECT_TIMEOUT"], config["READ_TIMEOUT"])
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    @error_handler(PROVIDER_NAME, "read_records")
    def read_records(
        self,
        kind: RecordKind,
        start: datetime,
        end: datetime,
        page_size: int,
        page_token: str | None = None,
    ) -> ReadRecordsResponse:
        """
        Read one page of records of ``kind`` between ``start`` and ``end``

        Returns:
            The page's raw records and the token for the next page, if any
        """
        params: dict[str, Any] = {
            "startTime": start.isoformat(),
            "endTime": end.isoformat(),
            "pageSize": page_size,
        }
        if page_token:
            params["pageToken"] = page_token

        response = self.session.get(f"{self.base_url}records/{kind.value}", params=params, timeout=self.timeout)
        response.raise_for_status()
        body = response.json()

        return ReadRecordsResponse(records=body.get("records") or [], page_token=body.get("pageToken") or None)

    @error_handler(PROVIDER_NAME, "read_permissions")
    def granted_kinds(self) -> set[RecordKind]:
        """Record kinds the user has granted read access to"""
        response = self.session.get(f"{self.base_url}permissions", timeout=self.timeout)
        response.raise_for_status()

        granted = set()
        for value in response.json().get("granted", []):
            try:
                granted.add(RecordKind.parse(value))
            except InvalidKindError:
                logger.debug(f"Ignoring unknown permission {value}")
        return granted

    def has_read_permission(self, kind: RecordKind) -> bool:
        return kind in self.granted_kinds()
