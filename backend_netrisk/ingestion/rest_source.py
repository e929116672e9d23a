"""
PostgREST-style HTTP data source and authoritative backend (httpx).

Tables are read with GET {base_url}/rest/v1/{table}?select=*&limit=N; the
authoritative analysis is a POST to {base_url}/rest/v1/rpc/{function}. Both
send the API key as `apikey` and as a bearer token.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_netrisk.config.env import get_env_str
from backend_netrisk.core.exceptions import ComputationTimeout, ConfigurationError
from backend_netrisk.ingestion.sql_source import (
    CASE_LIMIT,
    DISTRICT_LIMIT,
    ENTITY_LIMIT,
    RELATIONSHIP_LIMIT,
)
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
AUTHORITATIVE_FUNCTION = "get_enhanced_pattern_analysis"
STATEMENT_TIMEOUT_MARKER = "statement timeout"


def _headers(api_key: str) -> dict[str, str]:
    headers = {"Accept": "application/json"}
    if api_key:
        headers["apikey"] = api_key
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def _client(
    base_url: str,
    api_key: str,
    timeout: float,
    transport: httpx.BaseTransport | None,
) -> httpx.Client:
    if not base_url:
        raise ConfigurationError("NETRISK_REST_URL is not set")
    return httpx.Client(
        base_url=base_url.rstrip("/"),
        headers=_headers(api_key),
        timeout=httpx.Timeout(timeout),
        transport=transport,
    )


class RestDataSource:
    """Reads the four input tables over HTTP; one short-lived client per fetch."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url if base_url is not None else get_env_str("NETRISK_REST_URL")
        self.api_key = api_key if api_key is not None else get_env_str("NETRISK_REST_API_KEY")
        self.timeout = timeout
        self._transport = transport

    def _get_table(self, table: str, limit: int) -> list[dict[str, Any]]:
        with _client(self.base_url, self.api_key, self.timeout, self._transport) as client:
            resp = client.get(f"/rest/v1/{table}", params={"select": "*", "limit": str(limit)})
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"{table}: expected a JSON array, got {type(data).__name__}")
        logger.debug("rest_source_table_fetched", table=table, rows=len(data))
        return data

    def fetch_entities(self) -> list[dict[str, Any]]:
        return self._get_table("network_entities", ENTITY_LIMIT)

    def fetch_relationships(self) -> list[dict[str, Any]]:
        return self._get_table("network_relationships", RELATIONSHIP_LIMIT)

    def fetch_cases(self) -> list[dict[str, Any]]:
        return self._get_table("cctns_case_data", CASE_LIMIT)

    def fetch_districts(self) -> list[dict[str, Any]]:
        return self._get_table("districts", DISTRICT_LIMIT)


class RestAuthoritativeBackend:
    """
    Remote analysis RPC that returns a complete bundle dict.

    A database statement timeout (reported in the error body) or a client-side
    timeout is raised as ComputationTimeout; any other failure propagates.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SEC,
        function: str = AUTHORITATIVE_FUNCTION,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url if base_url is not None else get_env_str("NETRISK_REST_URL")
        self.api_key = api_key if api_key is not None else get_env_str("NETRISK_REST_API_KEY")
        self.timeout = timeout
        self.function = function
        self._transport = transport

    def analyze(self) -> dict[str, Any]:
        with _client(self.base_url, self.api_key, self.timeout, self._transport) as client:
            try:
                resp = client.post(f"/rest/v1/rpc/{self.function}", json={})
            except httpx.TimeoutException as e:
                raise ComputationTimeout(self.timeout) from e
            if resp.is_error and STATEMENT_TIMEOUT_MARKER in resp.text.lower():
                raise ComputationTimeout(self.timeout)
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"{self.function}: expected a JSON object")
        return data
