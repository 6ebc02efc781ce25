"""HTTP client for the Keboola Storage API.

This module provides:
- StorageClient: HTTP client for the Storage API endpoints used by the watcher
- TableDetail: Table metadata, including the lastImportDate freshness signal
- APIError hierarchy used by callers to classify failures
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from tablewatch.core.config import ConnectionConfig

logger = logging.getLogger(__name__)

USER_AGENT = "tablewatch/0.1"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class NotFoundError(APIError):
    """Resource not found."""


class RateLimitError(APIError):
    """Too many requests (HTTP 429)."""


class ServerError(APIError):
    """Server-side failure (HTTP 5xx)."""


class NetworkError(APIError):
    """The API could not be reached."""


class MetadataSource(Protocol):
    """Protocol for the remote metadata service consumed by the watcher."""

    def get_freshness_signal(self, resource_id: str) -> str:
        """Return the table's current freshness signal (may be empty)."""
        ...


@dataclass
class TableDetail:
    """Table metadata from the Storage API."""

    id: str
    name: str
    bucket_id: str
    rows_count: int
    data_size_bytes: int
    created: str
    last_change_date: str
    last_import_date: str
    columns: list[str] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableDetail:
        """Create from API response dictionary."""
        table_id = data["id"]
        bucket = data.get("bucket") or {}
        return cls(
            id=table_id,
            name=data.get("name") or data.get("displayName") or table_id.split(".")[-1],
            bucket_id=bucket.get("id") or ".".join(table_id.split(".")[:-1]),
            rows_count=data.get("rowsCount") or 0,
            data_size_bytes=data.get("dataSizeBytes") or 0,
            created=data.get("created") or "",
            last_change_date=data.get("lastChangeDate") or "",
            last_import_date=data.get("lastImportDate") or "",
            columns=list(data.get("columns") or []),
            primary_key=list(data.get("primaryKey") or []),
        )


class StorageClient:
    """HTTP client for the Keboola Storage API."""

    def __init__(self, config: ConnectionConfig) -> None:
        """Initialize the storage client.

        Args:
            config: Connection settings (URL, token, timeout).
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.api_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            headers={
                "X-StorageApi-Token": config.token,
                "User-Agent": USER_AGENT,
            },
        )

    @property
    def config(self) -> ConnectionConfig:
        """Get the connection configuration."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> StorageClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        status = response.status_code
        if status < 400:
            return response
        message = f"HTTP {status}: {response.reason_phrase}"
        if status == 401:
            raise AuthenticationError("Invalid or expired token", 401)
        if status == 404:
            raise NotFoundError(message, 404)
        if status == 429:
            raise RateLimitError(message, 429)
        if status >= 500:
            raise ServerError(message, status)
        raise APIError(message, status)

    def _get(self, endpoint: str) -> httpx.Response:
        """Send a GET request, wrapping transport failures in NetworkError."""
        try:
            response = self._client.get(endpoint)
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e
        return self._handle_response(response)

    # === Token operations ===

    def verify_token(self) -> dict[str, Any]:
        """Verify the configured token.

        Returns:
            Token information returned by the API.

        Raises:
            AuthenticationError: If the token is invalid.
        """
        result: dict[str, Any] = self._get("/v2/storage/tokens/verify").json()
        return result

    def test_connection(self) -> bool:
        """Check whether the API accepts the configured token."""
        try:
            self.verify_token()
        except APIError as e:
            logger.debug("Connection test failed: %s", e)
            return False
        return True

    # === Table operations ===

    def get_table_detail(self, table_id: str) -> TableDetail:
        """Get detailed information about a table.

        Args:
            table_id: Full table ID (e.g., "in.c-main.customers").

        Returns:
            Table metadata.

        Raises:
            NotFoundError: If table not found.
        """
        response = self._get(f"/v2/storage/tables/{quote(table_id, safe='')}")
        return TableDetail.from_dict(response.json())

    def get_freshness_signal(self, resource_id: str) -> str:
        """Get the table's lastImportDate.

        Returns:
            The lastImportDate string, empty if the API omits it.
        """
        return self.get_table_detail(resource_id).last_import_date
