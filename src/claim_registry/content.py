"""Client for the content-addressed store holding off-core claim content.

The registry keeps only an opaque pointer (a CID) per claim. This client
talks to an IPFS-compatible HTTP API to store and fetch what it points to.
"""

import json
import logging
from typing import Any

import httpx

from .config import RegistryConfig
from .exceptions import (
    ContentNotFoundError,
    ContentStoreConnectionError,
    ContentStoreError,
    ValidationError,
)

log = logging.getLogger(__name__)


class ContentStoreClient:
    """Client for an IPFS-compatible node via its HTTP API.

    Example:
        >>> with ContentStoreClient("http://127.0.0.1:5001") as store:
        ...     cid = store.add_json({"bio": "hello"})
        ...     store.fetch_json(cid)
    """

    def __init__(self, api_url: str = "http://127.0.0.1:5001", timeout: float = 30.0):
        """Initialize the client.

        Args:
            api_url: Base URL of the node's HTTP API
            timeout: Request timeout in seconds
        """
        self._client = httpx.Client(base_url=api_url, timeout=timeout)

    @classmethod
    def from_config(cls, config: RegistryConfig) -> "ContentStoreClient":
        return cls(config.content_api_url, timeout=config.content_timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        try:
            return response.json().get("Message", default)
        except ValueError:
            return default

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an HTTP request and map failures to typed errors.

        Raises:
            ContentStoreConnectionError: Cannot reach the node or timed out
            ContentNotFoundError: 404 from the node
            ContentStoreError: Any other non-success status
        """
        log.debug("%s %s %s", method, path, params)
        try:
            response = self._client.request(
                method=method,
                url=path,
                params=params,
                files=files,
            )

            if response.status_code == 404:
                raise ContentNotFoundError(
                    self._error_message(response, "Content not found"), status_code=404
                )
            elif not response.is_success:
                raise ContentStoreError(
                    self._error_message(response, f"HTTP {response.status_code}"),
                    status_code=response.status_code,
                )

            return response

        except httpx.ConnectError as e:
            raise ContentStoreConnectionError(f"Cannot connect to content store: {e}")
        except httpx.TimeoutException as e:
            raise ContentStoreConnectionError(f"Request timeout: {e}")
        except httpx.HTTPError as e:
            raise ContentStoreConnectionError(f"HTTP error: {e}")

    @staticmethod
    def _require_pointer(pointer: str) -> None:
        if not pointer:
            raise ValidationError("Content pointer cannot be empty")

    def add_json(self, data: dict[str, Any]) -> str:
        """Store a JSON document and return its content pointer."""
        body = json.dumps(data, sort_keys=True, separators=(",", ":"))
        response = self._request(
            "POST",
            "/api/v0/add",
            params={"pin": "true"},
            files={"file": ("metadata.json", body, "application/json")},
        )
        return response.json()["Hash"]

    def fetch(self, pointer: str) -> bytes:
        """Fetch raw content by pointer."""
        self._require_pointer(pointer)
        return self._request("POST", "/api/v0/cat", params={"arg": pointer}).content

    def fetch_json(self, pointer: str) -> dict[str, Any]:
        """Fetch and decode a JSON document.

        Raises:
            ContentStoreError: Content is not JSON
        """
        raw = self.fetch(pointer)
        try:
            return json.loads(raw)
        except ValueError as e:
            raise ContentStoreError(f"Content at {pointer} is not valid JSON: {e}")

    def pin(self, pointer: str) -> bool:
        self._require_pointer(pointer)
        response = self._request("POST", "/api/v0/pin/add", params={"arg": pointer})
        return pointer in response.json().get("Pins", [])

    def unpin(self, pointer: str) -> bool:
        self._require_pointer(pointer)
        response = self._request("POST", "/api/v0/pin/rm", params={"arg": pointer})
        return pointer in response.json().get("Pins", [])


def fetch_claim_content(service, client: ContentStoreClient, address: str, caller: str | None = None):
    """Resolve a claim's content pointer through the privacy gate, then fetch it.

    Returns:
        Decoded JSON content, or None when the claim has no pointer

    Raises:
        AuthorizationError: Claim is private and caller may not view it
        NotFoundError: Address not claimed
    """
    pointer = service.get_content_pointer(address, caller=caller)
    if not pointer:
        return None
    return client.fetch_json(pointer)
