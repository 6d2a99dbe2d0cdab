"""Bridge metadata HTTP client.

Fetches the current bridge fees and the list of bridged token pairs as JSON.
The payloads are returned as-is; interpreting them is up to the caller.
"""

import logging
from typing import Any

import httpx

from mcp_kasplex_bridge.config import Config

logger = logging.getLogger(__name__)

FEES_PATH = "/fees"
TOKEN_PAIRS_PATH = "/token-pairs"


class MetadataError(RuntimeError):
    """Raised when the metadata endpoint cannot be queried."""


class BridgeMetadataClient:
    """Read-only client for the bridge metadata endpoint."""

    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.metadata_url.rstrip("/")
        self._headers = {"Accept": "application/json"}
        self._client = httpx.AsyncClient(timeout=config.metadata_timeout)

    async def _get(self, path: str) -> Any:
        """GET ``path`` and return the decoded JSON body."""
        if not self.base_url:
            raise MetadataError("Metadata URL is not configured ([metadata] url)")

        url = f"{self.base_url}{path}"
        logger.debug("GET %s", url)

        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            raise MetadataError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 400:
            raise MetadataError(f"Metadata endpoint returned HTTP {response.status_code} for {url}")

        try:
            return response.json()
        except ValueError as e:
            raise MetadataError(f"Metadata endpoint returned invalid JSON: {e}") from e

    async def close(self):
        """Close HTTP client."""
        await self._client.aclose()

    async def get_bridge_fees(self) -> Any:
        """Current bridge fee records."""
        return await self._get(FEES_PATH)

    async def get_token_pairs(self) -> Any:
        """Bridged token pair records."""
        return await self._get(TOKEN_PAIRS_PATH)
