"""Content-addressable storage for document bytes.

Uploads go to an IPFS pinning service; reads go through a public gateway
and need no credentials.  The store only hands back references; the
ledger record is what ties a reference to an author and a title.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ledgerpub.config import LedgerPubConfig
from ledgerpub.errors import ContentStoreError
from ledgerpub.models import Document

logger = logging.getLogger(__name__)


class ContentStore(Protocol):
    """Async put/get of opaque blobs by content reference."""

    async def put(self, document: Document) -> str:
        """Store the document bytes and return their content reference."""
        ...

    async def get(self, content_ref: str) -> bytes:
        """Fetch the bytes behind ``content_ref``."""
        ...


class PinningContentStore:
    """Pinning-service uploads plus public-gateway reads.

    Handles bearer authentication and multipart upload via httpx.
    """

    def __init__(
        self,
        pinning_url: str,
        gateway_url: str,
        *,
        token: str = "",
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.pinning_url = pinning_url
        self.gateway_url = gateway_url.rstrip("/")
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    @classmethod
    def from_config(
        cls, config: LedgerPubConfig, client: httpx.AsyncClient | None = None
    ) -> PinningContentStore:
        return cls(
            config.content.pinning_url,
            config.content.gateway_url,
            token=config.content.pinning_jwt,
            timeout=config.ledger.timeout_seconds,
            client=client,
        )

    async def __aenter__(self) -> PinningContentStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def public_url(self, content_ref: str) -> str:
        """Gateway URL for ``content_ref``."""
        return f"{self.gateway_url}/{content_ref}"

    async def put(self, document: Document) -> str:
        """Upload a document and return its CID.

        Raises:
            ContentStoreError: If no token is configured, the request fails,
                or the response carries no reference.
        """
        if not self._token:
            raise ContentStoreError("Pinning token is not configured; cannot upload")

        try:
            response = await self._client.post(
                self.pinning_url,
                files={"file": (document.filename, document.data, document.content_type)},
                headers={"Authorization": f"Bearer {self._token}"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            raise ContentStoreError(f"Upload of '{document.filename}' failed: {exc}") from exc
        except ValueError as exc:
            raise ContentStoreError("Pinning service returned invalid JSON") from exc

        content_ref = body.get("IpfsHash") if isinstance(body, dict) else None
        if not content_ref:
            raise ContentStoreError("Pinning service returned an empty content reference")

        logger.info("Uploaded '%s' (%d bytes) as %s", document.filename, document.size, content_ref)
        return content_ref

    async def get(self, content_ref: str) -> bytes:
        """Download the bytes behind ``content_ref`` from the gateway."""
        try:
            response = await self._client.get(self.public_url(content_ref))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ContentStoreError(f"Fetching {content_ref} failed: {exc}") from exc
        return response.content
