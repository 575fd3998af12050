"""
Upstash Blob Store

Encrypted backups live in an Upstash Redis database reached over its
REST API. Each wallet has one key; SET overwrites it.

DESIGN DECISION: No retries here. A failed upload or download surfaces
to the caller immediately with the key that was being accessed; the
user decides whether to try again.
"""

import hashlib
from typing import Optional
from urllib.parse import quote

import httpx
import structlog

from kingme.config import get_settings
from kingme.errors import ExternalServiceError
from kingme.services.storage.interface import BlobStoreInterface

logger = structlog.get_logger(__name__)

SERVICE_NAME = "upstash"


def content_id(ciphertext: str) -> str:
    """Stable identifier for a stored blob."""
    return hashlib.sha256(ciphertext.encode("utf-8")).hexdigest()


class UpstashBlobStore(BlobStoreInterface):
    """
    Blob store backed by the Upstash Redis REST API.

    Pass an httpx.AsyncClient to share a connection pool (or a mock
    transport in tests); otherwise one is created per call.
    """

    def __init__(
        self,
        rest_url: Optional[str] = None,
        rest_token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if rest_url is None or rest_token is None:
            settings = get_settings().backup
            rest_url = rest_url or settings.rest_url
            rest_token = rest_token or settings.rest_token
            timeout = timeout or settings.request_timeout
        self._base_url = rest_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {rest_token}"}
        self._timeout = timeout or 15.0
        self._client = client

    async def _request(self, method: str, path: str, key: str, **kwargs) -> dict:
        url = f"{self._base_url}/{path}/{quote(key, safe='')}"
        try:
            if self._client is not None:
                response = await self._client.request(method, url, headers=self._headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
                    response = await client.request(method, url, headers=self._headers, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"{method} {path} returned {e.response.status_code}",
                address=key,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(SERVICE_NAME, f"{method} {path} failed: {e}", address=key) from e

        if not isinstance(payload, dict):
            raise ExternalServiceError(SERVICE_NAME, "unexpected response shape", address=key)
        if payload.get("error"):
            raise ExternalServiceError(SERVICE_NAME, str(payload["error"]), address=key)
        return payload

    async def put(self, key: str, ciphertext: str) -> str:
        """SET key to ciphertext. Returns the content hash."""
        await self._request("POST", "set", key, content=ciphertext.encode("utf-8"))
        identifier = content_id(ciphertext)
        logger.info("blob_stored", key=key, content_id=identifier, size=len(ciphertext))
        return identifier

    async def get(self, key: str) -> Optional[str]:
        """GET key. Upstash answers {"result": null} for a missing key."""
        payload = await self._request("GET", "get", key)
        result = payload.get("result")
        if result is None:
            logger.info("blob_missing", key=key)
            return None
        return str(result)
