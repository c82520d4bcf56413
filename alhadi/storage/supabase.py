"""
Supabase Storage client.

Talks to the Supabase Storage REST API over httpx. The client is
constructed explicitly and injected where it is needed; its HTTP session
lives between `__aenter__` and `__aexit__` (application startup and
shutdown).
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from alhadi.config import SupabaseConfig
from alhadi.errors import StorageServiceError, TransportError
from alhadi.storage.base import StorageClient, StoredObject

logger = logging.getLogger(__name__)


def response_error_message(response: httpx.Response) -> str:
    """Pull the collaborator's own message out of an error response."""
    try:
        payload: Any = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        for key in ("message", "error_description", "error", "msg"):
            if payload.get(key):
                return str(payload[key])
    return str(payload)


class SupabaseStorageClient(StorageClient):
    """Storage client for one Supabase bucket."""

    def __init__(
        self,
        config: SupabaseConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.bucket = config.storage_bucket
        self.base_url = config.url.rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self):
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.config.api_key,
            "Authorization": f"Bearer {self.config.api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            raise RuntimeError("SupabaseStorageClient used outside its context")
        return self._http_client

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"

    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> StoredObject:
        headers = {
            **self._headers,
            "Content-Type": content_type,
            "Cache-Control": f"max-age={cache_control}",
            "x-upsert": "true" if upsert else "false",
        }
        logger.info(f"Uploading {len(data)} bytes to {self.bucket}/{path}")

        try:
            response = await self._client().post(
                self._object_url(path), content=data, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Storage upload transport error: {e}")
            raise TransportError(f"Storage unreachable: {e}") from e

        if response.status_code >= 400:
            message = response_error_message(response)
            logger.error(f"Storage upload error ({response.status_code}): {message}")
            raise StorageServiceError(message, status_code=response.status_code)

        try:
            stored_key = str(response.json().get("Key", ""))
        except (ValueError, AttributeError):
            stored_key = ""
        # Key comes back as "<bucket>/<path>"
        prefix = f"{self.bucket}/"
        stored_path = stored_key[len(prefix):] if stored_key.startswith(prefix) else path
        return StoredObject(path=stored_path, bucket=self.bucket)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    async def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        try:
            response = await self._client().request(
                "DELETE",
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                json={"prefixes": paths},
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Storage delete transport error: {e}")
            raise TransportError(f"Storage unreachable: {e}") from e

        if response.status_code >= 400:
            message = response_error_message(response)
            logger.error(f"Storage delete error ({response.status_code}): {message}")
            raise StorageServiceError(message, status_code=response.status_code)
        logger.info(f"Removed {len(paths)} object(s) from {self.bucket}")
